"""
Integrity hashes for the protocol log.

Every hash is "sha256:" followed by 64 lowercase hex digits. An entry hash
covers the canonical entry body chained to the previous entry's hash, so
editing or dropping any entry breaks every hash after it.
"""

import hashlib
from typing import Any, Dict, Optional, Union

from .canonicalization import canonicalize


HASH_PREFIX = "sha256:"


def sha256_hash(data: Union[bytes, str]) -> str:
    raw = data.encode("utf-8") if isinstance(data, str) else data
    return HASH_PREFIX + hashlib.sha256(raw).hexdigest()


def content_hash(obj: Any) -> str:
    """Hash of an object's canonical JSON."""
    return sha256_hash(canonicalize(obj))


def log_entry_hash(body: Dict[str, Any], prev_hash: Optional[str]) -> str:
    """
    entry_hash = SHA-256( prev_hash || SHA-256(canonical(body)) )

    The first entry chains to the empty string.
    """
    return sha256_hash((prev_hash or "") + content_hash(body))


def verify_entry_hash(declared_hash: str, body: Dict[str, Any], prev_hash: Optional[str]) -> bool:
    """Recompute an entry hash and compare it with the declared one."""
    if not declared_hash or not declared_hash.startswith(HASH_PREFIX):
        return False
    return log_entry_hash(body, prev_hash) == declared_hash
