"""
Configuration for the FHE clinic simulation.

Everything comes from environment variables. Constants are read once at
import time; the credential and debug helpers re-read the environment on
each call so they can be toggled at runtime.
"""

import os
from typing import Optional


def _flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


ENV = os.getenv("FHECLINIC_ENV", "dev")  # dev|stage|prod

# Logging
LOG_LEVEL = os.getenv("FHECLINIC_LOG_LEVEL", "INFO")
LOG_JSON = _flag("FHECLINIC_LOG_JSON", "true")

# Commentary (Gemini)
GEMINI_MODEL = os.getenv("FHECLINIC_GEMINI_MODEL", "gemini-2.0-flash")
COMMENTARY_TIMEOUT = float(os.getenv("FHECLINIC_COMMENTARY_TIMEOUT", "8"))

# Simulation
LWE_SCALE = int(os.getenv("FHECLINIC_LWE_SCALE", "100"))
ANALYSIS_WINDOW = int(os.getenv("FHECLINIC_ANALYSIS_WINDOW", "5"))


def get_api_key() -> Optional[str]:
    """Commentary credential: GEMINI_API_KEY, then API_KEY. "dummy" counts as unset."""
    key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    if not key or key == "dummy":
        return None
    return key


def commentary_enabled() -> bool:
    return get_api_key() is not None


def is_production() -> bool:
    return ENV == "prod"


def is_debug() -> bool:
    return _flag("FHECLINIC_DEBUG")
