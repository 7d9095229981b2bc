"""
Commentary Service

Best-effort free-text commentary from a hosted Gemini model:
- analyze_protocol_step: a "cryptography auditor" reading recent log lines
- generate_agent_message: a short status line for a participant

Neither call ever raises to its caller. Missing credentials, network
errors and unparseable replies all turn into fixed fallback payloads, so
the simulation behaves identically with or without the service.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .audit import LogEntry
from .config import COMMENTARY_TIMEOUT, GEMINI_MODEL, get_api_key
from .errors import FheClinicError
from .logging_config import audit_log

logger = logging.getLogger("fheclinic.commentary")


FALLBACK_ANALYSIS = "Unable to contact verification oracle. Protocol continuing in trustless mode."
FALLBACK_SECURITY_SCORE = 50
FALLBACK_AGENT_MESSAGE = "Processing encrypted stream..."

AUDITOR_SYSTEM_INSTRUCTION = "You are a concise, technical security expert."

ANALYSIS_PROMPT = """
You are a Cryptography Auditor specializing in Fully Homomorphic Encryption (FHE) and ZAMA protocols.
Analyze the following recent protocol activity log between hospital agents.

Explain strictly in 2-3 short sentences what is happening mathematically or securely.
Focus on privacy guarantees (e.g., "The server performed addition without seeing the input").

Respond as JSON: {{"analysis": string, "securityScore": number from 0 to 100 indicating privacy preservation}}

Logs:
{logs}
"""

AGENT_MESSAGE_PROMPT = (
    "Generate a short, cool, cyberpunk-style status message for an AI Agent "
    "with role {role}. Context: {context}. Max 10 words."
)


class CommentaryConfigError(FheClinicError):
    """No credential configured for the commentary service."""
    pass


class ProtocolAnalysis(BaseModel):
    """Auditor verdict on recent protocol activity."""
    model_config = ConfigDict(populate_by_name=True)

    analysis: str
    security_score: float = Field(alias="securityScore", ge=0, le=100)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


def fallback_analysis() -> ProtocolAnalysis:
    return ProtocolAnalysis(analysis=FALLBACK_ANALYSIS, security_score=FALLBACK_SECURITY_SCORE)


def format_log_context(entries: Sequence[LogEntry]) -> str:
    """One "[SOURCE] ACTION: details" line per entry."""
    return "\n".join(f"[{e.source.value}] {e.action}: {e.details}" for e in entries)


class CommentaryBackend(ABC):
    """Text generation backend."""

    @abstractmethod
    def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        json_mode: bool = False
    ) -> Optional[str]:
        """Return the model's text, or None for an empty reply. May raise."""
        pass


class GeminiBackend(CommentaryBackend):
    """google-generativeai client."""

    def __init__(
        self,
        api_key: str,
        model_name: str = GEMINI_MODEL,
        timeout: float = COMMENTARY_TIMEOUT
    ):
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        self._genai = genai
        self.model_name = model_name
        self._timeout = timeout

    def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        json_mode: bool = False
    ) -> Optional[str]:
        model = self._genai.GenerativeModel(
            self.model_name,
            system_instruction=system_instruction,
        )
        generation_config = {"response_mime_type": "application/json"} if json_mode else None
        res = model.generate_content(
            prompt,
            generation_config=generation_config,
            request_options={"timeout": self._timeout},
        )
        if res and res.text:
            return res.text
        return None


class CommentaryService:
    """
    Wraps a backend with the never-raise contract.

    Without an injected backend, a GeminiBackend is built on first use from
    the configured credential.
    """

    def __init__(self, backend: Optional[CommentaryBackend] = None, api_key: Optional[str] = None):
        self._backend = backend
        self._api_key = api_key

    def _get_backend(self) -> CommentaryBackend:
        if self._backend is None:
            api_key = self._api_key or get_api_key()
            if not api_key:
                raise CommentaryConfigError("API Key not found")
            self._backend = GeminiBackend(api_key)
        return self._backend

    def analyze_protocol_step(self, recent_logs: Sequence[LogEntry]) -> Optional[ProtocolAnalysis]:
        """
        Ask the auditor about the recent entries.

        Returns None when the model replies with nothing, the fallback
        analysis on any failure.
        """
        try:
            backend = self._get_backend()
            prompt = ANALYSIS_PROMPT.format(logs=format_log_context(recent_logs))
            text = backend.generate(
                prompt,
                system_instruction=AUDITOR_SYSTEM_INSTRUCTION,
                json_mode=True,
            )
            if not text:
                return None
            return ProtocolAnalysis.model_validate_json(text)
        except Exception as e:
            logger.warning(f"Protocol analysis failed: {e}")
            audit_log.commentary_fallback("analyze_protocol_step", type(e).__name__)
            return fallback_analysis()

    def generate_agent_message(self, role: str, context: str) -> str:
        """Short status line for a participant; the fallback on any failure."""
        try:
            backend = self._get_backend()
            text = backend.generate(AGENT_MESSAGE_PROMPT.format(role=role, context=context))
            if not text:
                return FALLBACK_AGENT_MESSAGE
            return text.strip()
        except Exception as e:
            logger.warning(f"Agent message failed: {e}")
            audit_log.commentary_fallback("generate_agent_message", type(e).__name__)
            return FALLBACK_AGENT_MESSAGE


_service: Optional[CommentaryService] = None


def get_commentary_service() -> CommentaryService:
    global _service
    if _service is None:
        _service = CommentaryService()
    return _service


def analyze_protocol_step(recent_logs: Sequence[LogEntry]) -> Optional[ProtocolAnalysis]:
    return get_commentary_service().analyze_protocol_step(recent_logs)


def generate_agent_message(role: str, context: str) -> str:
    return get_commentary_service().generate_agent_message(role, context)
