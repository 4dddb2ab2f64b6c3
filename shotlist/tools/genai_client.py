# shotlist/tools/genai_client.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from shotlist.config import AppConfig
from shotlist.errors import (
    ConfigError,
    MalformedResponseError,
    Overloaded,
    QuotaExceeded,
    TransientGenerationError,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


def _import_genai():
    # Lazy import so the license gate works without google-genai installed
    try:
        from google import genai  # type: ignore
    except ImportError as e:
        raise ConfigError(
            "google-genai not installed. Install with:\n"
            "  pip install google-genai\n"
        ) from e
    return genai


def _as_transient(exc: BaseException) -> Optional[TransientGenerationError]:
    """Map google.genai.errors.APIError 429 / 503 onto the retryable error types."""
    code = getattr(exc, "code", None)
    status = str(getattr(exc, "status", "") or "").upper()
    if code == 429 or status == "RESOURCE_EXHAUSTED":
        return QuotaExceeded(str(exc))
    if code == 503 or status == "UNAVAILABLE":
        return Overloaded(str(exc))
    return None


# ----------------------------
# Gemini wrapper (google-genai)
# ----------------------------
@dataclass
class GeminiClient:
    api_key: str
    model: str = DEFAULT_MODEL

    def __post_init__(self) -> None:
        self.api_key = (self.api_key or "").strip()
        if not self.api_key:
            raise ConfigError(
                "Missing GEMINI_API_KEY. Put it in .env as GEMINI_API_KEY=... "
                "or enter your Google AI Studio key in the app."
            )
        genai = _import_genai()
        self._client = genai.Client(api_key=self.api_key)

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "GeminiClient":
        return cls(api_key=cfg.gemini_api_key, model=cfg.gemini_model)

    def generate_json_text(self, prompt: str) -> str:
        """
        One request with a JSON response hint. Quota and overload errors come back as
        QuotaExceeded / Overloaded; anything else propagates untouched.
        """
        try:
            resp = self._client.models.generate_content(
                model=self.model,
                contents=prompt,
                config={"response_mime_type": "application/json"},
            )
        except Exception as e:
            transient = _as_transient(e)
            if transient is None:
                raise
            raise transient from e
        text = (getattr(resp, "text", None) or "").strip()
        if not text:
            raise MalformedResponseError("No response from the AI service.")
        return text


def validate_api_key(api_key: str, *, model: str = DEFAULT_MODEL) -> bool:
    """Cheap check: Google keys start with AIza, and a one-token request must succeed."""
    key = (api_key or "").strip()
    if not key.startswith("AIza"):
        return False
    try:
        genai = _import_genai()
        resp = genai.Client(api_key=key).models.generate_content(model=model, contents="a")
        return bool(getattr(resp, "text", None))
    except Exception as e:
        logger.info("Gemini API key rejected: %s", e)
        return False
