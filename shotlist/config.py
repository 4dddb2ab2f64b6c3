# shotlist/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv

from shotlist.errors import ConfigError

T = TypeVar("T")

# Offline keys issued so far were signed with this secret.
DEFAULT_LICENSE_SECRET = "SECRET_KEY_BRIDGE_8823_HASH"
DEFAULT_STATE_PATH = str(Path.home() / ".shotlist" / "activation.json")

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


# ----------------------------
# Dotenv loading
# ----------------------------
def _load_env_safely() -> None:
    """
    Load .env explicitly instead of relying on find_dotenv(), which walks
    stack frames and misbehaves under Streamlit.
    """
    candidates = [
        Path(os.getcwd()) / ".env",
        Path(__file__).resolve().parents[1] / ".env",  # project root
    ]
    for p in candidates:
        if p.exists():
            load_dotenv(dotenv_path=str(p), override=False)
            return


def _env(name: str, default: T, cast: Callable[[str], T]) -> T:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from e


def configure_logging(level: Optional[str] = None) -> None:
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
    # google-genai and urllib3 are chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


@dataclass
class AppConfig:
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"

    license_server_url: str = ""
    license_secret: str = DEFAULT_LICENSE_SECRET
    license_timeout_s: float = 8.0
    state_path: str = DEFAULT_STATE_PATH
    expiry_sweep_s: float = 60.0

    # Batch 10 + 6s cool-down stays under the free tier's 15-20 requests/minute.
    batch_size: int = 10
    batch_cooldown_s: float = 6.0
    max_attempts: int = 10
    script_language: str = "Vietnamese"

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigError("BATCH_SIZE must be at least 1.")
        if self.max_attempts < 1:
            raise ConfigError("MAX_ATTEMPTS must be at least 1.")
        if self.license_timeout_s <= 0:
            raise ConfigError("LICENSE_TIMEOUT_S must be positive.")
        if not self.expiry_sweep_s > 0:
            raise ConfigError("EXPIRY_SWEEP_S must be positive.")
        if not self.batch_cooldown_s >= 0:
            raise ConfigError("BATCH_COOLDOWN_S must not be negative.")

    @classmethod
    def from_env(cls, *, load_dotenv_file: bool = True) -> "AppConfig":
        if load_dotenv_file:
            _load_env_safely()

        return cls(
            gemini_api_key=_env("GEMINI_API_KEY", "", str),
            gemini_model=_env("GEMINI_MODEL", "gemini-2.5-flash", str),
            license_server_url=_env("LICENSE_SERVER_URL", "", str),
            license_secret=_env("LICENSE_SECRET", DEFAULT_LICENSE_SECRET, str),
            license_timeout_s=_env("LICENSE_TIMEOUT_S", 8.0, float),
            state_path=_env("SHOTLIST_STATE_PATH", DEFAULT_STATE_PATH, str),
            expiry_sweep_s=_env("EXPIRY_SWEEP_S", 60.0, float),
            batch_size=_env("BATCH_SIZE", 10, int),
            batch_cooldown_s=_env("BATCH_COOLDOWN_S", 6.0, float),
            max_attempts=_env("MAX_ATTEMPTS", 10, int),
            script_language=_env("SCRIPT_LANGUAGE", "Vietnamese", str),
            log_level=_env("LOG_LEVEL", "INFO", str),
        )
