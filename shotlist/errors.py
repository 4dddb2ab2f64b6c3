# shotlist/errors.py
from __future__ import annotations

from typing import Optional


class ConfigError(RuntimeError):
    pass


# ----------------------------
# License path (resolved inside LicenseGuard)
# ----------------------------
class LicenseError(RuntimeError):
    pass


class FormatError(LicenseError):
    pass


class SignatureError(LicenseError):
    pass


class ExpiredError(LicenseError):
    pass


class LicenseServerError(RuntimeError):
    """Online verification could not reach a verdict (triggers offline fallback)."""


class NetworkError(LicenseServerError):
    pass


class ServerError(LicenseServerError):
    pass


# ----------------------------
# Generation path
# ----------------------------
class GenerationError(RuntimeError):
    pass


class TransientGenerationError(GenerationError):
    pass


class QuotaExceeded(TransientGenerationError):
    pass


class Overloaded(TransientGenerationError):
    pass


class FatalGenerationError(GenerationError):
    pass


class MalformedResponseError(FatalGenerationError):
    pass


class RetryExhaustedError(FatalGenerationError):
    def __init__(self, message: str, *, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class ScriptGenerationError(GenerationError):
    pass


class BatchFailedError(ScriptGenerationError):
    def __init__(self, batch_index: int, total_batches: int, cause: Optional[BaseException] = None):
        detail = str(cause) if cause is not None else "unknown error"
        super().__init__(f"Batch {batch_index}/{total_batches} failed: {detail}")
        self.batch_index = batch_index
        self.total_batches = total_batches


class GenerationCancelled(ScriptGenerationError):
    def __init__(self, batch_index: int, total_batches: int):
        super().__init__(
            f"Generation stopped before batch {batch_index}/{total_batches}: license is no longer active."
        )
        self.batch_index = batch_index
        self.total_batches = total_batches


class ExtensionFailedError(ScriptGenerationError):
    pass
