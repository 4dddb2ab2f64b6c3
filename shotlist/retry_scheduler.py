# shotlist/retry_scheduler.py
"""
Retries one generation call on quota / overload errors.

Wait table (attempt = number of failed attempts so far):
  service said "retry in N s"  -> ceil(N) + 3 s
  quota exhausted (429)        -> attempt * 20 s
  overloaded (503)             -> 5 * 2 ** (attempt - 1) s
Anything else is raised at once.
"""
from __future__ import annotations

import json
import logging
import math
import re
import time
from typing import Callable, Optional, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

from shotlist.errors import FatalGenerationError, Overloaded, QuotaExceeded, RetryExhaustedError
from shotlist.tools.progress import ProgressSink, emit

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUOTA = "quota"
OVERLOADED = "overloaded"

_QUOTA_MARKERS = ("429", "quota", "resource_exhausted")
_OVERLOAD_MARKERS = ("503", "overloaded")
_ADVISED_WAIT_RE = re.compile(r"retry in (\d+(?:\.\d+)?)\s*s", re.IGNORECASE)

ADVISED_MARGIN_S = 3
QUOTA_STEP_S = 20
OVERLOAD_BASE_S = 5
MAX_ATTEMPTS = 10


def error_text(exc: BaseException) -> str:
    """Message plus whatever diagnostic payload the transport attached."""
    parts = [str(exc), repr(exc)]
    for attr in ("status", "details", "response"):
        value = getattr(exc, attr, None)
        if value is None:
            continue
        try:
            parts.append(json.dumps(value, default=str))
        except (TypeError, ValueError):
            parts.append(str(value))
    if exc.__cause__ is not None:
        parts.append(str(exc.__cause__))
    return " ".join(parts)


def classify_error(exc: BaseException) -> Optional[str]:
    if isinstance(exc, FatalGenerationError):
        return None
    if isinstance(exc, QuotaExceeded):
        return QUOTA
    if isinstance(exc, Overloaded):
        return OVERLOADED

    text = error_text(exc).lower()
    if any(m in text for m in _QUOTA_MARKERS):
        return QUOTA
    if any(m in text for m in _OVERLOAD_MARKERS):
        return OVERLOADED
    return None


def advised_wait_s(exc: BaseException) -> Optional[float]:
    m = _ADVISED_WAIT_RE.search(error_text(exc))
    return float(m.group(1)) if m else None


def compute_wait_s(exc: BaseException, attempt: int) -> int:
    advised = advised_wait_s(exc)
    if advised is not None:
        return math.ceil(advised) + ADVISED_MARGIN_S
    if classify_error(exc) == QUOTA:
        return attempt * QUOTA_STEP_S
    return OVERLOAD_BASE_S * 2 ** (attempt - 1)


def describe_wait(exc: BaseException, attempt: int, wait_s: float) -> str:
    advised = advised_wait_s(exc)
    if advised is not None:
        return (
            f"API quota is full. The service asked to wait {round(advised)}s; "
            f"retrying automatically in {round(wait_s)}s..."
        )
    if classify_error(exc) == QUOTA:
        return f"Quota limit reached. Pausing {round(wait_s)}s to recover... (attempt {attempt})"
    return f"AI service is overloaded (503). Retrying in {round(wait_s)}s..."


class RetryScheduler:
    def __init__(self, *, max_attempts: int = MAX_ATTEMPTS, sleep: Callable[[float], None] = time.sleep):
        self.max_attempts = max_attempts
        self.sleep = sleep

    def _wait(self, retry_state: RetryCallState) -> float:
        return compute_wait_s(retry_state.outcome.exception(), retry_state.attempt_number)

    def _give_up(self, retry_state: RetryCallState):
        last = retry_state.outcome.exception()
        raise RetryExhaustedError(
            f"Could not connect after {retry_state.attempt_number} attempts. "
            "Please check the quota of your Google AI account.",
            attempts=retry_state.attempt_number,
        ) from last

    def run(self, fn: Callable[[], T], *, progress: Optional[ProgressSink] = None) -> T:
        def before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception()
            wait_s = retry_state.next_action.sleep
            msg = describe_wait(exc, retry_state.attempt_number, wait_s)
            logger.warning("%s [%s: %s]", msg, type(exc).__name__, str(exc)[:200])
            emit(progress, msg)

        retrying = Retrying(
            retry=retry_if_exception(lambda e: classify_error(e) is not None),
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            sleep=self.sleep,
            before_sleep=before_sleep,
            retry_error_callback=self._give_up,
        )
        return retrying(fn)
