# shotlist/license_guard.py
"""
Gate in front of the app.

Loading -> {Unlocked, Locked}; Locked -> Verifying -> {Unlocked, Locked + error}.

Online verification always runs first. The offline signature check is only
consulted when the server gave no verdict (network/server error); an
authoritative INVALID from the server wins over a locally valid signature,
so a revoked key stays revoked.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from shotlist.activation_store import ActivationStore, FileActivationStore
from shotlist.config import AppConfig
from shotlist.errors import LicenseError
from shotlist.key_codec import KeyCodec
from shotlist.tools.license_api import LicenseServerClient, VerifyStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
NoticeCB = Callable[[str], None]

EXPIRED_NOTICE = "Your license key has expired. Please contact the administrator to renew it."


class Phase(str, Enum):
    LOADING = "loading"
    LOCKED = "locked"
    VERIFYING = "verifying"
    UNLOCKED = "unlocked"


class VerificationSource(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    NONE = "none"


@dataclass(frozen=True)
class ActivationState:
    phase: Phase = Phase.LOADING
    source: VerificationSource = VerificationSource.NONE
    last_checked_at: Optional[float] = None
    error: str = ""
    notice: str = ""

    @property
    def unlocked(self) -> bool:
        return self.phase is Phase.UNLOCKED


@dataclass(frozen=True)
class SubmitResult:
    ok: bool
    message: str = ""


class LicenseGuard:
    def __init__(
        self,
        *,
        store: ActivationStore,
        server: LicenseServerClient,
        codec: KeyCodec,
        clock: Clock = time.time,
        on_notice: Optional[NoticeCB] = None,
    ):
        self.store = store
        self.server = server
        self.codec = codec
        self.clock = clock
        self.on_notice = on_notice
        self._lock = threading.RLock()
        self._state = ActivationState()

    @classmethod
    def from_config(cls, cfg: AppConfig, *, store: Optional[ActivationStore] = None, **kwargs) -> "LicenseGuard":
        return cls(
            store=store or FileActivationStore(cfg.state_path),
            server=LicenseServerClient(cfg.license_server_url, timeout_s=cfg.license_timeout_s),
            codec=KeyCodec(cfg.license_secret),
            **kwargs,
        )

    @property
    def state(self) -> ActivationState:
        with self._lock:
            return self._state

    @property
    def is_unlocked(self) -> bool:
        return self.state.unlocked

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _set(self, phase: Phase, source: VerificationSource = VerificationSource.NONE, **changes) -> ActivationState:
        with self._lock:
            prev = self._state.phase
            self._state = replace(
                self._state, phase=phase, source=source, last_checked_at=self.clock(), **changes
            )
            if prev is not phase:
                logger.info("License guard: %s -> %s (%s)", prev.value, phase.value, source.value)
            return self._state

    def _verify_offline(self, key: str) -> str:
        """Empty string when the key passes the offline check, else the reason."""
        try:
            self.codec.verify(key, self._now_ms())
        except LicenseError as e:
            return str(e)
        return ""

    # ----------------------------
    # Operations
    # ----------------------------
    def check_saved_key(self) -> ActivationState:
        with self._lock:
            key = self.store.get()
            if not key:
                return self._set(Phase.LOCKED)

            online = self.server.verify(key)
            if online.indeterminate:
                logger.info("License server gave no verdict (%s); checking key offline.", online.status.value)
                reason = self._verify_offline(key)
                if not reason:
                    return self._set(Phase.UNLOCKED, VerificationSource.OFFLINE, error="")
                return self._set(Phase.LOCKED, error=reason)

            if online.status is VerifyStatus.VALID:
                return self._set(Phase.UNLOCKED, VerificationSource.ONLINE, error="")
            logger.info("Stored license key rejected by server; clearing it.")
            self.store.clear()
            return self._set(Phase.LOCKED, error=online.message)

    def submit_key(self, raw: str) -> SubmitResult:
        key = (raw or "").strip().upper()
        if not key:
            return SubmitResult(False, "Please enter a license key.")

        with self._lock:
            self._set(Phase.VERIFYING, error="", notice="")

            online = self.server.verify(key)
            if online.indeterminate:
                reason = self._verify_offline(key)
                if reason:
                    self._set(Phase.LOCKED, error=reason)
                    return SubmitResult(False, reason)
                self.store.set(key)
                self._set(Phase.UNLOCKED, VerificationSource.OFFLINE)
                return SubmitResult(True)

            if online.status is not VerifyStatus.VALID:
                self._set(Phase.LOCKED, error=online.message)
                return SubmitResult(False, online.message)
            self.store.set(key)
            self._set(Phase.UNLOCKED, VerificationSource.ONLINE)
            return SubmitResult(True)

    def logout(self) -> ActivationState:
        with self._lock:
            self.store.clear()
            return self._set(Phase.LOCKED, error="", notice="")

    def sweep_expiry(self) -> bool:
        """Log out if the stored key's expiry has passed. Returns True when it did."""
        with self._lock:
            if self._state.phase is not Phase.UNLOCKED:
                return False
            key = self.store.get()
            if not key:
                return False
            expires_at = self.codec.expiry_ms(key)
            if expires_at is None:
                logger.debug("Stored key has no readable expiry; skipping sweep.")
                return False
            if self._now_ms() < expires_at:
                return False

            logger.warning("License key expired; logging out.")
            self.logout()
            self._state = replace(self._state, notice=EXPIRED_NOTICE)

        if self.on_notice:
            self.on_notice(EXPIRED_NOTICE)
        return True

    def still_authorized(self) -> bool:
        """Batch-boundary check for long runs: sweeps expiry first, then reports the phase."""
        self.sweep_expiry()
        return self.is_unlocked

    def remaining_label(self) -> Optional[str]:
        key = self.store.get()
        if not key:
            return None
        try:
            parsed = self.codec.parse(key)
        except LicenseError:
            return None
        return self.codec.remaining_label(parsed, self._now_ms())


class ExpirySweeper:
    """Background thread calling ``guard.sweep_expiry()`` every ``interval_s``."""

    def __init__(self, guard: LicenseGuard, interval_s: float = 60.0):
        if not interval_s > 0:
            raise ValueError("interval_s must be positive")
        self.guard = guard
        self.interval_s = interval_s
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "ExpirySweeper":
        if self._thread and self._thread.is_alive():
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="license-expiry-sweep", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=max(1.0, self.interval_s))
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                self.guard.sweep_expiry()
            except Exception:
                logger.exception("Expiry sweep failed")

    def __enter__(self) -> "ExpirySweeper":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()
