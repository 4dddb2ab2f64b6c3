# shotlist/tools/license_api.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

import requests

from shotlist.errors import NetworkError, ServerError

logger = logging.getLogger(__name__)

Json = Dict[str, Any]


class VerifyStatus(str, Enum):
    VALID = "VALID"
    INVALID = "INVALID"
    ERROR = "ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"


@dataclass
class VerifyResult:
    status: VerifyStatus
    message: str = ""
    data: Json = field(default_factory=dict)

    @property
    def indeterminate(self) -> bool:
        """True when the server gave no verdict and the offline check may decide."""
        return self.status in (VerifyStatus.ERROR, VerifyStatus.NETWORK_ERROR)


@dataclass
class LicenseServerClient:
    base_url: str
    timeout_s: float = 8.0

    def __post_init__(self) -> None:
        self.base_url = (self.base_url or "").strip().rstrip("/")

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/api/verify"

    def _post(self, key: str) -> requests.Response:
        if not self.base_url:
            raise NetworkError("License server is not configured.")
        try:
            return requests.post(self.endpoint, json={"key": key}, timeout=self.timeout_s)
        except requests.RequestException as e:
            logger.warning("License server unreachable at %s: %s", self.endpoint, e)
            raise NetworkError("Could not reach the license server.") from e

    def _payload(self, r: requests.Response) -> Json:
        if not 200 <= r.status_code < 300:
            logger.warning("License server HTTP %s: %s", r.status_code, r.text[:300])
            raise ServerError(f"License server error (HTTP {r.status_code}).")
        try:
            data = r.json()
        except ValueError as e:
            logger.warning("License server returned non-JSON body: %r", r.text[:300])
            raise ServerError("License server returned an unreadable response.") from e
        if not isinstance(data, dict):
            raise ServerError("License server returned an unexpected response.")
        return data

    def verify(self, key: str) -> VerifyResult:
        """
        POST {"key": ...} to /api/verify.

        403/404 and an explicit {"valid": false} are authoritative rejections.
        Timeouts, connection failures, other HTTP errors and unreadable bodies
        are indeterminate.
        """
        try:
            r = self._post(key)
            if r.status_code in (403, 404):
                return VerifyResult(
                    VerifyStatus.INVALID,
                    "Key does not exist, was revoked, or has expired.",
                )
            data = self._payload(r)
        except NetworkError as e:
            return VerifyResult(VerifyStatus.NETWORK_ERROR, str(e))
        except ServerError as e:
            return VerifyResult(VerifyStatus.ERROR, str(e))

        if data.get("valid") is False:
            return VerifyResult(VerifyStatus.INVALID, str(data.get("message") or "Key is not valid."), data)

        return VerifyResult(VerifyStatus.VALID, "", data)
