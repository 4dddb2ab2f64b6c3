# shotlist/key_codec.py
"""
Offline license keys.

Format: ``SK-<expiry>-<type>-<signature>`` where ``expiry`` is the expiry
instant in epoch milliseconds as uppercase hex (or ``LIFETIME``) and
``signature`` is the uppercase hex of a 32-bit string hash over
``expiry + "-" + type + secret``.

The hash is only meant to let a previously issued key keep working while
the license server is unreachable. Anyone holding the secret can mint keys.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import List, Optional

from shotlist.errors import ExpiredError, FormatError, SignatureError

KEY_PREFIX = "SK"
UNLIMITED = "LIFETIME"

_DAY_MS = 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


def _utf16_units(text: str) -> List[int]:
    raw = text.encode("utf-16-le")
    return [int.from_bytes(raw[i : i + 2], "little") for i in range(0, len(raw), 2)]


def simple_hash(text: str) -> str:
    """h = h * 31 + unit, wrapped to a signed 32-bit int; abs value as lowercase hex."""
    h = 0
    for unit in _utf16_units(text):
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
        if h >= 0x80000000:
            h -= 0x100000000
    return format(abs(h), "x")


@dataclass(frozen=True)
class LicenseKey:
    prefix: str
    expiry_field: str
    type_code: str
    signature: str

    @property
    def is_unlimited(self) -> bool:
        return self.expiry_field == UNLIMITED

    @property
    def expires_at_ms(self) -> Optional[int]:
        if self.is_unlimited:
            return None
        return int(self.expiry_field, 16)

    def __str__(self) -> str:
        return "-".join((self.prefix, self.expiry_field, self.type_code, self.signature))


class KeyCodec:
    def __init__(self, secret: str, *, prefix: str = KEY_PREFIX):
        self.secret = secret
        self.prefix = prefix

    def parse(self, key: str) -> LicenseKey:
        parts = (key or "").split("-")
        if len(parts) != 4 or parts[0] != self.prefix:
            raise FormatError("Malformed license key.")
        prefix, expiry_field, type_code, signature = parts
        if expiry_field != UNLIMITED:
            try:
                int(expiry_field, 16)
            except ValueError:
                raise FormatError("Malformed license key.") from None
        return LicenseKey(prefix, expiry_field, type_code, signature)

    def sign(self, expiry_field: str, type_code: str) -> str:
        return simple_hash(f"{expiry_field}-{type_code}{self.secret}").upper()

    def validate(self, parsed: LicenseKey, now_ms: Optional[int] = None) -> bool:
        if parsed.signature != self.sign(parsed.expiry_field, parsed.type_code):
            return False
        if parsed.is_unlimited:
            return True
        now_ms = _now_ms() if now_ms is None else now_ms
        return now_ms < parsed.expires_at_ms

    def verify(self, key: str, now_ms: Optional[int] = None) -> LicenseKey:
        """Parse and check a key, raising the specific LicenseError on failure."""
        parsed = self.parse(key)
        if parsed.signature != self.sign(parsed.expiry_field, parsed.type_code):
            raise SignatureError("License key is not valid.")
        if not self.validate(parsed, now_ms):
            raise ExpiredError("License key has expired.")
        return parsed

    def mint(self, expires_at_ms: Optional[int], type_code: str) -> str:
        expiry_field = UNLIMITED if expires_at_ms is None else format(int(expires_at_ms), "X")
        type_code = type_code.strip().upper()
        if not type_code or "-" in type_code:
            raise FormatError("Type code must be non-empty and contain no dashes.")
        return "-".join((self.prefix, expiry_field, type_code, self.sign(expiry_field, type_code)))

    def expiry_ms(self, key: str) -> Optional[int]:
        """Expiry of a stored key, or None when unlimited or unreadable."""
        parts = (key or "").split("-")
        if len(parts) != 4 or parts[0] != self.prefix or parts[1] == UNLIMITED:
            return None
        try:
            return int(parts[1], 16)
        except ValueError:
            return None

    def remaining_label(self, parsed: LicenseKey, now_ms: Optional[int] = None) -> str:
        if parsed.is_unlimited:
            return "unlimited"
        now_ms = _now_ms() if now_ms is None else now_ms
        diff = parsed.expires_at_ms - now_ms
        if diff <= 0:
            return "expired"
        days = math.ceil(diff / _DAY_MS)
        if days > 365:
            return f"{days // 365} years"
        if days > 30:
            return f"{days // 30} months"
        return f"{days} days"
