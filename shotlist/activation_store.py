# shotlist/activation_store.py
from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)

LICENSE_SLOT = "license_online"
# Written by older builds; cleared together with the active slot.
LEGACY_SLOTS = ("license",)


class ActivationStore(Protocol):
    def get(self) -> Optional[str]: ...

    def set(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryActivationStore:
    def __init__(self, key: Optional[str] = None):
        self._key = key

    def get(self) -> Optional[str]:
        return self._key

    def set(self, key: str) -> None:
        self._key = key

    def clear(self) -> None:
        self._key = None


class FileActivationStore:
    """
    One JSON file, one active slot. Writes go through a temp file + os.replace
    so a crash never leaves a half-written key behind.
    """

    def __init__(self, path: str, *, slot: str = LICENSE_SLOT):
        self.path = path
        self.slot = slot

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable activation file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        folder = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(folder, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".activation-", dir=folder)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def get(self) -> Optional[str]:
        value = self._read().get(self.slot)
        return value if isinstance(value, str) and value else None

    def set(self, key: str) -> None:
        data = self._read()
        data[self.slot] = key
        self._write(data)

    def clear(self) -> None:
        data = self._read()
        removed = [k for k in (self.slot, *LEGACY_SLOTS) if data.pop(k, None) is not None]
        if removed:
            self._write(data)
