# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""In-process state store, used for embedding and tests."""

from __future__ import annotations

import copy
import time
from typing import Any

from sitewarden.storage.base import StateStore


class _Entry:
    """A transient value with an expiry timestamp."""

    __slots__ = ("expires_at", "value")

    def __init__(self, value: Any, expires_at: float) -> None:
        self.value = value
        self.expires_at = expires_at

    def is_expired(self) -> bool:
        return time.monotonic() > self.expires_at


class MemoryStateStore(StateStore):
    """Dict-backed store.  Values are deep-copied on the way in and out."""

    def __init__(self) -> None:
        self._options: dict[str, Any] = {}
        self._transients: dict[str, _Entry] = {}

    async def get(self, key: str, default: Any = None) -> Any:
        if key not in self._options:
            return default
        return copy.deepcopy(self._options[key])

    async def set(self, key: str, value: Any) -> None:
        self._options[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> bool:
        return self._options.pop(key, None) is not None

    async def get_transient(self, key: str) -> Any:
        entry = self._transients.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            del self._transients[key]
            return None
        return copy.deepcopy(entry.value)

    async def set_transient(self, key: str, value: Any, ttl: int) -> None:
        self._transients[key] = _Entry(copy.deepcopy(value), time.monotonic() + ttl)

    async def delete_transient(self, key: str) -> bool:
        return self._transients.pop(key, None) is not None
