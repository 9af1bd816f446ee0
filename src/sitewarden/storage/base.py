# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Abstract key/value persistence with short-lived transients."""

from __future__ import annotations

import abc
from typing import Any


class StateStore(abc.ABC):
    """Durable options plus TTL-bound transients.

    Values are JSON-compatible structures.  Reads after a write within the
    same tick must observe that write.
    """

    @abc.abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        """Return the stored option, or *default* when absent."""

    @abc.abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store an option, replacing any previous value."""

    @abc.abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete an option.  Returns ``True`` if it existed."""

    @abc.abstractmethod
    async def get_transient(self, key: str) -> Any:
        """Return a live transient value, or ``None`` if absent or expired."""

    @abc.abstractmethod
    async def set_transient(self, key: str, value: Any, ttl: int) -> None:
        """Store a transient that expires after *ttl* seconds."""

    @abc.abstractmethod
    async def delete_transient(self, key: str) -> bool:
        """Delete a transient.  Returns ``True`` if it existed."""

    async def close(self) -> None:
        """Release any resources held by the store."""
