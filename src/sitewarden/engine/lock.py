# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Short-lived mutual exclusion between ticks, held in the state store."""

from __future__ import annotations

import logging
import os
import uuid

from sitewarden.core.constants import ENGINE_LOCK_KEY
from sitewarden.storage.base import StateStore

logger = logging.getLogger("sitewarden.engine.lock")


class EngineLock:
    """A transient-backed lock; expiry frees it if its holder dies.

    Usage::

        lock = EngineLock(store, ttl=10)
        if not await lock.acquire():
            return
        try:
            ...
        finally:
            await lock.release()
    """

    def __init__(self, store: StateStore, ttl: int = 10, key: str = ENGINE_LOCK_KEY) -> None:
        self._store = store
        self._ttl = ttl
        self._key = key
        self._token = f"{os.getpid()}:{uuid.uuid4().hex[:12]}"
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    async def acquire(self) -> bool:
        """Take the lock unless another holder's entry is still live."""
        if await self._store.get_transient(self._key):
            logger.debug("Engine lock busy; skipping tick")
            return False
        await self._store.set_transient(self._key, self._token, self._ttl)
        # Lost a race with a concurrent writer.
        if await self._store.get_transient(self._key) != self._token:
            return False
        self._held = True
        return True

    async def release(self) -> None:
        if not self._held:
            return
        if await self._store.get_transient(self._key) == self._token:
            await self._store.delete_transient(self._key)
        self._held = False


async def clear_lock(store: StateStore, key: str = ENGINE_LOCK_KEY) -> None:
    """Forcibly drop the lock regardless of holder."""
    await store.delete_transient(key)
