# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Typed access to the persisted :class:`ScanState` record."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from sitewarden.core.constants import STATE_KEY
from sitewarden.models.state import ScanState
from sitewarden.storage.base import StateStore

logger = logging.getLogger("sitewarden.storage.repository")


class StateRepository:
    """Load and save the whole scan state under a single key.

    Every save is a full read-modify-write of the record.
    """

    def __init__(self, store: StateStore, key: str = STATE_KEY) -> None:
        self._store = store
        self._key = key

    @property
    def store(self) -> StateStore:
        return self._store

    async def load(self) -> ScanState:
        raw = await self._store.get(self._key)
        if not raw:
            return ScanState()
        try:
            return ScanState.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable scan state: %s", exc)
            return ScanState()

    async def save(self, state: ScanState) -> None:
        await self._store.set(self._key, state.model_dump(mode="json"))

    async def clear(self) -> None:
        await self._store.delete(self._key)
