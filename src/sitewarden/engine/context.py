# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Per-tick context shared by every scan phase."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from sitewarden.ai.base import VerdictService
from sitewarden.core.config import Settings
from sitewarden.core.constants import CANCEL_PENDING_KEY, FORCE_CANCEL_KEY, ScanStatus
from sitewarden.patterns.catalog import PatternCatalog
from sitewarden.remote.client import CoreChecksumClient, PatternServiceClient
from sitewarden.sources.base import SiteDataSource
from sitewarden.storage.base import StateStore
from sitewarden.storage.repository import StateRepository


@dataclass
class TickContext:
    """Collaborators and the wall-clock budget of one ``execute()`` call.

    Phases read their inputs from here and record per-file failures in
    ``errors``; nothing in the context is persisted.
    """

    settings: Settings
    store: StateStore
    catalog: PatternCatalog
    source: SiteDataSource | None = None
    verdict_service: VerdictService | None = None
    pattern_client: PatternServiceClient | None = None
    checksum_client: CoreChecksumClient | None = None
    started_at: float = field(default_factory=time.monotonic)
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def repository(self) -> StateRepository:
        return StateRepository(self.store)

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def out_of_time(self, reserve: float = 0.0) -> bool:
        """Whether the tick has used its safe budget, less *reserve* seconds."""
        return self.elapsed() > self.settings.safe_time - reserve

    async def cancel_requested(self) -> bool:
        """Re-read the authoritative cancel signals and persisted status."""
        if await self.store.get_transient(FORCE_CANCEL_KEY):
            return True
        if await self.store.get(CANCEL_PENDING_KEY):
            return True
        current = await self.repository.load()
        return current.status != ScanStatus.RUNNING
