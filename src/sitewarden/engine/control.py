# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Start, cancel and poll scans from outside the engine."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime

from sitewarden.core.config import Settings
from sitewarden.core.constants import (
    CANCEL_PENDING_KEY,
    FORCE_CANCEL_KEY,
    FORCE_CANCEL_TTL,
    PATTERNS_SOURCE_KEY,
    ScanStatus,
)
from sitewarden.core.exceptions import ScanError
from sitewarden.engine.lock import clear_lock
from sitewarden.models.state import FinalMessage, ScanProgress, ScanState
from sitewarden.patterns.catalog import PatternCatalog
from sitewarden.storage.base import StateStore
from sitewarden.storage.repository import StateRepository

logger = logging.getLogger("sitewarden.engine.control")

_ENFORCE_MAX_ATTEMPTS = 12
_ENFORCE_REWRITES = 5
_ENFORCE_INTERVAL = 0.05


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


async def start_scan(store: StateStore, *, scheduled: bool = False) -> ScanState:
    """Write a fresh running state.

    Raises:
        ScanError: If a scan is already running.
    """
    repo = StateRepository(store)
    current = await repo.load()
    if current.status == ScanStatus.RUNNING:
        raise ScanError("A scan is already running")

    await clear_lock(store)
    await store.delete_transient(FORCE_CANCEL_KEY)
    await store.delete(CANCEL_PENDING_KEY)
    await store.delete(PATTERNS_SOURCE_KEY)
    await PatternCatalog(store).clear_cache()

    state = ScanState(
        status=ScanStatus.RUNNING,
        started=_now(),
        scan_start_time=time.time(),
        is_scheduled_scan=scheduled,
        current_folder="Preparing scan engine",
    )
    await repo.save(state)
    logger.info("Scan started (%s)", "scheduled" if scheduled else "manual")
    return state


async def cancel_scan(store: StateStore) -> ScanState:
    """Cancel a running scan, keeping the findings gathered so far.

    A no-op returning the current state when nothing is running.
    """
    repo = StateRepository(store)
    state = await repo.load()
    if state.status != ScanStatus.RUNNING:
        return state

    await store.set_transient(FORCE_CANCEL_KEY, True, FORCE_CANCEL_TTL)
    await store.set(CANCEL_PENDING_KEY, True)

    state.status = ScanStatus.CANCELLED
    state.completed = _now()
    if state.scan_start_time:
        state.elapsed = round(time.time() - state.scan_start_time, 2)
    state.progress_frozen = True
    state.suspicious = len(state.findings)
    detail = (
        f"{state.scanned:,} files scanned • {state.suspicious:,} suspicious issue(s) "
        "found before cancellation"
    )
    state.final_message = FinalMessage(text="Scan was cancelled", detail=detail, box_class="cancelled")
    state.current_folder = detail
    state.strip_cursors()
    await repo.save(state)

    await clear_lock(store)
    await store.delete(PATTERNS_SOURCE_KEY)
    await PatternCatalog(store).clear_cache()
    logger.info("Scan cancelled after %d files", state.scanned)
    return state


class CancelEnforcer:
    """Repeatedly force a pending cancel into the persisted state.

    Intended to be called on every external trigger.  While a cancel is
    pending it rewrites the state as cancelled several times in a row, so
    a tick that loaded the state before the cancel cannot resurrect it.
    Gives up and clears the flags after a bounded number of attempts.
    """

    def __init__(self, store: StateStore, *, interval: float = _ENFORCE_INTERVAL) -> None:
        self._store = store
        self._repo = StateRepository(store)
        self._interval = interval
        self.attempts = 0

    async def _clear_flags(self) -> None:
        await self._store.delete_transient(FORCE_CANCEL_KEY)
        await self._store.delete(CANCEL_PENDING_KEY)

    async def enforce(self) -> bool:
        """Return True when a pending cancel was acted upon."""
        forced = bool(await self._store.get_transient(FORCE_CANCEL_KEY))
        pending = bool(await self._store.get(CANCEL_PENDING_KEY))
        if not forced and not pending:
            self.attempts = 0
            return False

        self.attempts += 1
        if self.attempts > _ENFORCE_MAX_ATTEMPTS:
            await self._clear_flags()
            self.attempts = 0
            return False

        state = await self._repo.load()
        stuck = state.status == ScanStatus.IDLE and state.started is not None
        if state.status == ScanStatus.RUNNING or stuck:
            for _ in range(_ENFORCE_REWRITES):
                state = await self._repo.load()
                state.status = ScanStatus.CANCELLED
                state.completed = state.completed or _now()
                state.progress_frozen = True
                state.strip_cursors()
                state.progress = 0
                state.force_cancelled = True
                await self._repo.save(state)
                await asyncio.sleep(self._interval)

            state.final_message = FinalMessage(
                text="Scan forcefully and permanently cancelled",
                detail="All processes stopped. No resumption possible.",
                box_class="cancelled",
            )
            await self._repo.save(state)
            logger.warning("Forced cancellation applied")

        await clear_lock(self._store)
        await self._clear_flags()
        return True


async def enforce_repetitive_cancel(store: StateStore, enforcer: CancelEnforcer | None = None) -> bool:
    return await (enforcer or CancelEnforcer(store)).enforce()


async def get_progress(store: StateStore, settings: Settings | None = None) -> ScanProgress:
    """Snapshot the persisted state with derived progress and counters."""
    state = await StateRepository(store).load()
    progress = 0
    if state.total_files > 0:
        progress = min(100, round(state.scanned / state.total_files * 100))
    elif state.progress_frozen:
        progress = state.progress
    if state.status in (ScanStatus.COMPLETED, ScanStatus.CANCELLED, ScanStatus.SINGLE):
        progress = 100

    source = await store.get(PATTERNS_SOURCE_KEY, "")
    return ScanProgress(
        state=state,
        progress=progress,
        threats=state.suspicious,
        ignored=len(settings.ignored_paths) if settings else 0,
        patterns_source=source or state.patterns_source or "",
    )
