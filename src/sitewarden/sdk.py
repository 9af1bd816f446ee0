# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Public SDK for programmatic use of sitewarden.

Usage::

    from sitewarden import run_scan_sync, scan_content_sync

    state = run_scan_sync()
    print(state.status, state.suspicious)

    detections = scan_content_sync("<?php eval(base64_decode($_POST['x'])); ?>")
    for d in detections:
        print(d.original_line, d.score, d.confidence)

Async variants (``run_scan``, ``tick``, ``scan_content`` ...) are available
for use inside an existing event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from sitewarden.ai.anthropic_service import AnthropicVerdictService
from sitewarden.core.config import Settings, get_settings
from sitewarden.core.constants import ScanStatus
from sitewarden.core.exceptions import ConfigurationError
from sitewarden.engine import control
from sitewarden.engine.state_machine import ScanEngine
from sitewarden.models.finding import Detection
from sitewarden.models.state import ScanProgress, ScanState
from sitewarden.patterns.catalog import PatternCatalog
from sitewarden.remote.client import CoreChecksumClient, PatternServiceClient
from sitewarden.scanner import content as content_scanner
from sitewarden.sources.base import SiteDataSource
from sitewarden.sources.sqlite import SqliteSiteDataSource
from sitewarden.storage.base import StateStore
from sitewarden.storage.repository import StateRepository
from sitewarden.storage.sqlite import SqliteStateStore

logger = logging.getLogger("sitewarden.sdk")

# A tick that neither advances nor ends the scan this many times in a row
# stops run_scan instead of spinning.
_MAX_STALLED_TICKS = 25


@dataclass
class _Resources:
    settings: Settings
    store: StateStore
    source: SiteDataSource | None
    pattern_client: PatternServiceClient | None
    checksum_client: CoreChecksumClient | None
    verdict_service: AnthropicVerdictService | None

    def engine(self) -> ScanEngine:
        return ScanEngine(
            self.store,
            self.settings,
            source=self.source,
            verdict_service=self.verdict_service,
            pattern_client=self.pattern_client,
            checksum_client=self.checksum_client,
        )

    def catalog(self) -> PatternCatalog:
        return PatternCatalog(self.store, self.pattern_client, self_dir=self.settings.self_dir)


@asynccontextmanager
async def _open_resources(
    settings: Settings | None = None,
    *,
    store: StateStore | None = None,
    source: SiteDataSource | None = None,
) -> AsyncIterator[_Resources]:
    """Build the store, site source and service clients from settings.

    Stores and sources passed in by the caller are used as-is and left
    open; anything opened here is closed on exit.

    Raises:
        ConfigurationError: If ``site_db_path`` is set but does not exist.
    """
    settings = settings or get_settings()
    own_store = store is None
    own_source = source is None and settings.site_db_path is not None
    if own_source and not Path(settings.site_db_path).is_file():
        raise ConfigurationError(f"Site database not found: {settings.site_db_path}")

    if store is None:
        store = await SqliteStateStore.open(settings.state_db_path)
    if own_source:
        source = await SqliteSiteDataSource.open(settings.site_db_path, settings.table_prefix)

    pattern_client = (
        PatternServiceClient(settings.pattern_service_url, settings.pattern_service_timeout)
        if settings.pattern_service_url
        else None
    )
    checksum_client = (
        CoreChecksumClient(settings.core_checksums_url, settings.core_checksums_timeout)
        if settings.core_checksums_url and settings.core_version
        else None
    )
    verdict_service = AnthropicVerdictService(settings) if settings.ai_deep_scan_enabled else None

    try:
        yield _Resources(
            settings=settings,
            store=store,
            source=source,
            pattern_client=pattern_client,
            checksum_client=checksum_client,
            verdict_service=verdict_service,
        )
    finally:
        if own_source and source is not None:
            await source.close()
        if own_store:
            await store.close()


# ---------------------------------------------------------------------------
# Public async API
# ---------------------------------------------------------------------------


async def start_scan(
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
    scheduled: bool = False,
) -> ScanState:
    """Write a fresh running scan state.

    Raises
    ------
    ScanError
        If a scan is already running.
    """
    async with _open_resources(settings, store=store) as res:
        return await control.start_scan(res.store, scheduled=scheduled)


async def tick(
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
    source: SiteDataSource | None = None,
) -> ScanState | None:
    """Enforce any pending cancel, then run one engine tick.

    Returns the state written by the tick, or ``None`` if the tick did not
    run or did not persist anything.
    """
    async with _open_resources(settings, store=store, source=source) as res:
        if await control.enforce_repetitive_cancel(res.store):
            return None
        return await res.engine().execute()


async def run_scan(
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
    source: SiteDataSource | None = None,
    scheduled: bool = False,
    max_ticks: int | None = None,
) -> ScanState:
    """Start a scan (unless one is running) and tick it to completion.

    Parameters
    ----------
    settings:
        Optional ``Settings`` override; falls back to ``get_settings()``.
    store:
        State store to use instead of the SQLite file in settings.
    source:
        Site database to use instead of ``site_db_path``.
    scheduled:
        Mark the scan as a scheduled run in its final message.
    max_ticks:
        Stop after this many ticks even if the scan is still running.

    Returns
    -------
    ScanState
        The last persisted state.
    """
    async with _open_resources(settings, store=store, source=source) as res:
        repo = StateRepository(res.store)
        state = await repo.load()
        if state.status != ScanStatus.RUNNING:
            state = await control.start_scan(res.store, scheduled=scheduled)

        engine = res.engine()
        enforcer = control.CancelEnforcer(res.store)
        ticks = 0
        stalled = 0
        while state.status == ScanStatus.RUNNING:
            if max_ticks is not None and ticks >= max_ticks:
                break
            ticks += 1
            await enforcer.enforce()
            result = await engine.execute()
            if result is None:
                stalled += 1
                if stalled >= _MAX_STALLED_TICKS:
                    logger.warning("Scan made no progress in %d ticks; stopping", stalled)
                    break
                await asyncio.sleep(0)
            else:
                stalled = 0
            state = await repo.load()

        logger.info("run_scan finished after %d tick(s) with status %s", ticks, state.status)
        return state


async def cancel_scan(
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
) -> ScanState:
    """Cancel the running scan, if any."""
    async with _open_resources(settings, store=store) as res:
        return await control.cancel_scan(res.store)


async def get_progress(
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
) -> ScanProgress:
    """Snapshot the persisted scan state for polling callers."""
    async with _open_resources(settings, store=store) as res:
        return await control.get_progress(res.store, res.settings)


async def scan_single_file(
    path: str | Path,
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
    use_ai: bool = True,
) -> list[Detection]:
    """Scan one file outside of any scan run.

    Raises
    ------
    ScanError
        If the file cannot be read.
    """
    async with _open_resources(settings, store=store) as res:
        rules = await res.catalog().load()
        service = res.verdict_service if use_ai else None
        return await content_scanner.scan_single_file(Path(path), res.settings, rules, service)


async def scan_content(
    text: str,
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
) -> list[Detection]:
    """Scan an ad hoc text blob. No AI verdict is requested."""
    async with _open_resources(settings, store=store) as res:
        rules = await res.catalog().load()
        return await content_scanner.scan_content(text, res.settings, rules)


# ---------------------------------------------------------------------------
# Public sync wrappers
# ---------------------------------------------------------------------------


def start_scan_sync(
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
    scheduled: bool = False,
) -> ScanState:
    """Synchronous wrapper around :func:`start_scan`."""
    return asyncio.run(start_scan(settings=settings, store=store, scheduled=scheduled))


def tick_sync(
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
    source: SiteDataSource | None = None,
) -> ScanState | None:
    """Synchronous wrapper around :func:`tick`."""
    return asyncio.run(tick(settings=settings, store=store, source=source))


def run_scan_sync(
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
    source: SiteDataSource | None = None,
    scheduled: bool = False,
    max_ticks: int | None = None,
) -> ScanState:
    """Synchronous wrapper around :func:`run_scan`."""
    return asyncio.run(
        run_scan(
            settings=settings,
            store=store,
            source=source,
            scheduled=scheduled,
            max_ticks=max_ticks,
        )
    )


def cancel_scan_sync(
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
) -> ScanState:
    """Synchronous wrapper around :func:`cancel_scan`."""
    return asyncio.run(cancel_scan(settings=settings, store=store))


def get_progress_sync(
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
) -> ScanProgress:
    """Synchronous wrapper around :func:`get_progress`."""
    return asyncio.run(get_progress(settings=settings, store=store))


def scan_single_file_sync(
    path: str | Path,
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
    use_ai: bool = True,
) -> list[Detection]:
    """Synchronous wrapper around :func:`scan_single_file`."""
    return asyncio.run(scan_single_file(path, settings=settings, store=store, use_ai=use_ai))


def scan_content_sync(
    text: str,
    *,
    settings: Settings | None = None,
    store: StateStore | None = None,
) -> list[Detection]:
    """Synchronous wrapper around :func:`scan_content`."""
    return asyncio.run(scan_content(text, settings=settings, store=store))
