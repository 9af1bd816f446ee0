# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""ScanEngine: one bounded, resumable slice of a site scan per ``execute()``.

Each call takes the engine lock, loads the persisted :class:`ScanState`,
runs the first incomplete phase (or one malware-scan chunk), and writes
the state back.  Phases run in a fixed order:

    plugin → core → spamvertising → password → audit → database
    → discovery (external, then internal) → malware → finalize

The next external trigger continues where this one stopped.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from sitewarden.ai.base import VerdictService
from sitewarden.checkers.audit import run_user_option_audit
from sitewarden.checkers.database import run_database_deep
from sitewarden.checkers.integrity import run_core_integrity, run_self_integrity
from sitewarden.checkers.passwords import run_password_audit
from sitewarden.checkers.spamvertising import run_spamvertising
from sitewarden.core.config import Settings, get_settings
from sitewarden.core.constants import (
    PATTERNS_SOURCE_KEY,
    MalwarePhase,
    ScanStatus,
    ScanStep,
    StepStatus,
)
from sitewarden.core.exceptions import SitewardenError
from sitewarden.discovery.external import is_external
from sitewarden.discovery.files import relative_path, run_file_discovery
from sitewarden.engine.adaptive import next_chunk_size, record_chunk_time
from sitewarden.engine.context import TickContext
from sitewarden.engine.lock import EngineLock
from sitewarden.models.finding import Finding
from sitewarden.models.pattern import PatternRule
from sitewarden.models.state import FinalMessage, ScanState
from sitewarden.patterns.catalog import PatternCatalog
from sitewarden.remote.client import CoreChecksumClient, PatternServiceClient
from sitewarden.scanner.content import scan_single_file
from sitewarden.sources.base import SiteDataSource
from sitewarden.storage.base import StateStore
from sitewarden.storage.repository import StateRepository

logger = logging.getLogger("sitewarden.engine.state_machine")

PhaseRunner = Callable[[ScanState, TickContext], Awaitable[None]]


@dataclass(frozen=True)
class Phase:
    step: ScanStep
    done_flag: str
    runner: PhaseRunner
    sub_state: str | None = None
    # Infrastructure errors skip the phase instead of retrying it forever.
    skippable: bool = True


PHASES: tuple[Phase, ...] = (
    Phase(ScanStep.PLUGIN, "plugin_check_completed", run_self_integrity, "plugin"),
    Phase(ScanStep.CORE, "core_check_completed", run_core_integrity, "core"),
    Phase(ScanStep.SPAMVERTISING, "spamvertising_content_completed", run_spamvertising, "spam"),
    Phase(ScanStep.PASSWORD, "password_strength_completed", run_password_audit, "password"),
    Phase(ScanStep.AUDIT, "user_option_audit_completed", run_user_option_audit, "audit"),
    Phase(ScanStep.DATABASE, "database_deep_completed", run_database_deep, "database"),
    Phase(ScanStep.ROOT, "file_list_completed", run_file_discovery, skippable=False),
)


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _file_mtime(path: str) -> str:
    return datetime.fromtimestamp(os.path.getmtime(path)).strftime("%Y-%m-%d %H:%M")


def final_message(state: ScanState) -> FinalMessage:
    """Summary shown once a scan completes."""
    suspicious = state.suspicious
    scheduled = state.is_scheduled_scan
    if suspicious == 0:
        text = (
            "Scheduled scan completed - Site is clean!"
            if scheduled
            else "Scan completed - Your site is clean!"
        )
        threats = "No threats found - Excellent!"
    else:
        text = "Scheduled scan completed!" if scheduled else "Scan completed successfully!"
        threats = f"{suspicious:,} suspicious files found"
    return FinalMessage(
        text=text,
        detail=f"{state.scanned:,} files scanned • {threats}",
        box_class="clean" if suspicious == 0 else "threat",
    )


class ScanEngine:
    """Drive a persisted scan forward one tick at a time.

    Parameters
    ----------
    store:
        Where the scan state, transients and lock live.
    settings:
        Optional ``Settings`` override; falls back to ``get_settings()``.
    source:
        The site's database, for the content and account phases.  Those
        phases complete immediately when it is absent.
    verdict_service:
        Optional AI verdict service used by the malware phase.
    """

    def __init__(
        self,
        store: StateStore,
        settings: Settings | None = None,
        *,
        source: SiteDataSource | None = None,
        verdict_service: VerdictService | None = None,
        pattern_client: PatternServiceClient | None = None,
        checksum_client: CoreChecksumClient | None = None,
        catalog: PatternCatalog | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._source = source
        self._verdict_service = verdict_service
        self._pattern_client = pattern_client
        self._checksum_client = checksum_client
        self._catalog = catalog or PatternCatalog(
            store, pattern_client, self_dir=self._settings.self_dir
        )
        self._repo = StateRepository(store)

    @property
    def settings(self) -> Settings:
        return self._settings

    def _context(self) -> TickContext:
        return TickContext(
            settings=self._settings,
            store=self._store,
            catalog=self._catalog,
            source=self._source,
            verdict_service=self._verdict_service,
            pattern_client=self._pattern_client,
            checksum_client=self._checksum_client,
        )

    async def execute(self) -> ScanState | None:
        """Run one tick.  Never raises.

        Returns the state as persisted by this tick, or ``None`` when the
        tick did not run (lock busy) or did not write (cancelled, faulted).
        """
        ttl = max(self._settings.lock_ttl, self._settings.max_execution_time)
        lock = EngineLock(self._store, ttl=ttl)
        try:
            if not await lock.acquire():
                return None
            try:
                return await self._tick()
            finally:
                await lock.release()
        except Exception as exc:
            logger.error("Scan tick aborted: %s", exc, exc_info=True)
            return None

    async def _tick(self) -> ScanState | None:
        ctx = self._context()
        state = await self._repo.load()
        if state.status != ScanStatus.RUNNING:
            return state

        if not state.initialized:
            state.initialized = True
            state.chunk_start = 0
            state.scan_start_time = state.scan_start_time or time.time()
            state.current_folder = state.current_folder or "Preparing scan engine"

        step = state.current_step
        try:
            await self._advance(state, ctx)
        except Exception as exc:
            step = state.current_step or step
            logger.error(
                "Phase %s faulted: %s", step or "engine", exc,
                exc_info=True, extra={"scan_step": step or "engine"},
            )
            await self._record_fault(step, exc)
            return None

        if ctx.cancelled or await ctx.cancel_requested():
            logger.info("Cancel observed; discarding this tick's state")
            return None

        state.errors += len(ctx.errors)
        await self._repo.save(state)
        return state

    async def _record_fault(self, step: ScanStep | None, exc: Exception) -> None:
        """Note a phase fault on the persisted state without applying progress."""
        current = await self._repo.load()
        if current.status != ScanStatus.RUNNING:
            return
        current.step_error[step or "engine"] = str(exc) or type(exc).__name__
        current.errors += 1
        await self._repo.save(current)

    async def _advance(self, state: ScanState, ctx: TickContext) -> None:
        for phase in PHASES:
            if getattr(state, phase.done_flag):
                continue
            if phase.step == ScanStep.DATABASE and not self._settings.database_deep_scan_enabled:
                continue
            if phase.step != ScanStep.ROOT:
                state.current_step = phase.step
            try:
                await phase.runner(state, ctx)
            except SitewardenError as exc:
                if not phase.skippable:
                    raise
                logger.warning(
                    "Skipping %s phase: %s", phase.step, exc, extra={"scan_step": phase.step}
                )
                state.step_error[phase.step] = str(exc)
                setattr(state, phase.done_flag, True)
                if phase.sub_state:
                    setattr(state, phase.sub_state, None)
            state.suspicious = len(state.findings)
            return

        await self._run_malware(state, ctx)

    # ------------------------------------------------------------------
    # Malware phase
    # ------------------------------------------------------------------

    async def _run_malware(self, state: ScanState, ctx: TickContext) -> None:
        settings = self._settings
        state.current_step = ScanStep.MALWARE

        if state.malware_phase in (None, MalwarePhase.START):
            state.current_folder = "Starting deep malware, backdoor, and vulnerability detection"
            state.malware_phase = MalwarePhase.RUNNING
            await ctx.catalog.load()
            state.patterns_source = str(ctx.catalog.source) if ctx.catalog.source else None
            return

        files = state.file_list or []
        total = state.total_files
        start = state.chunk_start or 0
        end = start

        if start < total:
            site_root = settings.site_root.resolve()
            chunk = next_chunk_size(
                state.adaptive, settings, external=is_external(files[start], site_root)
            )
            end = min(start + chunk, total)
            rules = await ctx.catalog.load()
            existing = {f.path for f in state.findings}
            chunk_started = time.monotonic()

            for i in range(start, end):
                if ctx.out_of_time():
                    state.chunk_start = i
                    return
                if await ctx.cancel_requested():
                    ctx.cancelled = True
                    return

                full = files[i]
                rel = relative_path(full, site_root)
                state.current_folder = f"Scanning {os.path.dirname(rel) or '/'}"
                if rel not in existing:
                    finding = await self._scan_file(full, rel, site_root, rules, ctx)
                    if finding is not None:
                        state.findings.append(finding)
                        existing.add(rel)
                state.scanned += 1
                state.progress = min(100, round(state.scanned / total * 100)) if total else 0

            record_chunk_time(state.adaptive, time.monotonic() - chunk_started)
            state.chunk_start = end
            state.suspicious = len(state.findings)
            state.set_count(ScanStep.MALWARE, total, state.suspicious)
            logger.debug(
                "Chunk %d-%d of %d done", start, end, total,
                extra={"scan_step": ScanStep.MALWARE, "chunk": f"{start}-{end}"},
            )

        if end >= total:
            await self._finalize(state)

    async def _scan_file(
        self,
        full: str,
        rel: str,
        site_root: Path,
        rules: Sequence[PatternRule],
        ctx: TickContext,
    ) -> Finding | None:
        try:
            snippets = await scan_single_file(
                Path(full), self._settings, rules, ctx.verdict_service, label=rel
            )
            if not snippets:
                return None
            return Finding(
                path=rel,
                size=os.path.getsize(full),
                mtime=_file_mtime(full),
                snippets=snippets,
                is_external=is_external(full, site_root),
            )
        except Exception as exc:
            logger.warning("Failed to scan %s: %s", rel, exc, extra={"path": rel})
            ctx.errors.append(f"{rel}: {exc}")
            return None

    async def _finalize(self, state: ScanState) -> None:
        state.status = ScanStatus.COMPLETED
        state.completed = _now()
        if state.scan_start_time:
            state.elapsed = round(time.time() - state.scan_start_time, 2)
        state.progress = 100
        state.progress_frozen = True
        state.suspicious = len(state.findings)
        state.final_message = final_message(state)
        state.current_folder = "Malware scanning finished"
        state.step_status[ScanStep.MALWARE] = (
            StepStatus.WARNING if state.suspicious > 0 else StepStatus.SUCCESS
        )
        state.set_count(ScanStep.MALWARE, state.scanned, state.suspicious)
        state.strip_cursors()
        await self._store.delete(PATTERNS_SOURCE_KEY)
        logger.info(
            "Scan completed: %d files scanned, %d suspicious", state.scanned, state.suspicious
        )
