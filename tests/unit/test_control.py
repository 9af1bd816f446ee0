# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for starting, cancelling and polling scans."""

from __future__ import annotations

import pytest

from sitewarden.core.constants import (
    CANCEL_PENDING_KEY,
    ENGINE_LOCK_KEY,
    FORCE_CANCEL_KEY,
    PATTERNS_LOCAL_CACHE_KEY,
    PATTERNS_SOURCE_KEY,
    ScanStatus,
)
from sitewarden.core.exceptions import ScanError
from sitewarden.engine.control import (
    CancelEnforcer,
    cancel_scan,
    enforce_repetitive_cancel,
    get_progress,
    start_scan,
)
from sitewarden.models.finding import Finding
from sitewarden.models.state import AdaptiveState, DiscoveryState, ScanState
from sitewarden.storage.repository import StateRepository


class TestStartScan:
    async def test_fresh_running_state(self, store):
        await store.set_transient(ENGINE_LOCK_KEY, "stale", 60)
        await store.set_transient(PATTERNS_LOCAL_CACHE_KEY, [{"regex": "a", "score": 1}], 60)

        state = await start_scan(store, scheduled=True)

        assert state.status == ScanStatus.RUNNING
        assert state.is_scheduled_scan
        assert state.started is not None
        assert (await StateRepository(store).load()).status == ScanStatus.RUNNING
        assert await store.get_transient(ENGINE_LOCK_KEY) is None
        assert await store.get_transient(PATTERNS_LOCAL_CACHE_KEY) is None

    async def test_second_start_refused(self, store):
        await start_scan(store)
        with pytest.raises(ScanError, match="already running"):
            await start_scan(store)

    async def test_restart_after_completion(self, store):
        await StateRepository(store).save(ScanState(status=ScanStatus.COMPLETED, scanned=9))
        state = await start_scan(store)
        assert state.scanned == 0


class TestCancelScan:
    async def test_cancel_keeps_findings(self, store):
        await start_scan(store)
        repo = StateRepository(store)
        state = await repo.load()
        state.scanned = 4
        state.findings = [Finding(path="a.php")]
        state.discovery = DiscoveryState(files=["x"])
        state.total_files = 10
        state.adaptive = AdaptiveState(chunk_size=162, fast_count=1, last_time=2.5)
        await repo.save(state)

        cancelled = await cancel_scan(store)

        assert cancelled.status == ScanStatus.CANCELLED
        assert cancelled.final_message.text == "Scan was cancelled"
        assert cancelled.final_message.box_class == "cancelled"
        assert "4 files scanned" in cancelled.final_message.detail
        assert cancelled.suspicious == 1
        assert cancelled.discovery is None
        assert cancelled.total_files == 0
        assert cancelled.adaptive == AdaptiveState()
        assert cancelled.progress_frozen
        assert await store.get_transient(FORCE_CANCEL_KEY)
        assert await store.get(CANCEL_PENDING_KEY)

    async def test_cancel_when_idle_is_noop(self, store):
        state = await cancel_scan(store)
        assert state.status == ScanStatus.IDLE
        assert await store.get(CANCEL_PENDING_KEY) is None


class TestCancelEnforcer:
    async def test_nothing_pending(self, store):
        assert await CancelEnforcer(store, interval=0).enforce() is False

    async def test_pending_cancel_cleared_after_acting(self, store):
        await start_scan(store)
        await cancel_scan(store)

        assert await enforce_repetitive_cancel(store, CancelEnforcer(store, interval=0)) is True
        assert await store.get_transient(FORCE_CANCEL_KEY) is None
        assert await store.get(CANCEL_PENDING_KEY) is None
        assert (await StateRepository(store).load()).status == ScanStatus.CANCELLED

    async def test_resurrected_state_forced_cancelled(self, store):
        await start_scan(store)
        await store.set(CANCEL_PENDING_KEY, True)

        assert await CancelEnforcer(store, interval=0).enforce() is True

        state = await StateRepository(store).load()
        assert state.status == ScanStatus.CANCELLED
        assert state.force_cancelled
        assert state.final_message.text == "Scan forcefully and permanently cancelled"
        assert state.adaptive.chunk_size is None

    async def test_gives_up_after_bounded_attempts(self, store):
        enforcer = CancelEnforcer(store, interval=0)
        enforcer.attempts = 12
        await store.set(CANCEL_PENDING_KEY, True)

        assert await enforcer.enforce() is False
        assert enforcer.attempts == 0
        assert await store.get(CANCEL_PENDING_KEY) is None


class TestGetProgress:
    async def test_running_progress(self, store, settings):
        await StateRepository(store).save(
            ScanState(status=ScanStatus.RUNNING, scanned=25, total_files=100, suspicious=2)
        )
        await store.set(PATTERNS_SOURCE_KEY, "Local Patterns")

        progress = await get_progress(store, settings)

        assert progress.status == ScanStatus.RUNNING
        assert progress.progress == 25
        assert progress.threats == 2
        assert progress.patterns_source == "Local Patterns"

    async def test_finished_scan_reports_full(self, store):
        await StateRepository(store).save(ScanState(status=ScanStatus.COMPLETED, patterns_source="Server"))
        progress = await get_progress(store)
        assert progress.progress == 100
        assert progress.patterns_source == "Server"
        assert progress.ignored == 0

    async def test_ignored_count(self, store, make_settings):
        progress = await get_progress(store, make_settings(ignored_paths=["a.php", "b.php"]))
        assert progress.ignored == 2
        assert progress.status == ScanStatus.IDLE

