# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for the public SDK (async functions and sync wrappers)."""

from __future__ import annotations

import pytest

from sitewarden import (
    __version__,
    cancel_scan_sync,
    get_progress_sync,
    run_scan,
    run_scan_sync,
    scan_content_sync,
    scan_single_file_sync,
    start_scan_sync,
    tick,
    tick_sync,
)
from sitewarden.core.constants import FORCE_CANCEL_KEY, ScanStatus
from sitewarden.core.exceptions import ConfigurationError, ScanError
from sitewarden.engine.lock import EngineLock
from sitewarden.sdk import start_scan
from sitewarden.sources.memory import InMemorySiteDataSource

WEBSHELL = "<?php\n// loader\neval(base64_decode($_POST['cmd']));\n"


@pytest.fixture
def infected_site(site_root, write_file):
    write_file(site_root, "shell.php", WEBSHELL)
    write_file(site_root, "index.php", "<?php\necho 'home';\n")
    return site_root


class TestVersion:
    def test_version_exported(self):
        assert __version__ == "0.4.0"


class TestRunScan:
    def test_run_scan_sync_completes(self, infected_site, settings, store):
        state = run_scan_sync(settings=settings, store=store, source=InMemorySiteDataSource())
        assert state.status == ScanStatus.COMPLETED
        assert state.scanned == 2
        assert state.suspicious == 1
        assert state.findings[0].path == "shell.php"

    def test_max_ticks_leaves_scan_running(self, infected_site, settings, store):
        state = run_scan_sync(settings=settings, store=store, max_ticks=1)
        assert state.status == ScanStatus.RUNNING
        assert state.initialized

    def test_resumes_running_scan(self, infected_site, settings, store):
        run_scan_sync(settings=settings, store=store, max_ticks=3)
        state = run_scan_sync(settings=settings, store=store)
        assert state.status == ScanStatus.COMPLETED

    async def test_stalled_scan_stops(self, settings, store):
        await start_scan(settings=settings, store=store)
        await EngineLock(store, ttl=600).acquire()
        state = await run_scan(settings=settings, store=store)
        assert state.status == ScanStatus.RUNNING

    def test_sqlite_state_file_used_by_default(self, infected_site, settings):
        state = run_scan_sync(settings=settings)
        assert state.status == ScanStatus.COMPLETED
        assert settings.state_db_path.exists()
        assert get_progress_sync(settings=settings).progress == 100

    def test_missing_site_database_rejected(self, make_settings, tmp_path):
        settings = make_settings(site_db_path=tmp_path / "absent.sqlite")
        with pytest.raises(ConfigurationError, match="absent.sqlite"):
            run_scan_sync(settings=settings)
        assert not (tmp_path / "absent.sqlite").exists()
        assert not settings.state_db_path.exists()


class TestTickAndControl:
    def test_start_twice_raises(self, settings, store):
        start_scan_sync(settings=settings, store=store)
        with pytest.raises(ScanError):
            start_scan_sync(settings=settings, store=store)

    def test_tick_advances(self, settings, store):
        start_scan_sync(settings=settings, store=store)
        state = tick_sync(settings=settings, store=store)
        assert state.initialized

    async def test_tick_enforces_pending_cancel(self, settings, store):
        await start_scan(settings=settings, store=store)
        await store.set_transient(FORCE_CANCEL_KEY, True, 60)
        assert await tick(settings=settings, store=store) is None
        assert await store.get_transient(FORCE_CANCEL_KEY) is None

    def test_cancel_and_progress(self, settings, store):
        start_scan_sync(settings=settings, store=store)
        cancelled = cancel_scan_sync(settings=settings, store=store)
        assert cancelled.status == ScanStatus.CANCELLED
        progress = get_progress_sync(settings=settings, store=store)
        assert progress.status == ScanStatus.CANCELLED
        assert progress.progress == 100


class TestAdHocScanning:
    def test_scan_content(self, settings, store):
        detections = scan_content_sync(WEBSHELL, settings=settings, store=store)
        assert detections
        assert max(d.score for d in detections) >= 85

    def test_scan_clean_content(self, settings, store):
        assert scan_content_sync("hello world", settings=settings, store=store) == []

    def test_scan_single_file(self, infected_site, settings, store):
        detections = scan_single_file_sync(
            infected_site / "shell.php", settings=settings, store=store, use_ai=False
        )
        assert detections[0].original_line == 3

    def test_scan_missing_file(self, site_root, settings, store):
        with pytest.raises(ScanError):
            scan_single_file_sync(site_root / "missing.php", settings=settings, store=store)
