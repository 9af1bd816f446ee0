# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for the self-integrity and core-integrity phases."""

from __future__ import annotations

import hashlib
from unittest.mock import AsyncMock

import pytest

from sitewarden.checkers.integrity import (
    UNREACHABLE,
    fetch_core_checksums,
    is_core_ignored,
    run_core_integrity,
    run_self_integrity,
    verify_core_files,
)
from sitewarden.core.constants import PLUGIN_MODIFIED_KEY, IntegrityPhase, ScanStep, StepStatus
from sitewarden.core.exceptions import IntegrityError, RemoteServiceError
from sitewarden.models.state import ScanState
from sitewarden.remote.client import CoreChecksumClient, PatternServiceClient, compute_own_hashes


def _md5(text: str) -> str:
    return hashlib.md5(text.encode()).hexdigest()


class TestSelfIntegrity:
    async def test_first_tick_only_initialises(self, make_ctx):
        state = ScanState()
        await run_self_integrity(state, make_ctx())
        assert state.current_step == ScanStep.PLUGIN
        assert state.plugin.phase == IntegrityPhase.VERIFY
        assert not state.plugin_check_completed

    async def test_without_service_marked_unreachable(self, make_ctx):
        state = ScanState()
        ctx = make_ctx()
        await run_self_integrity(state, ctx)
        await run_self_integrity(state, ctx)
        assert state.plugin_check_completed
        assert state.plugin is None
        assert state.step_error[ScanStep.PLUGIN] == UNREACHABLE

    async def test_service_error_marked_unreachable(self, make_ctx):
        client = AsyncMock(spec=PatternServiceClient)
        client.fetch_hashes.side_effect = RemoteServiceError("down")
        state = ScanState()
        ctx = make_ctx(pattern_client=client)
        await run_self_integrity(state, ctx)
        await run_self_integrity(state, ctx)
        assert state.step_error[ScanStep.PLUGIN] == UNREACHABLE

    async def test_modified_files_reported(self, tmp_path, make_ctx, make_settings, store, write_file):
        own = tmp_path / "own"
        write_file(own, "main.php", "<?php // original")
        write_file(own, "lib/util.php", "<?php // tampered")
        expected = compute_own_hashes(own)
        expected["lib/util.php"] = "0" * 64

        client = AsyncMock(spec=PatternServiceClient)
        client.fetch_hashes.return_value = expected
        settings = make_settings(self_dir=own)
        state = ScanState()
        ctx = make_ctx(pattern_client=client, settings_override=settings)

        await run_self_integrity(state, ctx)
        await run_self_integrity(state, ctx)
        assert state.plugin.phase == IntegrityPhase.MODIFIED
        assert state.step_counts[ScanStep.PLUGIN].checked == 2
        assert state.step_counts[ScanStep.PLUGIN].found == 1
        assert await store.get(PLUGIN_MODIFIED_KEY) is True

        await run_self_integrity(state, ctx)
        assert state.plugin_check_completed
        assert [f.path for f in state.findings] == ["wp-content/plugins/sitewarden/lib/util.php"]
        assert state.findings[0].is_plugin_modified
        assert state.findings[0].snippets[0].score == 100
        assert state.step_status[ScanStep.PLUGIN] == StepStatus.WARNING

    async def test_unmodified_install(self, tmp_path, make_ctx, make_settings, store, write_file):
        own = tmp_path / "own"
        write_file(own, "main.php", "<?php // original")
        await store.set(PLUGIN_MODIFIED_KEY, True)

        client = AsyncMock(spec=PatternServiceClient)
        client.fetch_hashes.return_value = compute_own_hashes(own)
        state = ScanState()
        ctx = make_ctx(pattern_client=client, settings_override=make_settings(self_dir=own))

        await run_self_integrity(state, ctx)
        await run_self_integrity(state, ctx)
        assert state.plugin_check_completed
        assert state.findings == []
        assert state.step_status[ScanStep.PLUGIN] == StepStatus.SUCCESS
        assert await store.get(PLUGIN_MODIFIED_KEY) is None


class TestCoreIgnore:
    def test_always_ignored(self):
        assert is_core_ignored("wp-config.php")
        assert is_core_ignored("wp-content/themes/x/functions.php")
        assert is_core_ignored("wp-admin/js/common.js")
        assert not is_core_ignored("wp-includes/functions.php")

    def test_verify_core_files(self, site_root, write_file):
        write_file(site_root, "wp-includes/load.php", "<?php // same")
        write_file(site_root, "wp-includes/plugin.php", "<?php // changed")
        write_file(site_root, "wp-config.php", "<?php // local config")
        checksums = {
            "wp-includes/load.php": _md5("<?php // same"),
            "wp-includes/plugin.php": _md5("<?php // original"),
            "wp-includes/missing.php": _md5("x"),
            "wp-config.php": _md5("anything"),
        }
        checked, modified = verify_core_files(site_root, checksums)
        assert checked == 2
        assert [m.path for m in modified] == ["wp-includes/plugin.php"]


class TestCoreIntegrity:
    def _client(self, checksums: dict[str, str]) -> AsyncMock:
        client = AsyncMock(spec=CoreChecksumClient)
        client.fetch.return_value = (checksums, "md5")
        return client

    async def test_unreachable_is_skipped(self, make_ctx, make_settings):
        client = AsyncMock(spec=CoreChecksumClient)
        client.fetch.side_effect = RemoteServiceError("offline")
        state = ScanState()
        ctx = make_ctx(checksum_client=client, settings_override=make_settings(core_version="6.5"))

        await run_core_integrity(state, ctx)
        assert state.core.phase == IntegrityPhase.FETCH
        await run_core_integrity(state, ctx)
        assert state.core.phase == IntegrityPhase.SKIPPED
        assert state.step_error[ScanStep.CORE] == UNREACHABLE
        await run_core_integrity(state, ctx)
        assert state.core_check_completed
        assert state.findings == []

    async def test_without_version_is_skipped(self, make_ctx):
        client = self._client({"wp-includes/load.php": "x"})
        state = ScanState()
        ctx = make_ctx(checksum_client=client)
        await run_core_integrity(state, ctx)
        await run_core_integrity(state, ctx)
        assert state.core.phase == IntegrityPhase.SKIPPED
        client.fetch.assert_not_called()

    async def test_modified_php_reported(self, site_root, write_file, make_ctx, make_settings):
        write_file(site_root, "wp-includes/plugin.php", "<?php // changed")
        write_file(site_root, "wp-includes/readme.txt", "changed")
        write_file(site_root, "wp-includes/load.php", "<?php // same")
        client = self._client(
            {
                "wp-includes/plugin.php": _md5("<?php // original"),
                "wp-includes/readme.txt": _md5("original"),
                "wp-includes/load.php": _md5("<?php // same"),
            }
        )
        settings = make_settings(core_version="6.5", site_locale="de_DE")
        state = ScanState()
        ctx = make_ctx(checksum_client=client, settings_override=settings)

        await run_core_integrity(state, ctx)
        await run_core_integrity(state, ctx)
        assert state.core.phase == IntegrityPhase.VERIFY
        client.fetch.assert_awaited_once_with("6.5", "de_DE")

        await run_core_integrity(state, ctx)
        assert state.core.phase == IntegrityPhase.MODIFIED
        assert state.core.checksums == {}

        await run_core_integrity(state, ctx)
        assert state.core_check_completed
        assert [f.path for f in state.findings] == ["wp-includes/plugin.php"]
        assert state.findings[0].is_core_modified
        counts = state.step_counts[ScanStep.CORE]
        assert counts.checked == 3
        assert counts.found == 2
        assert state.step_status[ScanStep.CORE] == StepStatus.WARNING

    async def test_clean_core(self, site_root, write_file, make_ctx, make_settings):
        write_file(site_root, "wp-includes/load.php", "<?php // same")
        client = self._client({"wp-includes/load.php": _md5("<?php // same")})
        state = ScanState()
        ctx = make_ctx(checksum_client=client, settings_override=make_settings(core_version="6.5"))
        for _ in range(3):
            await run_core_integrity(state, ctx)
        assert state.core_check_completed
        assert ScanStep.CORE not in state.step_status
        assert state.step_counts[ScanStep.CORE].checked == 1


class TestFetchCoreChecksums:
    async def test_returns_manifest(self, make_ctx, make_settings):
        client = AsyncMock(spec=CoreChecksumClient)
        client.fetch.return_value = ({"wp-load.php": "abc"}, "md5")
        ctx = make_ctx(checksum_client=client, settings_override=make_settings(core_version="6.5"))
        assert await fetch_core_checksums(ctx) == ({"wp-load.php": "abc"}, "md5")

    async def test_not_configured(self, make_ctx):
        with pytest.raises(IntegrityError, match="not configured"):
            await fetch_core_checksums(make_ctx())

    async def test_service_failure_wrapped(self, make_ctx, make_settings):
        client = AsyncMock(spec=CoreChecksumClient)
        client.fetch.side_effect = RemoteServiceError("offline", status_code=503)
        ctx = make_ctx(checksum_client=client, settings_override=make_settings(core_version="6.5"))
        with pytest.raises(IntegrityError, match="offline") as excinfo:
            await fetch_core_checksums(ctx)
        assert isinstance(excinfo.value.__cause__, RemoteServiceError)

    async def test_empty_manifest(self, make_ctx, make_settings):
        client = AsyncMock(spec=CoreChecksumClient)
        client.fetch.return_value = ({}, "md5")
        ctx = make_ctx(checksum_client=client, settings_override=make_settings(core_version="9.9"))
        with pytest.raises(IntegrityError, match="9.9"):
            await fetch_core_checksums(ctx)

    async def test_unknown_algorithm_skips_phase(self, make_ctx, make_settings):
        client = AsyncMock(spec=CoreChecksumClient)
        client.fetch.return_value = ({"wp-load.php": "abc"}, "crc-unknown")
        ctx = make_ctx(checksum_client=client, settings_override=make_settings(core_version="6.5"))
        with pytest.raises(IntegrityError, match="Unsupported"):
            await fetch_core_checksums(ctx)

        state = ScanState()
        await run_core_integrity(state, ctx)
        await run_core_integrity(state, ctx)
        assert state.core.phase == IntegrityPhase.SKIPPED
        assert state.step_error[ScanStep.CORE] == UNREACHABLE
