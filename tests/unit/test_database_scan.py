# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for the database deep scan phase."""

from __future__ import annotations

from sitewarden.checkers.database import deep_path, default_targets, run_database_deep
from sitewarden.core.constants import DbType, ScanStep, StepStatus
from sitewarden.core.exceptions import StorageError
from sitewarden.models.site import TableTarget
from sitewarden.models.state import ScanState
from sitewarden.sources.memory import InMemorySiteDataSource

PAYLOAD = "<?php eval(base64_decode($_POST['x'])); ?>" + " " * 100
PROSE = "A perfectly ordinary post about gardening and tomatoes. " * 3


class _FailingSource(InMemorySiteDataSource):
    async def fetch_rows(self, target: TableTarget, offset: int, limit: int):
        if target.table == "wp_postmeta":
            raise StorageError("no such table: wp_postmeta")
        return await super().fetch_rows(target, offset, limit)


async def _run_to_completion(state, ctx, limit: int = 40) -> int:
    ticks = 0
    while not state.database_deep_completed and ticks < limit:
        await run_database_deep(state, ctx)
        ticks += 1
    return ticks


class TestDefaultTargets:
    def test_prefixed_tables(self):
        targets = default_targets(InMemorySiteDataSource(table_prefix="blog_"))
        tables = {t.table: t for t in targets}
        assert "blog_posts" in tables
        assert tables["blog_options"].id_column == "option_id"
        assert tables["blog_options"].columns == ["option_value"]


class TestRunDatabaseDeep:
    async def test_disabled_completes_immediately(self, make_ctx):
        state = ScanState()
        await run_database_deep(state, make_ctx(source=InMemorySiteDataSource()))
        assert state.database_deep_completed
        assert state.step_counts[ScanStep.DATABASE].checked == 0

    async def test_finds_payload_in_posts(self, make_ctx, make_settings):
        source = InMemorySiteDataSource(
            tables={
                "wp_posts": [
                    {"ID": 1, "post_content": PAYLOAD, "post_excerpt": ""},
                    {"ID": 2, "post_content": PROSE, "post_excerpt": "short"},
                ],
                "wp_options": [{"option_id": 4, "option_value": PROSE}],
            }
        )
        settings = make_settings(database_deep_scan_enabled=True)
        state = ScanState()
        ctx = make_ctx(source=source, settings_override=settings)

        await _run_to_completion(state, ctx)

        assert state.database_deep_completed
        assert state.database is None
        assert len(state.findings) == 1
        finding = state.findings[0]
        assert finding.path == deep_path("wp_posts", 1, "post_content")
        assert finding.db_type == DbType.DEEP
        assert finding.db_table == "wp_posts"
        assert finding.db_row_id == 1
        assert finding.db_column == "post_content"
        counts = state.step_counts[ScanStep.DATABASE]
        assert counts.checked == 3
        assert counts.found == 1
        assert state.step_status[ScanStep.DATABASE] == StepStatus.WARNING

    async def test_one_batch_per_tick(self, make_ctx, make_settings):
        source = InMemorySiteDataSource(
            tables={"wp_postmeta": [{"meta_id": i, "meta_value": PROSE} for i in range(3)]}
        )
        settings = make_settings(database_deep_scan_enabled=True)
        state = ScanState()
        ctx = make_ctx(source=source, settings_override=settings)

        await run_database_deep(state, ctx)
        assert state.current_step == ScanStep.DATABASE
        assert state.database.current == 0
        assert state.database.offset == 3

        await run_database_deep(state, ctx)
        assert state.database.current == 1
        assert state.database.offset == 0

    async def test_failing_table_is_skipped(self, make_ctx, make_settings):
        source = _FailingSource(tables={"wp_posts": [{"ID": 1, "post_content": PAYLOAD}]})
        settings = make_settings(database_deep_scan_enabled=True)
        state = ScanState()
        ctx = make_ctx(source=source, settings_override=settings)

        await _run_to_completion(state, ctx)

        assert state.database_deep_completed
        assert ctx.errors == ["wp_postmeta: no such table: wp_postmeta"]
        assert len(state.findings) == 1

    async def test_rescan_does_not_duplicate(self, make_ctx, make_settings):
        source = InMemorySiteDataSource(tables={"wp_posts": [{"ID": 1, "post_content": PAYLOAD}]})
        settings = make_settings(database_deep_scan_enabled=True)
        state = ScanState()
        ctx = make_ctx(source=source, settings_override=settings)

        await _run_to_completion(state, ctx)
        state.database_deep_completed = False
        await _run_to_completion(state, ctx)

        assert len(state.findings) == 1
