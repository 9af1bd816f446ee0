# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Deep scan of textual database columns with the file pattern rules."""

from __future__ import annotations

import logging

from sitewarden.core.constants import (
    DATABASE_BATCH_SIZE,
    DATABASE_MIN_VALUE_LENGTH,
    DbType,
    ScanStep,
    StepStatus,
)
from sitewarden.core.exceptions import SitewardenError
from sitewarden.engine.context import TickContext
from sitewarden.models.finding import Finding, existing_source_keys
from sitewarden.models.site import TableTarget
from sitewarden.models.state import DatabaseState, ScanState, StepCount
from sitewarden.scanner.content import scan_database_value
from sitewarden.sources.base import SiteDataSource

logger = logging.getLogger("sitewarden.checkers.database")

# base table name -> (id column, text columns)
_DEFAULT_TABLES: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("postmeta", "meta_id", ("meta_value",)),
    ("usermeta", "umeta_id", ("meta_value",)),
    ("options", "option_id", ("option_value",)),
    ("commentmeta", "meta_id", ("meta_value",)),
    ("termmeta", "meta_id", ("meta_value",)),
    ("posts", "ID", ("post_content", "post_excerpt")),
    ("comments", "comment_ID", ("comment_content",)),
)


def default_targets(source: SiteDataSource) -> list[TableTarget]:
    return [
        TableTarget(table=source.table_name(base), id_column=id_col, columns=list(cols))
        for base, id_col, cols in _DEFAULT_TABLES
    ]


def deep_path(table: str, row_id: object, column: str) -> str:
    return f"Database → Table: {table} → Row ID: {row_id} → Column: {column}"


def _finish(state: ScanState, db: DatabaseState | None) -> None:
    checked = found = 0
    if db is not None:
        checked = sum(c.checked for c in db.table_counts.values())
        found = sum(c.found for c in db.table_counts.values())
    state.set_count(ScanStep.DATABASE, checked, found)
    if found > 0:
        state.step_status[ScanStep.DATABASE] = StepStatus.WARNING
    state.database_deep_completed = True
    state.database = None
    logger.info("Database deep scan complete: %d values checked, %d found", checked, found)


async def run_database_deep(state: ScanState, ctx: TickContext) -> None:
    """Scan one batch of the current table; advance tables as they run dry."""
    if state.database_deep_completed:
        return
    if not ctx.settings.database_deep_scan_enabled or ctx.source is None:
        _finish(state, state.database)
        return

    if state.database is None:
        state.database = DatabaseState(
            tables=default_targets(ctx.source), batch_size=DATABASE_BATCH_SIZE
        )
        state.current_step = ScanStep.DATABASE
        state.set_count(ScanStep.DATABASE, 0, 0)
    db = state.database

    if db.current >= len(db.tables):
        _finish(state, db)
        return

    target = db.tables[db.current]
    counts = db.table_counts.setdefault(target.table, StepCount())
    state.current_folder = f"Deep scanning database table {target.table}"

    try:
        rows = await ctx.source.fetch_rows(target, db.offset, db.batch_size)
    except SitewardenError as exc:
        logger.warning("Skipping table %s: %s", target.table, exc)
        ctx.errors.append(f"{target.table}: {exc}")
        rows = []

    if not rows:
        db.current += 1
        db.offset = 0
        if db.current >= len(db.tables):
            _finish(state, db)
        return

    rules = await ctx.catalog.load()
    existing = existing_source_keys(state.findings)
    ignored = set(ctx.settings.ignored_paths)
    processed = 0

    for row in rows:
        if ctx.out_of_time(reserve=3):
            break
        processed += 1
        row_id = row.get("row_id")
        for column in target.columns:
            value = row.get(column)
            if not isinstance(value, str) or len(value) < DATABASE_MIN_VALUE_LENGTH:
                continue
            counts.checked += 1
            path = deep_path(target.table, row_id, column)
            if path in existing or path in ignored:
                continue
            snippets = await scan_database_value(value, ctx.settings, rules)
            if not snippets:
                continue
            state.findings.append(
                Finding(
                    path=path,
                    size=len(value),
                    mtime="N/A (database)",
                    snippets=snippets,
                    is_database=True,
                    db_type=DbType.DEEP,
                    db_table=target.table,
                    db_row_id=row_id,
                    db_column=column,
                )
            )
            existing.add(path)
            counts.found += 1

    db.offset += processed
    state.suspicious = len(state.findings)
    state.set_count(
        ScanStep.DATABASE,
        sum(c.checked for c in db.table_counts.values()),
        sum(c.found for c in db.table_counts.values()),
    )
    if counts.found > 0:
        state.step_status[ScanStep.DATABASE] = StepStatus.WARNING
