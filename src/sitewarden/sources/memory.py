# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Site data held in plain lists, for embedding and tests."""

from __future__ import annotations

from typing import Any

from sitewarden.models.site import CommentRecord, TableTarget, UserRecord
from sitewarden.sources.base import SiteDataSource


class InMemorySiteDataSource(SiteDataSource):
    """Serve comments, accounts, options and table rows from memory.

    ``db_admins`` models the raw capability query; when omitted it equals
    ``admins``, i.e. nothing is hidden from the listing.
    """

    def __init__(
        self,
        *,
        comments: list[CommentRecord] | None = None,
        admins: list[UserRecord] | None = None,
        db_admins: list[UserRecord] | None = None,
        options: dict[str, str] | None = None,
        tables: dict[str, list[dict[str, Any]]] | None = None,
        table_prefix: str = "wp_",
    ) -> None:
        super().__init__(table_prefix)
        self.comments = list(comments or [])
        self.admins = list(admins or [])
        self.db_admins = list(db_admins) if db_admins is not None else list(self.admins)
        self.options = dict(options or {})
        self.tables = dict(tables or {})

    async def list_comments(self, offset: int, limit: int) -> list[CommentRecord]:
        ordered = sorted(self.comments, key=lambda c: (c.date, c.comment_id), reverse=True)
        return ordered[offset:offset + limit]

    async def list_admins(self, limit: int) -> list[UserRecord]:
        ordered = sorted(self.admins, key=lambda u: u.registered, reverse=True)
        return ordered[:limit]

    async def query_db_admins(self) -> list[UserRecord]:
        return list(self.db_admins)

    async def load_autoload_options(self) -> dict[str, str]:
        return dict(self.options)

    async def fetch_rows(self, target: TableTarget, offset: int, limit: int) -> list[dict[str, Any]]:
        rows = self.tables.get(target.table, [])[offset:offset + limit]
        return [
            {"row_id": row.get(target.id_column), **{c: row.get(c) for c in target.columns}}
            for row in rows
        ]
