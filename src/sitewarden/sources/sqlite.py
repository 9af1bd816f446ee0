# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Site data source over a WordPress-schema SQLite database (aiosqlite)."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from sitewarden.core.exceptions import StorageError
from sitewarden.models.site import CommentRecord, TableTarget, UserRecord
from sitewarden.sources.base import SiteDataSource

logger = logging.getLogger("sitewarden.sources.sqlite")

_IDENT_RE = re.compile(r"[^A-Za-z0-9_]")
_ROLE_RE = re.compile(r's:\d+:"([^"]+)";b:1')
_AUTOLOAD_VALUES = ("yes", "on", "auto", "auto-on")


def _ident(name: str) -> str:
    """Strip everything but ``[A-Za-z0-9_]`` so *name* is safe to interpolate."""
    return _IDENT_RE.sub("", name)


def _parse_datetime(value: object) -> datetime:
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return datetime(1970, 1, 1)


def _roles(capabilities: str) -> list[str]:
    return _ROLE_RE.findall(capabilities or "") or ["administrator"]


class SqliteSiteDataSource(SiteDataSource):
    """Read a site's ``users``, ``usermeta``, ``comments`` and ``options`` tables."""

    def __init__(self, conn: aiosqlite.Connection, table_prefix: str = "wp_") -> None:
        super().__init__(_ident(table_prefix))
        self._conn = conn

    @classmethod
    async def open(cls, db_path: Path | str, table_prefix: str = "wp_") -> SqliteSiteDataSource:
        try:
            conn = await aiosqlite.connect(str(db_path))
            conn.row_factory = aiosqlite.Row
        except Exception as exc:
            msg = f"Failed to open site database at {db_path}: {exc}"
            raise StorageError(msg) from exc
        return cls(conn, table_prefix)

    async def _fetch(self, query: str, params: tuple[Any, ...] = ()) -> list[aiosqlite.Row]:
        try:
            cursor = await self._conn.execute(query, params)
            return list(await cursor.fetchall())
        except aiosqlite.Error as exc:
            raise StorageError(f"Site database query failed: {exc}") from exc

    async def list_comments(self, offset: int, limit: int) -> list[CommentRecord]:
        rows = await self._fetch(
            f"SELECT comment_ID, user_id, comment_author, comment_author_email, "
            f"comment_author_url, comment_content, comment_date "
            f"FROM {self.table_name('comments')} "
            f"ORDER BY comment_date DESC, comment_ID DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return [
            CommentRecord(
                comment_id=int(r["comment_ID"]),
                user_id=int(r["user_id"] or 0),
                author=r["comment_author"] or "",
                author_email=r["comment_author_email"] or "",
                author_url=r["comment_author_url"] or "",
                content=r["comment_content"] or "",
                date=str(r["comment_date"] or ""),
            )
            for r in rows
        ]

    async def _admins(self, limit: int | None) -> list[UserRecord]:
        query = (
            f"SELECT u.ID, u.user_login, u.user_email, u.user_registered, u.display_name, "
            f"u.user_pass, um.meta_value "
            f"FROM {self.table_name('users')} u "
            f"INNER JOIN {self.table_name('usermeta')} um ON u.ID = um.user_id "
            f"WHERE um.meta_key = ? AND um.meta_value LIKE ? "
            f"ORDER BY u.user_registered DESC"
        )
        params: tuple[Any, ...] = (f"{self.table_prefix}capabilities", '%"administrator"%')
        if limit is not None:
            query += " LIMIT ?"
            params += (limit,)
        rows = await self._fetch(query, params)
        return [
            UserRecord(
                id=int(r["ID"]),
                login=r["user_login"] or "",
                email=r["user_email"] or "",
                registered=_parse_datetime(r["user_registered"]),
                display_name=r["display_name"] or "",
                roles=_roles(r["meta_value"]),
                password_hash=r["user_pass"] or "",
            )
            for r in rows
        ]

    async def list_admins(self, limit: int) -> list[UserRecord]:
        return await self._admins(limit)

    async def query_db_admins(self) -> list[UserRecord]:
        return await self._admins(None)

    async def load_autoload_options(self) -> dict[str, str]:
        placeholders = ", ".join("?" for _ in _AUTOLOAD_VALUES)
        rows = await self._fetch(
            f"SELECT option_name, option_value FROM {self.table_name('options')} "
            f"WHERE autoload IN ({placeholders})",
            _AUTOLOAD_VALUES,
        )
        return {r["option_name"]: str(r["option_value"] or "") for r in rows}

    async def fetch_rows(self, target: TableTarget, offset: int, limit: int) -> list[dict[str, Any]]:
        columns = [_ident(c) for c in target.columns]
        select_cols = ", ".join(f'"{c}"' for c in columns)
        rows = await self._fetch(
            f'SELECT "{_ident(target.id_column)}" AS row_id, {select_cols} '
            f'FROM "{_ident(target.table)}" LIMIT ? OFFSET ?',
            (int(limit), int(offset)),
        )
        return [{"row_id": r["row_id"], **{c: r[c] for c in columns}} for r in rows]

    async def close(self) -> None:
        await self._conn.close()
