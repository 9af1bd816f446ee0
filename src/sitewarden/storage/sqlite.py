# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""SQLite-backed state store (aiosqlite)."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

import aiosqlite

from sitewarden.core.exceptions import StorageError
from sitewarden.storage.base import StateStore

logger = logging.getLogger("sitewarden.storage.sqlite")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS options (
    name  TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS transients (
    name       TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    expires_at REAL NOT NULL
);
"""


class SqliteStateStore(StateStore):
    """Options and transients persisted as JSON text in two tables.

    Transient expiry uses wall-clock time so it survives process restarts.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    @classmethod
    async def open(cls, db_path: Path | str) -> SqliteStateStore:
        """Connect, enable WAL, and create the schema if needed."""
        try:
            conn = await aiosqlite.connect(str(db_path))
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.executescript(_SCHEMA)
            await conn.commit()
        except Exception as exc:
            msg = f"Failed to open state database at {db_path}: {exc}"
            raise StorageError(msg) from exc
        return cls(conn)

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    async def get(self, key: str, default: Any = None) -> Any:
        try:
            cursor = await self._conn.execute("SELECT value FROM options WHERE name = ?", (key,))
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to read option {key}: {exc}") from exc
        if row is None:
            return default
        return json.loads(row["value"])

    async def set(self, key: str, value: Any) -> None:
        try:
            await self._conn.execute(
                "INSERT INTO options (name, value) VALUES (?, ?) "
                "ON CONFLICT(name) DO UPDATE SET value = excluded.value",
                (key, json.dumps(value)),
            )
            await self._conn.commit()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to write option {key}: {exc}") from exc

    async def delete(self, key: str) -> bool:
        try:
            cursor = await self._conn.execute("DELETE FROM options WHERE name = ?", (key,))
            await self._conn.commit()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to delete option {key}: {exc}") from exc
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Transients
    # ------------------------------------------------------------------

    async def get_transient(self, key: str) -> Any:
        try:
            cursor = await self._conn.execute(
                "SELECT value, expires_at FROM transients WHERE name = ?", (key,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to read transient {key}: {exc}") from exc
        if row is None:
            return None
        if row["expires_at"] < time.time():
            await self.delete_transient(key)
            return None
        return json.loads(row["value"])

    async def set_transient(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._conn.execute(
                "INSERT INTO transients (name, value, expires_at) VALUES (?, ?, ?) "
                "ON CONFLICT(name) DO UPDATE SET value = excluded.value, "
                "expires_at = excluded.expires_at",
                (key, json.dumps(value), time.time() + ttl),
            )
            await self._conn.commit()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to write transient {key}: {exc}") from exc

    async def delete_transient(self, key: str) -> bool:
        try:
            cursor = await self._conn.execute("DELETE FROM transients WHERE name = ?", (key,))
            await self._conn.commit()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to delete transient {key}: {exc}") from exc
        return cursor.rowcount > 0

    async def close(self) -> None:
        await self._conn.close()
