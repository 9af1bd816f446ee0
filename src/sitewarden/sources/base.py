# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Read-only access to the scanned site's own database."""

from __future__ import annotations

import abc
from typing import Any

from sitewarden.models.site import CommentRecord, TableTarget, UserRecord


class SiteDataSource(abc.ABC):
    """Paged, read-only queries used by the content and account checkers."""

    def __init__(self, table_prefix: str = "wp_") -> None:
        self.table_prefix = table_prefix

    def table_name(self, base: str) -> str:
        """Return the prefixed physical name of a core table."""
        return f"{self.table_prefix}{base}"

    @abc.abstractmethod
    async def list_comments(self, offset: int, limit: int) -> list[CommentRecord]:
        """Comments of every status, newest first."""

    @abc.abstractmethod
    async def list_admins(self, limit: int) -> list[UserRecord]:
        """Administrators as the site's own user listing reports them."""

    @abc.abstractmethod
    async def query_db_admins(self) -> list[UserRecord]:
        """Administrators found by querying capability metadata directly."""

    @abc.abstractmethod
    async def load_autoload_options(self) -> dict[str, str]:
        """Every autoloaded option, name to raw value."""

    @abc.abstractmethod
    async def fetch_rows(self, target: TableTarget, offset: int, limit: int) -> list[dict[str, Any]]:
        """One page of *target*; each row carries ``row_id`` plus its columns."""

    async def close(self) -> None:
        """Release any resources held by the source."""
