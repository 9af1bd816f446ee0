# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest

from sitewarden.core.config import Settings
from sitewarden.engine.context import TickContext
from sitewarden.models.site import UserRecord
from sitewarden.patterns.catalog import PatternCatalog
from sitewarden.sources.base import SiteDataSource
from sitewarden.storage.memory import MemoryStateStore


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    root = tmp_path / "public_html"
    root.mkdir()
    return root


@pytest.fixture
def make_settings(tmp_path: Path, site_root: Path) -> Callable[..., Settings]:
    """Build isolated settings; keyword overrides win."""

    def _make(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "site_root": site_root,
            "home_dir": tmp_path,
            "state_db_path": tmp_path / "state.db",
            "core_checksums_url": "",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings: Callable[..., Settings]) -> Settings:
    return make_settings()


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def make_ctx(
    settings: Settings, store: MemoryStateStore
) -> Callable[..., TickContext]:
    def _make(
        *,
        source: SiteDataSource | None = None,
        settings_override: Settings | None = None,
        **kwargs: object,
    ) -> TickContext:
        s = settings_override or settings
        return TickContext(
            settings=s,
            store=store,
            catalog=PatternCatalog(store),
            source=source,
            **kwargs,  # type: ignore[arg-type]
        )

    return _make


@pytest.fixture
def write_file() -> Callable[..., Path]:
    return _write_file


@pytest.fixture
def make_user() -> Callable[..., UserRecord]:
    return _make_user


def _write_file(root: Path, rel: str, content: str = "") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _make_user(
    uid: int,
    login: str,
    *,
    email: str = "",
    registered: datetime | None = None,
    display_name: str = "",
    password_hash: str = "",
) -> UserRecord:
    return UserRecord(
        id=uid,
        login=login,
        email=email or f"{login}@example.com",
        registered=registered or datetime(2020, 1, 1, 12, 0, 0),
        display_name=display_name or login,
        password_hash=password_hash,
    )
