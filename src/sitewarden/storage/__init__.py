# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Persistence layer -- option/transient stores and the scan state repository."""

from sitewarden.storage.base import StateStore
from sitewarden.storage.memory import MemoryStateStore
from sitewarden.storage.repository import StateRepository
from sitewarden.storage.sqlite import SqliteStateStore

__all__ = [
    "MemoryStateStore",
    "SqliteStateStore",
    "StateRepository",
    "StateStore",
]
