# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Records read from the site's own database."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CommentRecord(BaseModel):
    comment_id: int
    user_id: int = 0
    author: str = ""
    author_email: str = ""
    author_url: str = ""
    content: str = ""
    date: str = ""


class UserRecord(BaseModel):
    id: int
    login: str
    email: str = ""
    registered: datetime
    display_name: str = ""
    roles: list[str] = Field(default_factory=lambda: ["administrator"])
    password_hash: str = ""


class TableTarget(BaseModel):
    """A table and the textual columns the deep scan reads from it."""

    table: str
    id_column: str
    columns: list[str]
