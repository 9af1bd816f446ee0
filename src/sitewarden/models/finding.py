# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Finding and detection models."""

from __future__ import annotations

from pydantic import BaseModel, Field, computed_field

from sitewarden.core.constants import AiStatus, Confidence, DbType


class HighlightedLine(BaseModel):
    """One source line inside a detection's context window."""

    line: int
    code: str = ""
    dangerous: bool = False


class Detection(BaseModel):
    """One merged cluster of pattern matches within a finding."""

    original_line: int = 1
    matched_text: str = ""
    original_code: str = ""
    context_code: str = ""
    patterns: list[str] = Field(default_factory=list)
    score: int = 0
    confidence: Confidence = Confidence.LOW
    ai_status: AiStatus | None = AiStatus.MALICIOUS
    ai_analysis: str | None = ""
    without_ai: bool = True
    snippet_lines: list[HighlightedLine] = Field(default_factory=list)
    dangerous_lines: list[int] = Field(default_factory=list)
    error_count: int = 0


class Finding(BaseModel):
    """One reportable suspicious source: a file, database row, option, or account."""

    path: str
    size: int = 0
    mtime: str = ""
    snippets: list[Detection] = Field(default_factory=list)
    is_core_modified: bool = False
    is_plugin_modified: bool = False
    is_database: bool = False
    is_external: bool = False
    db_type: DbType | None = None
    db_id: int | None = None
    db_table: str | None = None
    db_row_id: int | str | None = None
    db_column: str | None = None
    option_name: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def source_key(self) -> str:
        """Identity used to avoid reporting the same source twice."""
        if self.db_type is not None and self.db_id is not None:
            return f"{self.db_type}_{self.db_id}"
        if self.db_type is not None and self.option_name:
            return f"option_{self.option_name}"
        return self.path

    @property
    def max_score(self) -> int:
        return max((s.score for s in self.snippets), default=0)


def existing_source_keys(findings: list[Finding]) -> set[str]:
    """Source keys already present in *findings*, for idempotent re-runs."""
    keys: set[str] = set()
    for f in findings:
        keys.add(f.source_key)
        keys.add(f.path)
    return keys
