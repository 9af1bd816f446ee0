# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Scan one file, text blob, or database value into detections.

These are plain functions shared by the scan engine and by standalone
callers (CLI, SDK).  They never touch persisted state.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from pathlib import Path

from sitewarden.ai.base import VerdictService
from sitewarden.core.config import Settings
from sitewarden.core.constants import LARGE_FILE_MARKER, PHP_EXTENSIONS, AiStatus
from sitewarden.core.exceptions import ScanError
from sitewarden.models.finding import Detection
from sitewarden.models.pattern import PatternRule
from sitewarden.scanner.builder import BuilderTuning, build_detections
from sitewarden.scanner.matcher import match_content
from sitewarden.scanner.tokenizer import (
    TokenizedContent,
    identity_view,
    is_probably_script_like,
    tokenize,
)

logger = logging.getLogger("sitewarden.scanner.content")

_TRUNCATED_MARKER = "\n\n{{===[ Content truncated for analysis ]===}}\n\n"
_DB_SCRIPT_HINT_RE = re.compile(r"<\?php|function|eval|base64|gz|assert|create_function", re.I)

DATABASE_ANALYSIS = "database payload detected"


def read_for_scan(path: Path, max_bytes: int) -> str:
    """Read *path* as text; files over *max_bytes* are read head-only."""
    try:
        size = path.stat().st_size
        with path.open("rb") as fh:
            data = fh.read(max_bytes) if size > max_bytes else fh.read()
    except OSError as exc:
        raise ScanError(f"Cannot read {path}: {exc}") from exc

    text = data.decode("utf-8", errors="replace")
    if size > max_bytes:
        text += LARGE_FILE_MARKER
    return text


def _view_for(content: str, script: bool, errors: list[str]) -> TokenizedContent:
    if not script:
        return identity_view(content)
    view = tokenize(content)
    if view.error:
        errors.append(f"tokenizer: {view.error}")
    return view


async def _detect(
    content: str,
    view: TokenizedContent,
    rules: Sequence[PatternRule],
    tuning: BuilderTuning,
    errors: list[str],
    *,
    verdict_service: VerdictService | None = None,
    ai_veto: bool = True,
    label: str = "content",
    analysis: str = "",
) -> list[Detection]:
    matches = match_content(content, view, rules)
    if not matches:
        return []
    return await build_detections(
        content,
        matches,
        tuning,
        verdict_service=verdict_service,
        ai_veto=ai_veto,
        label=label,
        analysis=analysis,
        errors=errors,
    )


async def scan_single_file(
    path: Path,
    settings: Settings,
    rules: Sequence[PatternRule],
    verdict_service: VerdictService | None = None,
    label: str | None = None,
) -> list[Detection]:
    """Scan one file on disk.

    PHP-family files are tokenized; extensionless files are tokenized when
    they look script-like; everything else is matched raw.  The AI verdict
    is requested only when ``ai_deep_scan_enabled`` is set and a service is
    supplied.

    Raises:
        ScanError: If the file cannot be read.
    """
    if not path.is_file():
        raise ScanError(f"Not a readable file: {path}")

    content = read_for_scan(path, settings.max_read_mb * 1024 * 1024)
    if not content:
        return []

    ext = path.suffix.lower().lstrip(".")
    script = ext in PHP_EXTENSIONS or (not ext and is_probably_script_like(content))

    errors: list[str] = []
    view = _view_for(content, script, errors)
    if script and not view.error and not view.code.strip():
        return []

    service = verdict_service if settings.ai_deep_scan_enabled else None
    return await _detect(
        content,
        view,
        rules,
        BuilderTuning.from_settings(settings),
        errors,
        verdict_service=service,
        ai_veto=settings.ai_veto_enabled,
        label=label or path.name,
    )


async def scan_content(
    text: str,
    settings: Settings,
    rules: Sequence[PatternRule],
) -> list[Detection]:
    """Scan an ad hoc text blob without any AI verdict."""
    if not text:
        return []

    max_bytes = settings.max_read_mb * 1024 * 1024
    if len(text) > max_bytes:
        text = text[:max_bytes] + _TRUNCATED_MARKER

    errors: list[str] = []
    view = _view_for(text, True, errors)
    if not view.error and not view.code.strip():
        return []

    return await _detect(text, view, rules, BuilderTuning.from_settings(settings), errors)


async def scan_database_value(
    value: str,
    settings: Settings,
    rules: Sequence[PatternRule],
) -> list[Detection]:
    """Scan one textual database column value like a file."""
    if not value:
        return []

    errors: list[str] = []
    script = _DB_SCRIPT_HINT_RE.search(value) is not None
    view = _view_for(value, script, errors)
    if script and not view.error and not view.code.strip():
        return []

    detections = await _detect(
        value,
        view,
        rules,
        BuilderTuning.from_settings(settings),
        errors,
        analysis=DATABASE_ANALYSIS,
    )
    for d in detections:
        d.ai_status = AiStatus.MALICIOUS
        d.without_ai = True
    return detections
