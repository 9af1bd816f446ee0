# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Enumerate scan-worthy files under the site root.

The walk never follows symlinks, dedupes by resolved path and is
re-entrant: the collected list and the seen-set persist in
:class:`~sitewarden.models.state.DiscoveryState`, so a tick that runs out
of time resumes where the last one stopped.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path

from sitewarden.core.config import Settings
from sitewarden.core.constants import (
    BINARY_SNIFF_BYTES,
    BINARY_SNIFF_MAX_SIZE,
    SAFE_EXTENSIONS,
    DiscoveryPhase,
    ScanStep,
    StepStatus,
)
from sitewarden.discovery.external import run_external_discovery
from sitewarden.engine.context import TickContext
from sitewarden.models.state import DiscoveryState, ExternalDiscoveryState, ScanState

logger = logging.getLogger("sitewarden.discovery.files")

_BINARY_RE = re.compile(rb"[^\x09\x0A\x0D\x20-\x7E]")
_STATUS_CHECK_EVERY = 250


def relative_path(path: str | Path, site_root: Path) -> str:
    """Path relative to the site root, or the absolute path for external files."""
    path = os.fspath(path)
    root = os.fspath(site_root).rstrip(os.sep)
    if path.startswith(root + os.sep):
        return path[len(root) + 1:].replace(os.sep, "/")
    return path.replace(os.sep, "/")


def is_excluded(rel: str, exclude_paths: list[str]) -> bool:
    rel = rel.replace("\\", "/").rstrip("/") + "/"
    for rule in exclude_paths:
        rule = rule.strip(" /\t\r\n")
        if rule and rel.startswith(rule + "/"):
            return True
    return False


def _own_prefixes(settings: Settings) -> tuple[str, ...]:
    return (
        f"wp-content/{settings.backup_dir_name}/",
        f"wp-content/plugins/{settings.own_dir_name}/",
    )


def looks_binary(path: Path, size: int) -> bool:
    """Sniff the head of small files for bytes outside printable ASCII."""
    if size <= 0 or size > BINARY_SNIFF_MAX_SIZE:
        return False
    try:
        with path.open("rb") as fh:
            sample = fh.read(BINARY_SNIFF_BYTES)
    except OSError:
        return False
    return _BINARY_RE.search(sample) is not None


def should_scan_file(path: Path, rel: str, settings: Settings, ignored: set[str] | None = None) -> bool:
    """Decide whether one discovered file is worth reading."""
    if not os.access(path, os.R_OK):
        return False
    if ignored and rel.lstrip("/") in ignored:
        return False
    if rel.startswith(_own_prefixes(settings)):
        return False

    name = path.name
    ext = path.suffix.lower().lstrip(".")
    if name.startswith(".") or not ext:
        return True

    try:
        size = path.stat().st_size
    except OSError:
        return False
    if looks_binary(path, size):
        return False
    return ext not in SAFE_EXTENSIONS


def scan_roots(settings: Settings) -> list[Path]:
    """Include paths under the site root, or the site root itself."""
    root = settings.site_root.resolve()
    roots: list[Path] = []
    for inc in settings.include_paths:
        full = (root / inc.strip("/")).resolve()
        if full.is_dir() and full.is_relative_to(root):
            roots.append(full)
    return roots or [root]


def iter_site_files(settings: Settings) -> Iterator[Path]:
    """Yield regular, non-symlinked files under the scan roots in sorted order."""
    site_root = settings.site_root.resolve()
    excluded = [*settings.exclude_paths, f"wp-content/{settings.backup_dir_name}"]
    for root in scan_roots(settings):
        for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
            dirnames[:] = sorted(
                d for d in dirnames
                if not os.path.islink(os.path.join(dirpath, d))
                and not is_excluded(relative_path(os.path.join(dirpath, d), site_root), excluded)
            )
            for name in sorted(filenames):
                full = Path(dirpath, name)
                if full.is_symlink() or not full.is_file():
                    continue
                rel = relative_path(full, site_root)
                if is_excluded(rel, settings.exclude_paths):
                    continue
                if not Path(os.path.realpath(full)).is_relative_to(site_root):
                    continue
                yield full


# ---------------------------------------------------------------------------
# Phase runners
# ---------------------------------------------------------------------------


async def run_internal_discovery(disc: DiscoveryState, ctx: TickContext) -> bool:
    """Collect site files into *disc*; returns True when the walk finished."""
    settings = ctx.settings
    site_root = settings.site_root.resolve()
    ignored = {p.lstrip("/") for p in settings.ignored_paths}
    seen = disc.seen_realpaths
    disc.started = True
    added = 0

    for path in iter_site_files(settings):
        if ctx.out_of_time():
            return False

        real = os.path.realpath(path)
        full = os.fspath(path)
        if real in seen:
            if seen[real] != full:
                disc.duplicate_count += 1
            continue
        if not should_scan_file(path, relative_path(path, site_root), settings, ignored):
            continue

        seen[real] = full
        disc.files.append(full)
        added += 1
        if added % _STATUS_CHECK_EVERY == 0:
            if await ctx.cancel_requested():
                ctx.cancelled = True
                return False
            logger.debug("Discovered %d site files so far", len(disc.files))

    if await ctx.cancel_requested():
        ctx.cancelled = True
        return False
    return True


async def run_file_discovery(state: ScanState, ctx: TickContext) -> None:
    """External pass (optional), then the internal pass, then merge."""
    if state.file_list_completed:
        return

    settings = ctx.settings
    if state.discovery is None:
        external = settings.external_scan_enabled
        state.discovery = DiscoveryState(
            phase=DiscoveryPhase.EXTERNAL if external else DiscoveryPhase.INTERNAL,
            external=ExternalDiscoveryState() if external else None,
        )
        state.current_step = ScanStep.SERVER if external else ScanStep.ROOT
        state.current_folder = "Initializing deep scan engine"
        return
    disc = state.discovery

    if disc.phase == DiscoveryPhase.EXTERNAL:
        ext = disc.external or ExternalDiscoveryState()
        disc.external = ext
        done = await run_external_discovery(ext, ctx)
        state.current_folder = f"{len(ext.files):,} server files discovered outside the site root"
        if not done:
            return
        disc.server_files = ext.files
        disc.external = None
        disc.phase = DiscoveryPhase.INTERNAL
        state.step_status[ScanStep.SERVER] = StepStatus.SUCCESS
        state.set_count(ScanStep.SERVER, len(disc.server_files), 0)
        state.current_step = ScanStep.ROOT
        return

    done = await run_internal_discovery(disc, ctx)
    state.current_folder = f"{len(disc.files):,} files discovered inside the site root"
    if not done:
        return

    files = sorted(disc.files)
    if settings.max_files > 0:
        files = files[: settings.max_files]
    total = len(disc.server_files) + len(files)

    state.set_count(ScanStep.ROOT, len(files), 0)
    state.set_count(ScanStep.MALWARE, total, 0)
    state.file_list = [*disc.server_files, *files]
    state.total_files = total
    state.chunk_start = 0
    state.scanned = 0
    state.step_status[ScanStep.ROOT] = StepStatus.SUCCESS
    state.current_step = ScanStep.MALWARE
    state.file_list_completed = True
    state.discovery = None
    logger.info(
        "File discovery complete: %d site files, %d server files, %d duplicates skipped",
        len(files), len(disc.server_files), disc.duplicate_count,
    )
