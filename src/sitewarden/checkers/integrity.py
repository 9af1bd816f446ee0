# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Self-integrity and core-integrity phases.

Both phases are split into short sub-phases so that each tick stays well
inside its time budget and progress is visible between ticks.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
from datetime import UTC, datetime
from pathlib import Path

from sitewarden.core.constants import (
    PLUGIN_MODIFIED_KEY,
    AiStatus,
    Confidence,
    IntegrityPhase,
    ScanStep,
    StepStatus,
)
from sitewarden.core.exceptions import IntegrityError, RemoteServiceError
from sitewarden.engine.context import TickContext
from sitewarden.models.finding import Detection, Finding
from sitewarden.models.state import IntegrityState, ModifiedFile, ScanState
from sitewarden.remote.client import build_integrity_proof, compute_own_hashes

logger = logging.getLogger("sitewarden.checkers.integrity")

UNREACHABLE = "Unreachable"

CORE_ALWAYS_IGNORE = frozenset(
    {
        "wp-config.php", "wp-config-sample.php", ".htaccess", "readme.html", "license.txt",
        "xmlrpc.php", "wp-blog-header.php", "wp-settings.php", "index.php", "wp-cron.php",
        "wp-signup.php", "wp-login.php", "wp-includes/version.php",
    }
)
CORE_IGNORE_PREFIXES: tuple[str, ...] = (
    "wp-content/",
    "wp-includes/css/",
    "wp-includes/js/",
    "wp-includes/images/",
    "wp-includes/fonts/",
    "wp-includes/blocks/",
    "wp-includes/ID3/",
    "wp-includes/SimplePie/",
    "wp-includes/Requests/",
    "wp-includes/random_compat/",
    "wp-includes/Text/Diff/",
    "wp-includes/sodium_compat/",
    "wp-includes/pomo/",
    "wp-admin/css/",
    "wp-admin/js/",
    "wp-admin/images/",
)
_CORE_FINDING_SUFFIXES = (".php", ".inc")


def _mtime(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime, UTC).strftime("%Y-%m-%d %H:%M")


def _modified(path: Path, rel: str) -> ModifiedFile:
    return ModifiedFile(path=rel, size=path.stat().st_size, mtime=_mtime(path))


def _integrity_finding(item: ModifiedFile, kind: str, *, plugin: bool) -> Finding:
    label = "Plugin" if plugin else "Core"
    return Finding(
        path=item.path,
        size=item.size,
        mtime=item.mtime,
        is_plugin_modified=plugin,
        is_core_modified=not plugin,
        snippets=[
            Detection(
                original_line=1,
                matched_text=f"{label.upper()} FILE MODIFIED",
                original_code=f"CRITICAL: {kind} file has been altered\nFile: {item.path}",
                context_code=f"{label} Integrity Violation",
                patterns=[f"Modified {label} File"],
                score=100,
                confidence=Confidence.HIGH,
                ai_status=None if plugin else AiStatus.MALICIOUS,
                ai_analysis=None if plugin else "Core file modification detected – high risk",
                without_ai=True,
            )
        ],
    )


# ---------------------------------------------------------------------------
# Self integrity
# ---------------------------------------------------------------------------


def self_directory(ctx: TickContext) -> Path:
    """Installed location of the scanner's own files."""
    return ctx.settings.self_dir or Path(__file__).resolve().parents[1]


def compare_own_hashes(
    root: Path, current: dict[str, str], expected: dict[str, str], prefix: str
) -> tuple[int, list[ModifiedFile]]:
    """Files whose hash is missing from or differs with *expected*."""
    checked = 0
    modified: list[ModifiedFile] = []
    for rel, digest in current.items():
        full = root / rel
        if not full.is_file():
            continue
        checked += 1
        if expected.get(rel) != digest:
            modified.append(_modified(full, f"{prefix}/{rel}"))
    return checked, modified


async def run_self_integrity(state: ScanState, ctx: TickContext) -> None:
    """Verify the scanner's own files against the service's expected hashes."""
    if state.plugin_check_completed:
        return

    if state.plugin is None:
        state.plugin = IntegrityState(phase=IntegrityPhase.VERIFY)
        state.current_step = ScanStep.PLUGIN
        state.current_folder = "Checking scanner files for modifications"
        return
    plugin = state.plugin

    if plugin.phase == IntegrityPhase.VERIFY:
        root = self_directory(ctx)
        current: dict[str, str] = {}
        expected: dict[str, str] = {}
        if ctx.pattern_client is not None:
            current = await asyncio.to_thread(compute_own_hashes, root)
            try:
                expected = await ctx.pattern_client.fetch_hashes(build_integrity_proof(current))
            except RemoteServiceError as exc:
                logger.warning("Expected hashes unavailable: %s", exc)

        if not expected:
            state.current_folder = "Failed to load official hashes – scanner integrity skipped"
            state.step_error[ScanStep.PLUGIN] = UNREACHABLE
            state.plugin = None
            state.plugin_check_completed = True
            return

        checked, modified = compare_own_hashes(
            root, current, expected, f"wp-content/plugins/{ctx.settings.own_dir_name}"
        )
        plugin.checked = checked
        plugin.modified = modified
        state.set_count(ScanStep.PLUGIN, checked, len(modified))
        if not modified:
            await ctx.store.delete(PLUGIN_MODIFIED_KEY)
            plugin.phase = IntegrityPhase.COMPLETE
        else:
            await ctx.store.set(PLUGIN_MODIFIED_KEY, True)
            state.current_folder = f"{len(modified)} of {checked} scanner file(s) modified"
            plugin.phase = IntegrityPhase.MODIFIED
            return

    if plugin.phase == IntegrityPhase.MODIFIED:
        for item in plugin.modified:
            state.findings.append(_integrity_finding(item, "Scanner", plugin=True))
        state.suspicious = len(state.findings)
        plugin.phase = IntegrityPhase.COMPLETE

    state.step_status[ScanStep.PLUGIN] = StepStatus.WARNING if plugin.modified else StepStatus.SUCCESS
    state.plugin = None
    state.plugin_check_completed = True
    logger.info("Self integrity complete: %d modified", len(plugin.modified))


# ---------------------------------------------------------------------------
# Core integrity
# ---------------------------------------------------------------------------


def is_core_ignored(rel: str) -> bool:
    return rel in CORE_ALWAYS_IGNORE or rel.startswith(CORE_IGNORE_PREFIXES)


def _file_digest(path: Path, algorithm: str) -> str:
    digest = hashlib.new(algorithm)
    with path.open("rb") as fh:
        for block in iter(lambda: fh.read(1 << 16), b""):
            digest.update(block)
    return digest.hexdigest()


def verify_core_files(
    site_root: Path, checksums: dict[str, str], checksum_type: str = "md5"
) -> tuple[int, list[ModifiedFile]]:
    """Hash every non-ignored manifest entry present under *site_root*."""
    checked = 0
    modified: list[ModifiedFile] = []
    for rel, official in checksums.items():
        rel = rel.lstrip("/")
        if is_core_ignored(rel):
            continue
        full = site_root / rel
        if not full.is_file():
            continue
        try:
            current = _file_digest(full, checksum_type)
        except OSError as exc:
            logger.debug("Cannot hash %s: %s", full, exc)
            continue
        checked += 1
        if not hmac.compare_digest(current, official):
            modified.append(_modified(full, rel))
    return checked, modified


async def fetch_core_checksums(ctx: TickContext) -> tuple[dict[str, str], str]:
    """Fetch the official core manifest and its hash algorithm.

    Raises:
        IntegrityError: If no client or version is configured, the service
            fails, or the manifest is empty or uses an unknown algorithm.
    """
    settings = ctx.settings
    if ctx.checksum_client is None or not settings.core_version:
        raise IntegrityError("Core version or checksum service not configured")
    try:
        checksums, algorithm = await ctx.checksum_client.fetch(
            settings.core_version, settings.site_locale
        )
    except RemoteServiceError as exc:
        raise IntegrityError(f"Core checksums unavailable: {exc}") from exc
    if not checksums:
        raise IntegrityError(f"No core checksums for version {settings.core_version}")
    if algorithm not in hashlib.algorithms_available:
        raise IntegrityError(f"Unsupported checksum algorithm: {algorithm}")
    return checksums, algorithm


async def run_core_integrity(state: ScanState, ctx: TickContext) -> None:
    """start → fetch → verify → (modified | skipped) → complete."""
    if state.core_check_completed:
        return

    if state.core is None:
        state.core = IntegrityState(phase=IntegrityPhase.FETCH)
        state.current_step = ScanStep.CORE
        state.current_folder = "Checking for modified or corrupted core files"
        return
    core = state.core
    settings = ctx.settings

    if core.phase == IntegrityPhase.FETCH:
        try:
            checksums, core.checksum_type = await fetch_core_checksums(ctx)
        except IntegrityError as exc:
            logger.warning("Core integrity skipped: %s", exc)
            state.current_folder = "Unable to retrieve official core checksums"
            state.step_error[ScanStep.CORE] = UNREACHABLE
            core.phase = IntegrityPhase.SKIPPED
            return
        core.checksums = checksums
        core.phase = IntegrityPhase.VERIFY
        return

    if core.phase == IntegrityPhase.SKIPPED:
        state.current_folder = "Core integrity check skipped due to network issue"
        core.phase = IntegrityPhase.COMPLETE

    elif core.phase == IntegrityPhase.VERIFY:
        checked, modified = await asyncio.to_thread(
            verify_core_files, settings.site_root, core.checksums, core.checksum_type
        )
        core.checksums = {}
        core.checked = checked
        core.modified = modified
        state.set_count(ScanStep.CORE, checked, len(modified))
        if not modified:
            core.phase = IntegrityPhase.COMPLETE
        else:
            state.current_folder = f"{len(modified)} of {checked} core file(s) modified"
            core.phase = IntegrityPhase.MODIFIED
            return

    elif core.phase == IntegrityPhase.MODIFIED:
        ignored = {p.lstrip("/") for p in settings.ignored_paths}
        for item in core.modified:
            if not item.path.lower().endswith(_CORE_FINDING_SUFFIXES) or item.path in ignored:
                continue
            state.findings.append(_integrity_finding(item, "Core", plugin=False))
        state.suspicious = len(state.findings)
        core.phase = IntegrityPhase.COMPLETE

    state.set_count(ScanStep.CORE, core.checked, len(core.modified))
    if core.modified:
        state.step_status[ScanStep.CORE] = StepStatus.WARNING
    state.core = None
    state.core_check_completed = True
    logger.info("Core integrity complete: %d checked, %d modified", core.checked, len(core.modified))
