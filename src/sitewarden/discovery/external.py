# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Resumable discovery of files outside the site root, under the home directory."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from sitewarden.core.config import Settings
from sitewarden.core.constants import EXTERNAL_MAX_FILE_SIZE, ExternalPhase
from sitewarden.engine.context import TickContext
from sitewarden.models.state import ExternalDiscoveryState

logger = logging.getLogger("sitewarden.discovery.external")

# Common hiding spots, walked first.
PRIORITY_DIRS: tuple[str, ...] = (
    "tmp", "var/tmp", "cache", "caches", "twig", "compiled", "compiles",
    "template_cache", "smarty_cache", "var/cache", "logs", "access-logs", "mail",
    "error_logs", ".cpanel", ".trash", ".softaculous", ".cagefs",
)

FORBIDDEN_PATHS: tuple[str, ...] = (
    "/proc", "/sys", "/dev", "/etc", "/root", "/boot", "/lost+found",
    "/var/lib/mysql", "/var/lib/postgresql", "/var/log", "/var/cache",
    "/tmp", "/var/tmp", "/run",
)

_STATUS_CHECK_EVERY = 20
_TIME_RESERVE = 3.0


def _within(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


class ExternalWalker:
    """Directory-stack walker; one instance per tick, state lives in *ext*."""

    def __init__(self, settings: Settings, ext: ExternalDiscoveryState) -> None:
        self.settings = settings
        self.ext = ext
        self.home = os.path.realpath(settings.resolved_home_dir)
        self.site_root = os.path.realpath(settings.site_root)
        self.own_markers = tuple(
            f"{os.sep}{name.lower()}{os.sep}"
            for name in (settings.own_dir_name, settings.backup_dir_name)
        )
        self.seen = set(ext.seen)
        forbidden = (os.path.realpath(p) for p in FORBIDDEN_PATHS)
        self.forbidden = tuple(f for f in forbidden if not _within(self.home, f))
        self.priority = {
            os.path.realpath(p) for p in self._priority_dirs()
        }

    def _priority_dirs(self) -> list[str]:
        dirs = []
        for rel in PRIORITY_DIRS:
            full = os.path.join(self.home, rel)
            if os.path.isdir(full) and not os.path.islink(full):
                dirs.append(full)
        return dirs

    def initial_stack(self) -> list[str]:
        return [self.home, *self._priority_dirs()]

    def _skip_entry(self, full: str, real: str) -> bool:
        if not _within(real, self.home) or real == self.home:
            return True
        if _within(real, self.site_root):
            return True
        if any(_within(real, f) for f in self.forbidden):
            return True
        lowered = real[len(self.home):].lower() + (os.sep if os.path.isdir(full) else "")
        return any(marker in lowered for marker in self.own_markers)

    def visit(self, directory: str) -> None:
        """List *directory*, pushing subdirectories and collecting files."""
        real_dir = os.path.realpath(directory)
        if ".cagefs" in real_dir and os.path.basename(real_dir) == "session":
            return
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name, reverse=True)
        except OSError as exc:
            logger.debug("Cannot list %s: %s", directory, exc)
            return

        for entry in entries:
            full = entry.path
            real = os.path.realpath(full)
            if self._skip_entry(full, real):
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    if real not in self.priority:
                        self.ext.stack.append(full)
                    continue
                if entry.is_symlink() or not entry.is_file(follow_symlinks=False):
                    continue
                if entry.stat(follow_symlinks=False).st_size > EXTERNAL_MAX_FILE_SIZE:
                    continue
            except OSError:
                continue
            if not os.access(full, os.R_OK) or real in self.seen:
                continue
            self.seen.add(real)
            self.ext.files.append(full)

    def save(self) -> None:
        self.ext.seen = sorted(self.seen)


async def run_external_discovery(ext: ExternalDiscoveryState, ctx: TickContext) -> bool:
    """Advance the walk; returns True once the stack is exhausted."""
    walker = ExternalWalker(ctx.settings, ext)
    if not ext.initialized:
        ext.stack = walker.initial_stack()
        ext.initialized = True
        logger.info("External discovery starting at %s", walker.home)
        return False

    visited = 0
    try:
        while ext.stack:
            if ctx.out_of_time(reserve=_TIME_RESERVE):
                return False
            if visited % _STATUS_CHECK_EVERY == 0 and await ctx.cancel_requested():
                ctx.cancelled = True
                return False
            walker.visit(ext.stack.pop())
            visited += 1
    finally:
        walker.save()

    ext.phase = ExternalPhase.COMPLETE
    logger.info("External discovery complete: %d files", len(ext.files))
    return True


def is_external(path: str | Path, site_root: Path) -> bool:
    """Whether *path* resolves outside the site root."""
    return not _within(os.path.realpath(path), os.path.realpath(site_root))
