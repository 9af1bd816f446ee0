# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Adaptive chunk sizing for the malware-scan phase."""

from __future__ import annotations

from sitewarden.core.config import Settings
from sitewarden.models.state import AdaptiveState


def target_time(settings: Settings) -> float:
    """Chunk wall time to aim for: 70% of the adaptive safe window."""
    return (max(30, settings.max_execution_time) - 6) * 0.7


def next_chunk_size(adaptive: AdaptiveState, settings: Settings, *, external: bool = False) -> int:
    """Return the size of the next chunk and update *adaptive* in place.

    Files outside the site root always get the fixed external size.  Two
    consecutive very fast chunks (under half the target) grow the size;
    one slow chunk (over 110% of the target) shrinks it immediately;
    anything near the target is nudged gently.
    """
    if external:
        return settings.chunk_external

    if adaptive.chunk_size is None:
        adaptive.chunk_size = settings.chunk_initial
        adaptive.fast_count = 0
        adaptive.last_time = None
        return adaptive.chunk_size

    last = adaptive.last_time
    size = adaptive.chunk_size
    if last is None or last <= 0:
        return size

    target = target_time(settings)
    if last < target * 0.5:
        adaptive.fast_count += 1
        if adaptive.fast_count >= 2:
            size = int(size * settings.chunk_grow)
            adaptive.fast_count = 0
    elif last > target * 1.1:
        adaptive.fast_count = 0
        size = int(size * settings.chunk_shrink)
    else:
        adaptive.fast_count = 0
        if last < target * 0.9:
            size = int(size * settings.chunk_gentle_up)
        elif last > target:
            size = int(size * settings.chunk_gentle_down)

    adaptive.chunk_size = max(settings.chunk_min, size)
    adaptive.last_time = None
    return adaptive.chunk_size


def record_chunk_time(adaptive: AdaptiveState, seconds: float) -> None:
    adaptive.last_time = seconds
