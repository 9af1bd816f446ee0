# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""JSON output formatter."""

from __future__ import annotations

import json

from sitewarden.models.finding import Detection
from sitewarden.models.state import ScanProgress, ScanState


def format_state_json(state: ScanState) -> str:
    """Return the full scan state as a formatted JSON string."""
    return state.model_dump_json(indent=2)


def format_progress_json(progress: ScanProgress) -> str:
    """Return a compact progress summary (no findings detail)."""
    state = progress.state
    data = {
        "status": state.status,
        "progress": progress.progress,
        "current_step": state.current_step,
        "current_folder": state.current_folder,
        "scanned": state.scanned,
        "total_files": state.total_files,
        "threats": progress.threats,
        "ignored": progress.ignored,
        "patterns_source": progress.patterns_source,
        "errors": state.errors,
    }
    return json.dumps(data, indent=2)


def format_detections_json(label: str, detections: list[Detection]) -> str:
    data = {
        "target": label,
        "suspicious": bool(detections),
        "detections": [d.model_dump(mode="json") for d in detections],
    }
    return json.dumps(data, indent=2)
