# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""sitewarden - resumable malware scanning for web-hosted sites."""

__version__ = "0.4.0"

from sitewarden.sdk import (
    cancel_scan,
    cancel_scan_sync,
    get_progress,
    get_progress_sync,
    run_scan,
    run_scan_sync,
    scan_content,
    scan_content_sync,
    scan_single_file,
    scan_single_file_sync,
    start_scan,
    start_scan_sync,
    tick,
    tick_sync,
)

__all__ = [
    "__version__",
    "cancel_scan",
    "cancel_scan_sync",
    "get_progress",
    "get_progress_sync",
    "run_scan",
    "run_scan_sync",
    "scan_content",
    "scan_content_sync",
    "scan_single_file",
    "scan_single_file_sync",
    "start_scan",
    "start_scan_sync",
    "tick",
    "tick_sync",
]
