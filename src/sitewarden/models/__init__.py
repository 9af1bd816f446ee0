# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Domain models for sitewarden."""

from sitewarden.models.finding import Detection, Finding, HighlightedLine
from sitewarden.models.pattern import PatternRule, RawMatch
from sitewarden.models.site import CommentRecord, TableTarget, UserRecord
from sitewarden.models.state import ScanProgress, ScanState, StepCount

__all__ = [
    "CommentRecord",
    "Detection",
    "Finding",
    "HighlightedLine",
    "PatternRule",
    "RawMatch",
    "ScanProgress",
    "ScanState",
    "StepCount",
    "TableTarget",
    "UserRecord",
]
