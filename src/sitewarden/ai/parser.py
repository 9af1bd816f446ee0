# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Parse the structured plain-text verdict format."""

from __future__ import annotations

import re

from sitewarden.core.constants import AiStatus

_STATUS_RE = re.compile(r"Status:\s*\[?(CLEAN|SUSPICIOUS|MALICIOUS)\]?", re.IGNORECASE)
_HEADER_RE = re.compile(
    r"^(Type|Language|Context|Status|Summary|Request ID):.*$",
    re.IGNORECASE | re.MULTILINE,
)
_DETAILS_RE = re.compile(r"^Details:\s*", re.IGNORECASE | re.MULTILINE)


def parse_structured_response(response: str) -> tuple[AiStatus, str]:
    """Extract the status and free-text analysis from a verdict response.

    A response without a recognisable status line is treated as
    ``suspicious``.  Statuses other than clean or suspicious collapse to
    ``malicious``.
    """
    response = response.strip()
    status = "suspicious"
    m = _STATUS_RE.search(response)
    if m:
        status = m.group(1).lower()

    analysis = _DETAILS_RE.sub("", _HEADER_RE.sub("", response)).strip() or response

    if status in (AiStatus.CLEAN, AiStatus.SUSPICIOUS):
        return AiStatus(status), analysis
    return AiStatus.MALICIOUS, analysis
