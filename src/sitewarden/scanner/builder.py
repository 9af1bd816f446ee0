# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Turn raw matches into scored, merged, highlighted detections."""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field

from sitewarden.ai.base import VerdictService
from sitewarden.core.config import Settings
from sitewarden.core.constants import (
    AI_CONTEXT_FALLBACK,
    AI_CONTEXT_MAX,
    AI_CONTEXT_MERGE_GAP,
    AI_CONTEXT_NO_WINDOWS,
    AI_CONTEXT_PAD,
    AI_CONTEXT_SEARCH_BACK,
    AiStatus,
    Confidence,
)
from sitewarden.core.exceptions import VerdictError
from sitewarden.models.finding import Detection, HighlightedLine
from sitewarden.models.pattern import RawMatch

logger = logging.getLogger("sitewarden.scanner.builder")

_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class BuilderTuning:
    """Thresholds that shape scoring and clustering."""

    global_threshold: int = 20
    high: int = 85
    medium: int = 55
    low: int = 20
    context_lines: int = 6
    merge_gap: int = 10
    report_low_confidence: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> BuilderTuning:
        return cls(
            global_threshold=settings.global_score_threshold,
            high=settings.confidence_high,
            medium=settings.confidence_medium,
            low=settings.confidence_low,
            context_lines=settings.cluster_context_lines,
            merge_gap=settings.cluster_merge_gap,
            report_low_confidence=settings.report_low_confidence,
        )

    def confidence_for(self, score: int) -> Confidence:
        if score >= self.high:
            return Confidence.HIGH
        if score >= self.medium:
            return Confidence.MEDIUM
        if score >= self.low:
            return Confidence.LOW
        return Confidence.BENIGN


@dataclass
class MatchGroup:
    uid: str
    score: int = 0
    notes: list[str] = field(default_factory=list)
    matches: list[RawMatch] = field(default_factory=list)


@dataclass
class Cluster:
    start_line: int
    end_line: int
    matches: list[RawMatch] = field(default_factory=list)

    @property
    def peak_line(self) -> int:
        return min(m.line for m in self.matches)

    @property
    def score(self) -> int:
        distinct = {(m.rule.fingerprint, m.rule.note): m.rule.score for m in self.matches}
        return sum(distinct.values())

    @property
    def notes(self) -> list[str]:
        return list(dict.fromkeys(m.rule.note for m in self.matches))

    @property
    def matched_text(self) -> str:
        return " | ".join(m.matched_text for m in self.matches)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def group_matches(matches: list[RawMatch]) -> list[MatchGroup]:
    """Group matches by UID, summing score and collecting rule notes."""
    groups: dict[str, MatchGroup] = {}
    for m in matches:
        group = groups.setdefault(m.uid, MatchGroup(uid=m.uid))
        group.score += m.rule.score
        if m.rule.note not in group.notes:
            group.notes.append(m.rule.note)
        group.matches.append(m)
    return list(groups.values())


def surviving_matches(matches: list[RawMatch], tuning: BuilderTuning) -> list[RawMatch]:
    """Apply the global-score gate and per-group confidence filter.

    Returns the matches that may be reported, sorted by line; an empty
    list means the blob is clean.
    """
    groups = group_matches(matches)
    global_score = sum(g.score for g in groups)
    if global_score < tuning.global_threshold:
        return []

    kept: list[RawMatch] = []
    for group in groups:
        confidence = tuning.confidence_for(group.score)
        if confidence == Confidence.BENIGN:
            continue
        if confidence == Confidence.LOW and not tuning.report_low_confidence:
            continue
        kept.extend(group.matches)

    kept.sort(key=lambda m: m.line)
    return kept


def merge_clusters(matches: list[RawMatch], tuning: BuilderTuning) -> list[Cluster]:
    """Merge line-sorted matches into clusters with a context window."""
    clusters: list[Cluster] = []
    ctx = tuning.context_lines
    for m in matches:
        if clusters and m.line <= clusters[-1].end_line + tuning.merge_gap:
            last = clusters[-1]
            last.end_line = max(last.end_line, m.line + ctx)
            last.matches.append(m)
            continue
        clusters.append(
            Cluster(start_line=max(1, m.line - ctx), end_line=m.line + ctx, matches=[m])
        )
    return clusters


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def highlighted_lines(content_lines: list[str], cluster: Cluster) -> list[HighlightedLine]:
    dangerous = {m.line for m in cluster.matches}
    start = max(1, cluster.start_line)
    end = min(len(content_lines), cluster.end_line)
    return [
        HighlightedLine(
            line=i,
            code=content_lines[i - 1] if i - 1 < len(content_lines) else "",
            dangerous=i in dangerous,
        )
        for i in range(start, end + 1)
    ]


def render_snippet(lines: list[HighlightedLine], with_tags: bool = True) -> str:
    """Render numbered lines; dangerous ones are tagged or ``>>>``-prefixed."""
    out: list[str] = []
    for hl in lines:
        code = html.escape(hl.code)
        if hl.dangerous:
            code = f'<span class="hl-danger">{code}</span>' if with_tags else f">>> {code}"
        out.append(f"{hl.line:>5}: {code}")
    return "\n".join(out).rstrip()


def build_ai_context(content: str, clusters: list[Cluster]) -> str:
    """Condense *content* to padded, merged windows around each cluster's hits."""
    if not clusters:
        return content[:AI_CONTEXT_FALLBACK] + "\n\n[...truncated...]"

    windows: list[list[int]] = []
    for cluster in clusters:
        for m in cluster.matches:
            pos = content.find(m.matched_text, max(0, m.offset - AI_CONTEXT_SEARCH_BACK))
            if pos < 0:
                pos = content.find(m.matched_text)
            if pos < 0:
                continue
            windows.append([
                max(0, pos - AI_CONTEXT_PAD),
                min(len(content), pos + len(m.matched_text) + AI_CONTEXT_PAD),
                cluster.peak_line,
            ])

    if not windows:
        return content[:AI_CONTEXT_NO_WINDOWS]

    windows.sort(key=lambda w: w[0])
    merged: list[list[int]] = []
    for w in windows:
        if merged and w[0] <= merged[-1][1] + AI_CONTEXT_MERGE_GAP:
            merged[-1][1] = max(merged[-1][1], w[1])
        else:
            merged.append(w)

    output = ""
    for i, (start, end, line) in enumerate(merged):
        if len(output) > AI_CONTEXT_MAX:
            break
        prefix = (
            "File context for AI analysis:\n\n"
            if i == 0
            else f"\n\n===[ Suspicious Section {i + 1} – Line ~{line} ]===\n"
        )
        part = prefix + content[start:end].strip()
        if len(output) + len(part) > AI_CONTEXT_MAX:
            part = part[: max(0, AI_CONTEXT_MAX - len(output) - 20)] + "\n[...truncated...]"
        output += part

    return output or content[:AI_CONTEXT_NO_WINDOWS]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def build_detections(
    content: str,
    matches: list[RawMatch],
    tuning: BuilderTuning,
    *,
    verdict_service: VerdictService | None = None,
    ai_veto: bool = True,
    label: str = "content",
    analysis: str = "",
    errors: list[str] | None = None,
) -> list[Detection]:
    """Aggregate *matches* into detections, optionally asking for an AI verdict.

    When a verdict service is given and reports ``clean`` (with *ai_veto*
    on), the whole blob is suppressed.  Without a usable verdict the
    detections default to ``malicious`` with ``without_ai`` set.
    """
    errors = errors if errors is not None else []
    kept = surviving_matches(matches, tuning)
    if not kept:
        return []

    clusters = merge_clusters(kept, tuning)
    content_lines = _LINE_SPLIT_RE.split(content)

    status = AiStatus.MALICIOUS
    without_ai = True
    if verdict_service is not None and verdict_service.is_connected:
        try:
            verdict = await verdict_service.analyze(build_ai_context(content, clusters), label)
            status = verdict.status
            analysis = verdict.analysis
            without_ai = False
        except VerdictError as exc:
            logger.warning("AI verdict unavailable for %s: %s", label, exc)
        except Exception as exc:
            logger.error("AI verdict crashed for %s: %s", label, exc)
            errors.append(f"ai_analysis_exception: {exc}")

    if status == AiStatus.CLEAN and ai_veto:
        logger.info("AI verdict cleared %s; suppressing %d clusters", label, len(clusters))
        return []

    detections: list[Detection] = []
    for cluster in clusters:
        lines = highlighted_lines(content_lines, cluster)
        score = cluster.score
        detections.append(
            Detection(
                original_line=max(cluster.peak_line, 1),
                matched_text=cluster.matched_text,
                original_code=render_snippet(lines),
                context_code=render_snippet(lines, with_tags=False),
                patterns=cluster.notes,
                score=score,
                confidence=tuning.confidence_for(score),
                ai_status=status,
                ai_analysis=analysis,
                without_ai=without_ai,
                snippet_lines=lines,
                dangerous_lines=sorted({hl.line for hl in lines if hl.dangerous}),
                error_count=len(errors),
            )
        )

    if errors and detections:
        first = detections[0]
        first.ai_analysis = (
            f"{first.ai_analysis or ''}\n\n"
            f"[Warning: {len(errors)} internal processing issue(s) occurred]"
        )
    return detections
