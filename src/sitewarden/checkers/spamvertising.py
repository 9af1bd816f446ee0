# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Spamvertising detection for comment and post bodies."""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field

from sitewarden.core.constants import (
    SPAM_BATCH_SIZE,
    AiStatus,
    Confidence,
    DbType,
    ScanStep,
    StepStatus,
)
from sitewarden.engine.context import TickContext
from sitewarden.models.finding import Detection, Finding, existing_source_keys
from sitewarden.models.state import ScanState, SpamState

logger = logging.getLogger("sitewarden.checkers.spamvertising")

_WINDOW = 300

# ---------------------------------------------------------------------------
# Detection layers: (regex, note, score)
# ---------------------------------------------------------------------------

_KEYWORDS_RE = re.compile(
    r"\b(viagra|cialis|levitra|kamagra|sildenafil|tadalafil|vardenafil|phentermine|tramadol|"
    r"hydrocodone|oxycodone|xanax|alprazolam|porn|xxx|adult|sex|escort|camgirl|webcam|casino|"
    r"poker|blackjack|roulette|slots|betting|sportsbet|gambling|lottery)\b",
    re.I,
)
_WORD_RE = re.compile(r"\b([a-z]{5,})\b")
_STUFFING_ROOT_RE = re.compile(r"(buy|cheap|online|pill|casino|sex|porn)", re.I)
_STUFFING_MIN = 9

_LAYERS: list[tuple[re.Pattern[str], str, int]] = [
    (_KEYWORDS_RE, "Critical spam keyword (pharma/adult/gambling)", 98),
    (
        re.compile(
            r"<(div|p|span|a|iframe|script|img|form|object)[^>]*?(display\s*:\s*none|"
            r"visibility\s*:\s*hidden|opacity\s*:\s*0\.?\d*|width\s*:\s*0|height\s*:\s*0|"
            r"position\s*:\s*(absolute|fixed)\s*;[^>]*?(left|top)\s*:\s*-?\d{4,}|"
            r"text-indent\s*:\s*-?\d{4,}|"
            r"color\s*:\s*(transparent|#000(?:000)?\b|rgba?\(\s*0\s*,\s*0\s*,\s*0)|"
            r"font-size\s*:\s*0)[^>]*>",
            re.I,
        ),
        "Cloaked/hidden HTML element (spam injection)",
        99,
    ),
    (
        re.compile(
            r"<iframe[^>]*src=[\"'][^\"']{30,}[\"'][^>]*?(style=[\"'][^\"']*(none|hidden|"
            r"opacity\s*:\s*0)|width\s*:\s*[01]|height\s*:\s*[01])[^>]*>",
            re.I,
        ),
        "Malicious cloaked iframe (high-risk payload)",
        100,
    ),
    (
        re.compile(r"href=[\"']https?://[^\"']{120,}[\"']", re.I),
        "Overly long/obfuscated external link (spam redirect)",
        88,
    ),
    (
        re.compile(
            r"\b(bit\.ly|tinyurl\.com|goo\.gl|t\.co|ow\.ly|short\.est|is\.gd|clck\.ru|buff\.ly|"
            r"rb\.gy|t2m\.io|cut\.ly|rebrand\.ly)/[a-zA-Z0-9]{4,}\b",
            re.I,
        ),
        "Obfuscated shortened URL (common in spam)",
        80,
    ),
    (
        re.compile(
            r"\b(https?://[^\s\"'<>]+\.(tk|ml|ga|cf|gq|xyz|top|club|online|site|win|bid|loan|"
            r"review|click|faith|date|racing|stream|accountant|download|science|party|link|work|"
            r"press|host|website|space|tech))\b",
            re.I,
        ),
        "Link to high-risk spam/pharma/gambling TLD",
        92,
    ),
    (
        re.compile(
            r"(?:eval\s*\(\s*(?:base64_decode|atob)\s*\()"
            r"|(?:unescape\s*\(|String\.fromCharCode\s*\(|document\.write\s*\(\s*unescape)"
            r"|(?:[A-Za-z0-9+/]{100,}={0,2}\s*(?:['\"]\)|;|\?>))"
            r"|(?:&#x[0-9a-fA-F]{4,};.{0,20}){8,}",
            re.I,
        ),
        "Encoded payload (Base64/hex/JS obfuscation)",
        96,
    ),
]


@dataclass
class _Hit:
    text: str
    pos: int
    note: str
    score: int


@dataclass
class _Group:
    start: int
    end: int
    hits: list[_Hit] = field(default_factory=list)

    @property
    def score(self) -> int:
        return max(h.score for h in self.hits)

    @property
    def notes(self) -> list[str]:
        return list(dict.fromkeys(h.note for h in self.hits))


def spam_confidence(score: int) -> Confidence:
    if score >= 95:
        return Confidence.VERY_HIGH
    if score >= 80:
        return Confidence.HIGH
    if score >= 60:
        return Confidence.MEDIUM
    return Confidence.LOW


def _collect(pattern: re.Pattern[str], text: str, note: str, score: int) -> list[_Hit]:
    return [_Hit(m.group(0), m.start(), note, score) for m in pattern.finditer(text) if m.group(0)]


def scan_string_content(content: str, context: str = "", merge_chars: int = 400) -> list[Detection]:
    """Scan HTML/text for spamvertising injections.

    Hits within *merge_chars* of the previous group's padded window join
    that group.  Returns one detection per group; empty means clean.
    """
    if not content.strip():
        return []

    normalized = content.replace("\r\n", "\n").replace("\r", "\n")
    hits: list[_Hit] = []

    for pattern, note, score in _LAYERS[:1]:
        hits.extend(_collect(pattern, normalized, note, score))

    for word, count in Counter(_WORD_RE.findall(content.lower())).items():
        if count >= _STUFFING_MIN and _STUFFING_ROOT_RE.search(word):
            hits.extend(
                _collect(
                    re.compile(rf"\b{re.escape(word)}\b", re.I),
                    normalized,
                    f"Keyword stuffing detected ({count} repetitions of '{word}')",
                    95,
                )
            )

    for pattern, note, score in _LAYERS[1:]:
        hits.extend(_collect(pattern, normalized, note, score))

    if not hits:
        return []

    hits.sort(key=lambda h: h.pos)
    groups: list[_Group] = []
    for hit in hits:
        hit_end = min(len(normalized), hit.pos + len(hit.text) + _WINDOW)
        if not groups or hit.pos > groups[-1].end + merge_chars:
            groups.append(_Group(start=max(0, hit.pos - _WINDOW), end=hit_end, hits=[hit]))
        else:
            groups[-1].end = max(groups[-1].end, hit_end)
            groups[-1].hits.append(hit)

    detections: list[Detection] = []
    for group in groups:
        notes = group.notes
        score = group.score
        detections.append(
            Detection(
                original_line=normalized.count("\n", 0, group.hits[0].pos) + 1,
                matched_text=" | ".join(h.text for h in group.hits),
                original_code=normalized[group.start:group.end],
                context_code=context,
                patterns=notes,
                score=score,
                confidence=spam_confidence(score),
                ai_status=AiStatus.MALICIOUS,
                ai_analysis="Spamvertising injection detected: " + ", ".join(notes),
                without_ai=True,
            )
        )
    return detections


# ---------------------------------------------------------------------------
# Phase runner
# ---------------------------------------------------------------------------


def comment_path(comment_id: int) -> str:
    return f"Content → Comment ID {comment_id}"


def _finish(state: ScanState, spam: SpamState) -> None:
    state.spamvertising_content_completed = True
    state.set_count(ScanStep.SPAMVERTISING, spam.checked, spam.found)
    if spam.found > 0:
        state.step_status[ScanStep.SPAMVERTISING] = StepStatus.WARNING
    state.current_folder = f"Scanned {spam.checked} comments • {spam.found} suspicious"
    state.spam = None
    logger.info("Spamvertising check complete: %d checked, %d found", spam.checked, spam.found)


async def run_spamvertising(state: ScanState, ctx: TickContext) -> None:
    """Scan one batch of comments, oldest cursor first, within the tick budget."""
    if state.spamvertising_content_completed:
        return

    if state.spam is None:
        state.spam = SpamState(batch_size=SPAM_BATCH_SIZE)
        state.current_step = ScanStep.SPAMVERTISING
        state.current_folder = "Scanning comments for spamvertising injections"
        state.set_count(ScanStep.SPAMVERTISING, 0, 0)
    spam = state.spam

    if ctx.source is None:
        _finish(state, spam)
        return

    comments = await ctx.source.list_comments(spam.offset, spam.batch_size)
    if not comments:
        _finish(state, spam)
        return

    existing = existing_source_keys(state.findings)
    ignored = set(ctx.settings.ignored_paths)
    processed = 0

    for comment in comments:
        if ctx.out_of_time(reserve=3):
            break
        processed += 1

        path = comment_path(comment.comment_id)
        if f"{DbType.COMMENT}_{comment.comment_id}" in existing or path in ignored:
            continue

        body = comment.content
        if comment.user_id == 0:
            body = f"{comment.author}\n{comment.author_email}\n{comment.author_url}\n{body}"

        snippets = scan_string_content(
            body, f"Comment ID: {comment.comment_id}", ctx.settings.spam_merge_chars
        )
        if snippets:
            state.findings.append(
                Finding(
                    path=path,
                    size=len(body),
                    mtime=comment.date,
                    snippets=snippets,
                    is_database=True,
                    db_type=DbType.COMMENT,
                    db_id=comment.comment_id,
                )
            )
            state.suspicious = len(state.findings)
            spam.found += len(snippets)
        spam.checked += 1

    spam.offset += processed
    state.set_count(ScanStep.SPAMVERTISING, spam.checked, spam.found)
    state.current_folder = f"Scanning comments • Checked: {spam.checked} • Found: {spam.found}"
    logger.debug("Spam batch: offset=%d checked=%d found=%d", spam.offset, spam.checked, spam.found)
