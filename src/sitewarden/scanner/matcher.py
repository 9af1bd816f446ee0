# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Apply detection rules to the raw and cleaned views of a content blob."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from sitewarden.core.constants import SNIPPET_AFTER, SNIPPET_BEFORE, MatchContext
from sitewarden.models.pattern import PatternRule, RawMatch
from sitewarden.scanner.tokenizer import TokenizedContent

logger = logging.getLogger("sitewarden.scanner.matcher")


def _targets(rule: PatternRule, content: str, view: TokenizedContent) -> list[tuple[str, bool]]:
    targets: list[tuple[str, bool]] = []
    if rule.context in (MatchContext.RAW, MatchContext.BOTH):
        targets.append((content, True))
    if rule.context in (MatchContext.TOKEN, MatchContext.BOTH):
        targets.append((view.code, False))
    return targets


def match_content(
    content: str,
    view: TokenizedContent,
    rules: Sequence[PatternRule],
) -> list[RawMatch]:
    """Run every rule over the views its context selects.

    Each hit is positioned in *content*: raw hits directly, token hits via
    the view's offset map.  Nothing is filtered here; scoring happens in
    the finding builder.
    """
    matches: list[RawMatch] = []
    counter = 0

    for rule in rules:
        try:
            compiled = rule.compiled
        except re.error as exc:
            logger.warning("Skipping rule with invalid regex (%s): %s", rule.note, exc)
            continue

        for text, is_raw in _targets(rule, content, view):
            pos = 0
            while True:
                m = compiled.search(text, pos)
                if m is None:
                    break
                hit = m.group(0)
                if not hit.strip():
                    break

                start = m.start()
                if is_raw:
                    original = start
                    line = content.count("\n", 0, start) + 1
                else:
                    original = view.original_offset(start)
                    line = view.line_at(start)

                uid = f"{original}:{'R' if is_raw else 'T'}:{line}:{counter}:{rule.fingerprint}"
                counter += 1

                snippet_start = max(0, original - SNIPPET_BEFORE)
                matches.append(
                    RawMatch(
                        rule=rule,
                        matched_text=hit,
                        offset=original,
                        line=line,
                        snippet=content[snippet_start:snippet_start + len(hit) + SNIPPET_AFTER],
                        is_raw=is_raw,
                        uid=uid,
                    )
                )
                pos = start + max(1, len(hit))

    return matches
