# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Two-view tokenizer: raw text plus a comment-free, whitespace-collapsed stream.

The cleaned stream keeps string literals and heredoc/nowdoc bodies verbatim.
Sparse maps sampled at every token boundary translate a cleaned offset back
to the original line number and offset.
"""

from __future__ import annotations

import bisect
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from sitewarden.core.exceptions import TokenizeError

logger = logging.getLogger("sitewarden.scanner.tokenizer")

_SPECIAL_SPACES = str.maketrans(
    {"\ufeff": " ", "\u00a0": " ", "\u2000": " ", "\u2001": " "}
)
_WS_RE = re.compile(r"\s+")
_SCRIPT_KEYWORD_RE = re.compile(r"\b(function|class|namespace|use|trait)\b", re.IGNORECASE)
_OPEN_TAG_RE = re.compile(r"<\?(?:php(?=\s|$)|=)?", re.IGNORECASE)
_HEREDOC_RE = re.compile(
    r"<<<[ \t]*(['\"]?)([A-Za-z_\x80-\uffff][A-Za-z0-9_\x80-\uffff]*)\1\r?\n"
)
_LINE_COMMENT_END_RE = re.compile(r"\r?\n|\?>")
_WORD_RE = re.compile(r"[A-Za-z0-9_\x80-\uffff$]+")


@dataclass
class TokenizedContent:
    """The cleaned view of a blob and its maps back to the original."""

    code: str
    line_map: dict[int, int]
    offset_map: dict[int, int]
    error: str | None = None
    _keys: list[int] = field(default_factory=list, init=False, repr=False)

    def _floor_key(self, offset: int) -> int:
        if not self._keys:
            self._keys = sorted(self.line_map)
        idx = bisect.bisect_right(self._keys, offset) - 1
        return self._keys[max(idx, 0)]

    def line_at(self, offset: int) -> int:
        """Original line number for a cleaned-text offset."""
        return self.line_map[self._floor_key(offset)]

    def original_offset(self, offset: int) -> int:
        """Original-text offset for a cleaned-text offset."""
        key = self._floor_key(offset)
        return self.offset_map.get(key, key) + (offset - key)


def is_probably_script_like(text: str) -> bool:
    """Return True if *text* looks like executable server-side script code."""
    lowered = text.lower()
    if "<?php" in lowered or "<?=" in lowered:
        return True
    return _SCRIPT_KEYWORD_RE.search(text) is not None


def identity_view(content: str) -> TokenizedContent:
    """Treat *content* as its own cleaned view, mapping each line start."""
    line_map: dict[int, int] = {}
    offset_map: dict[int, int] = {}
    offset = 0
    for i, line in enumerate(content.split("\n")):
        line_map[offset] = i + 1
        offset_map[offset] = offset
        offset += len(line) + 1
    return TokenizedContent(code=content, line_map=line_map, offset_map=offset_map)


def _string_end(code: str, pos: int, quote: str) -> int:
    i = pos + 1
    n = len(code)
    while i < n:
        ch = code[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    return n


def _lex(code: str) -> Iterator[tuple[str, str]]:
    """Yield ``(kind, text)`` pairs whose texts concatenate back to *code*."""
    pos = 0
    n = len(code)
    in_script = False

    while pos < n:
        if not in_script:
            m = _OPEN_TAG_RE.search(code, pos)
            if m is None:
                yield "html", code[pos:]
                return
            if m.start() > pos:
                yield "html", code[pos:m.start()]
            end = m.end()
            if m.group(0).lower() == "<?php" and end < n and code[end] in " \t\r\n":
                end += 2 if code.startswith("\r\n", end) else 1
            yield "open", code[m.start():end]
            pos = end
            in_script = True
            continue

        ch = code[pos]
        if ch.isspace():
            end = pos + 1
            while end < n and code[end].isspace():
                end += 1
            yield "ws", code[pos:end]
            pos = end
            continue

        if code.startswith("?>", pos):
            end = pos + 2
            if code.startswith("\r\n", end):
                end += 2
            elif end < n and code[end] == "\n":
                end += 1
            yield "close", code[pos:end]
            pos = end
            in_script = False
            continue

        if code.startswith("/*", pos):
            end = code.find("*/", pos + 2)
            end = n if end < 0 else end + 2
            yield "comment", code[pos:end]
            pos = end
            continue

        if code.startswith("//", pos) or (ch == "#" and not code.startswith("#[", pos)):
            m = _LINE_COMMENT_END_RE.search(code, pos)
            end = m.start() if m else n
            yield "comment", code[pos:end]
            pos = end
            continue

        if ch in "'\"`":
            end = _string_end(code, pos, ch)
            yield "string", code[pos:end]
            pos = end
            continue

        if code.startswith("<<<", pos):
            m = _HEREDOC_RE.match(code, pos)
            if m is not None:
                closing = re.compile(
                    r"^[ \t]*" + re.escape(m.group(2)) + r"(?![A-Za-z0-9_\x80-\uffff])",
                    re.MULTILINE,
                )
                t = closing.search(code, m.end())
                end = t.end() if t else n
                yield "heredoc", code[pos:end]
                pos = end
                continue

        m = _WORD_RE.match(code, pos)
        if m is not None:
            yield "code", m.group(0)
            pos = m.end()
            continue

        yield "code", ch
        pos += 1


def strip_with_line_map(code: str) -> TokenizedContent:
    """Strip comments and collapse whitespace, recording maps to the original.

    Raises:
        TokenizeError: If the text cannot be lexed.
    """
    code = code.translate(_SPECIAL_SPACES)

    if "<?" not in code:
        return TokenizedContent(
            code=_WS_RE.sub(" ", code).strip(),
            line_map={0: 1},
            offset_map={0: 0},
        )

    parts: list[str] = []
    line_map: dict[int, int] = {}
    offset_map: dict[int, int] = {}
    clean_offset = 0
    original_offset = 0
    original_line = 1

    try:
        for kind, text in _lex(code):
            newlines = text.count("\n")
            if kind == "comment":
                original_offset += len(text)
                original_line += newlines
                continue

            if kind == "ws" and parts and parts[-1] == " ":
                original_offset += len(text)
                original_line += newlines
                continue

            out = " " if kind == "ws" else text
            if clean_offset not in line_map:
                line_map[clean_offset] = original_line
                offset_map[clean_offset] = original_offset
            parts.append(out)
            clean_offset += len(out)
            original_offset += len(text)
            original_line += newlines
    except (IndexError, ValueError, re.error) as exc:
        raise TokenizeError(f"Failed to tokenize content: {exc}") from exc

    if not line_map:
        line_map[0] = 1
        offset_map[0] = 0
    elif 0 not in line_map:
        first = min(line_map)
        line_map[0] = line_map[first]
        offset_map[0] = offset_map[first]

    return TokenizedContent(
        code="".join(parts),
        line_map=dict(sorted(line_map.items())),
        offset_map=dict(sorted(offset_map.items())),
    )


def tokenize(content: str) -> TokenizedContent:
    """Tokenize *content*, falling back to the raw text on any failure."""
    try:
        return strip_with_line_map(content)
    except Exception as exc:
        logger.warning("Tokenizer fell back to raw content: %s", exc)
        view = identity_view(content)
        view.error = str(exc)
        return view
