# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Detection rule and raw match models."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from functools import cached_property

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from sitewarden.core.constants import MatchContext

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "m": re.MULTILINE,
}

# /body/flags, #body#flags, ~body~flags
_DELIMITED_RE = re.compile(r"^([/#~])(.*)\1([a-zA-Z]*)$", re.DOTALL)


def split_delimited(regex: str) -> tuple[str, str]:
    """Split a delimited ``/body/flags`` expression into body and flag letters.

    Expressions without delimiters are returned unchanged with no flags.
    """
    m = _DELIMITED_RE.match(regex.strip())
    if m is None:
        return regex, ""
    return m.group(2), m.group(3)


class PatternRule(BaseModel):
    """A weighted detection rule.

    ``score`` may be negative; negative rules pull the global score of a
    blob down and are how benign idioms are offset.
    """

    model_config = ConfigDict(frozen=True)

    regex: str
    score: int
    note: str = "Suspicious pattern"
    context: MatchContext = MatchContext.BOTH
    flags: str = ""

    @model_validator(mode="before")
    @classmethod
    def _unwrap_delimiters(cls, data: object) -> object:
        if isinstance(data, dict) and isinstance(data.get("regex"), str):
            body, flags = split_delimited(data["regex"])
            if flags or body != data["regex"]:
                data = {**data, "regex": body, "flags": data.get("flags") or flags}
        return data

    @field_validator("regex")
    @classmethod
    def _regex_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("regex must be a non-empty string")
        return v

    @field_validator("score", mode="before")
    @classmethod
    def _score_numeric(cls, v: object) -> int:
        if isinstance(v, bool) or not isinstance(v, (int, float, str)):
            raise ValueError("score must be numeric")
        try:
            return int(float(v))
        except ValueError as exc:
            raise ValueError("score must be numeric") from exc

    @field_validator("flags")
    @classmethod
    def _known_flags(cls, v: str) -> str:
        return "".join(ch for ch in v.lower() if ch in _FLAG_MAP)

    @field_validator("context", mode="before")
    @classmethod
    def _default_context(cls, v: object) -> object:
        return v or MatchContext.BOTH

    @cached_property
    def compiled(self) -> re.Pattern[str]:
        re_flags = 0
        for ch in self.flags:
            re_flags |= _FLAG_MAP[ch]
        return re.compile(self.regex, re_flags)

    @cached_property
    def fingerprint(self) -> str:
        return hashlib.md5(self.regex.encode("utf-8")).hexdigest()[:8]


@dataclass
class RawMatch:
    """One regex hit, positioned in the original content."""

    rule: PatternRule
    matched_text: str
    offset: int
    line: int
    snippet: str
    is_raw: bool
    uid: str
