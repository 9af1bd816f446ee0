# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Abstract AI verdict service interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from sitewarden.core.constants import AiStatus


class AiVerdict(BaseModel):
    """Parsed verdict returned by a verdict service."""

    status: AiStatus
    analysis: str
    model: str = ""
    raw_response: str = ""


class VerdictService(ABC):
    """Black-box service that classifies a condensed code context.

    Implementations raise :class:`~sitewarden.core.exceptions.VerdictError`
    on any transport or parsing failure; callers fall back to a
    pattern-only verdict.
    """

    @property
    def is_connected(self) -> bool:
        """Whether the service is configured well enough to be called."""
        return True

    @abstractmethod
    async def analyze(self, prompt: str, label: str) -> AiVerdict:
        """Classify *prompt* (context built for the source named *label*)."""
        ...
