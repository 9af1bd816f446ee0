# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Verdict service backed by the Anthropic Messages API."""

from __future__ import annotations

import logging

import anthropic

from sitewarden.ai.base import AiVerdict, VerdictService
from sitewarden.ai.parser import parse_structured_response
from sitewarden.ai.prompts import SYSTEM_PROMPT, build_user_prompt, new_request_id
from sitewarden.core.config import Settings, get_settings
from sitewarden.core.exceptions import VerdictError

logger = logging.getLogger("sitewarden.ai.anthropic_service")


class AnthropicVerdictService(VerdictService):
    """Ask a Claude model for a CLEAN / SUSPICIOUS / MALICIOUS verdict."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    @property
    def is_connected(self) -> bool:
        return bool(self._settings.anthropic_api_key and self._settings.llm_model)

    async def analyze(self, prompt: str, label: str) -> AiVerdict:
        settings = self._settings
        if not self.is_connected:
            raise VerdictError("Anthropic API key or model is not configured")

        request_id = new_request_id()
        client = anthropic.AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.llm_timeout,
        )
        try:
            response = await client.messages.create(
                model=settings.llm_model,
                max_tokens=settings.llm_max_tokens,
                temperature=settings.llm_temperature,
                system=SYSTEM_PROMPT,
                messages=[
                    {"role": "user", "content": build_user_prompt(prompt, label, request_id)}
                ],
            )
        except anthropic.APIError as exc:
            raise VerdictError(f"Anthropic API error during verdict for {label}: {exc}") from exc

        response_text = ""
        for block in response.content:
            if block.type == "text":
                response_text += block.text

        if not response_text.strip():
            raise VerdictError("AI returned an empty or invalid response")

        status, analysis = parse_structured_response(response_text)
        logger.info("AI verdict for %s: %s (%s)", label, status, request_id)
        return AiVerdict(
            status=status,
            analysis=analysis or "AI analysis completed successfully.",
            model=settings.llm_model,
            raw_response=response_text,
        )
