# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tiered loader for detection rules.

Resolution order, first non-empty wins:

1. remote rules cached by an earlier fetch (24h),
2. a fresh authenticated fetch from the pattern service,
3. the long-lived local cache (30 days),
4. the bundled ``bundled.yml`` shipped with the package.

A remote payload is accepted only if every rule validates; one bad rule
rejects the whole payload.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from sitewarden.core.constants import (
    PATTERNS_LOCAL_CACHE_KEY,
    PATTERNS_LOCAL_TTL,
    PATTERNS_REMOTE_CACHE_KEY,
    PATTERNS_REMOTE_FAILED_KEY,
    PATTERNS_REMOTE_FAILED_TTL,
    PATTERNS_REMOTE_TTL,
    PATTERNS_SOURCE_KEY,
    PatternSource,
)
from sitewarden.core.exceptions import PatternError, RemoteServiceError
from sitewarden.models.pattern import PatternRule
from sitewarden.remote.client import PatternServiceClient, build_integrity_proof, compute_own_hashes
from sitewarden.storage.base import StateStore

logger = logging.getLogger("sitewarden.patterns.catalog")

BUNDLED_PATH = Path(__file__).with_name("bundled.yml")


def validate_payload(raw: Any) -> list[PatternRule]:
    """Validate a rule list wholesale.

    Raises:
        PatternError: If *raw* is not a non-empty list or any rule is invalid.
    """
    if not isinstance(raw, list) or not raw:
        raise PatternError("Rule payload must be a non-empty list")

    rules: list[PatternRule] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise PatternError(f"Rule #{index} is not a mapping")
        try:
            rule = PatternRule.model_validate(item)
            rule.compiled  # noqa: B018
        except ValidationError as exc:
            raise PatternError(f"Rule #{index} failed validation: {exc}") from exc
        except re.error as exc:
            raise PatternError(f"Rule #{index} has an invalid regex: {exc}") from exc
        rules.append(rule)
    return rules


def load_bundled(path: Path = BUNDLED_PATH) -> list[PatternRule]:
    """Load the rules shipped with the package."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise PatternError(f"Cannot read bundled rules from {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise PatternError(f"Expected a mapping at top level in {path.name}")
    return validate_payload(data.get("rules"))


def _dump(rules: list[PatternRule]) -> list[dict[str, Any]]:
    return [r.model_dump(mode="json") for r in rules]


class PatternCatalog:
    """Resolve the active rule set for one scan tick."""

    def __init__(
        self,
        store: StateStore,
        client: PatternServiceClient | None = None,
        *,
        self_dir: Path | None = None,
        bundled_path: Path = BUNDLED_PATH,
    ) -> None:
        self._store = store
        self._client = client
        self._self_dir = self_dir
        self._bundled_path = bundled_path
        self._rules: list[PatternRule] | None = None
        self.source: PatternSource | None = None

    async def _cached(self, key: str) -> list[PatternRule] | None:
        raw = await self._store.get_transient(key)
        if not raw:
            return None
        try:
            return validate_payload(raw)
        except PatternError as exc:
            logger.warning("Discarding invalid cached rules (%s): %s", key, exc)
            await self._store.delete_transient(key)
            return None

    async def _fetch_remote(self) -> list[PatternRule] | None:
        if self._client is None:
            return None
        if await self._store.get_transient(PATTERNS_REMOTE_FAILED_KEY):
            logger.debug("Pattern service marked unavailable; skipping fetch")
            return None

        proof = build_integrity_proof(compute_own_hashes(self._self_dir) if self._self_dir else {})
        try:
            return validate_payload(await self._client.fetch_patterns(proof))
        except (RemoteServiceError, PatternError) as exc:
            logger.warning("Remote rules unavailable, falling back to local: %s", exc)
            return None

    async def _resolve(self) -> tuple[list[PatternRule], PatternSource]:
        cached = await self._cached(PATTERNS_REMOTE_CACHE_KEY)
        if cached:
            return cached, PatternSource.SERVER_CACHE

        remote = await self._fetch_remote()
        if remote:
            await self._store.set_transient(
                PATTERNS_REMOTE_CACHE_KEY, _dump(remote), PATTERNS_REMOTE_TTL
            )
            await self._store.delete_transient(PATTERNS_REMOTE_FAILED_KEY)
            return remote, PatternSource.SERVER

        local = await self._cached(PATTERNS_LOCAL_CACHE_KEY)
        if local:
            return local, PatternSource.LOCAL_CACHE

        await self._store.set_transient(
            PATTERNS_REMOTE_FAILED_KEY, True, PATTERNS_REMOTE_FAILED_TTL
        )
        try:
            bundled = load_bundled(self._bundled_path)
        except PatternError as exc:
            logger.error("Bundled rules unusable, scanning in degraded mode: %s", exc)
            return [], PatternSource.DEGRADED

        await self._store.set_transient(PATTERNS_LOCAL_CACHE_KEY, _dump(bundled), PATTERNS_LOCAL_TTL)
        return bundled, PatternSource.LOCAL

    async def load(self) -> list[PatternRule]:
        """Return the active rules, resolving them once per catalog instance."""
        if self._rules is not None:
            return self._rules

        rules, source = await self._resolve()
        self._rules = rules
        self.source = source
        await self._store.set(PATTERNS_SOURCE_KEY, str(source))
        logger.info("Loaded %d detection rules (%s)", len(rules), source)
        return rules

    async def clear_cache(self) -> None:
        """Forget every cached rule set so the next load starts from the top."""
        self._rules = None
        self.source = None
        for key in (PATTERNS_REMOTE_CACHE_KEY, PATTERNS_LOCAL_CACHE_KEY, PATTERNS_REMOTE_FAILED_KEY):
            await self._store.delete_transient(key)
