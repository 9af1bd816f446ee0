# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Async HTTP clients for the pattern/integrity service and core checksums."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from sitewarden import __version__
from sitewarden.core.constants import SELF_HASH_EXTENSIONS
from sitewarden.core.exceptions import RemoteServiceError

logger = logging.getLogger("sitewarden.remote.client")

_TIMEOUT = 15.0
_USER_AGENT = f"sitewarden/{__version__}"


@dataclass(frozen=True)
class ServiceToken:
    token: str
    expires: int


def _check_response(resp: httpx.Response, context: str = "") -> None:
    """Raise :class:`RemoteServiceError` for non-2xx responses."""
    if resp.is_success:
        return
    msg = f"{context}: HTTP {resp.status_code}" if context else f"HTTP {resp.status_code}"
    body = resp.text[:200]
    if body:
        msg = f"{msg}: {body}"
    raise RemoteServiceError(msg, status_code=resp.status_code)


def _json(resp: httpx.Response, context: str) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise RemoteServiceError(f"{context}: malformed JSON response") from exc


# ---------------------------------------------------------------------------
# Integrity proof
# ---------------------------------------------------------------------------


def compute_own_hashes(root: Path) -> dict[str, str]:
    """SHA-256 of every hashable file under *root*, keyed by relative path."""
    hashes: dict[str, str] = {}
    if not root.is_dir():
        return hashes
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.is_symlink():
            continue
        if path.suffix.lower().lstrip(".") not in SELF_HASH_EXTENSIONS:
            continue
        rel = path.relative_to(root).as_posix()
        hashes[rel] = hashlib.sha256(path.read_bytes()).hexdigest()
    return hashes


def build_integrity_proof(hashes: dict[str, str]) -> str:
    """Encode the installation's file hashes for the ``X-Integrity`` header."""
    payload = json.dumps(hashes, sort_keys=True, separators=(",", ":"))
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


# ---------------------------------------------------------------------------
# Pattern / integrity service
# ---------------------------------------------------------------------------


class PatternServiceClient:
    """Token-authenticated client for remote detection rules and expected hashes.

    Parameters
    ----------
    base_url:
        Service root; ``/get-token``, ``/patterns`` and ``/hashes`` are
        resolved beneath it.
    timeout:
        HTTP timeout in seconds.
    """

    def __init__(self, base_url: str, timeout: float = _TIMEOUT) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"User-Agent": _USER_AGENT, "Accept": "application/json"},
        )

    async def _get(self, path: str, context: str, headers: dict[str, str] | None = None) -> Any:
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}{path}", headers=headers)
        except httpx.HTTPError as exc:
            raise RemoteServiceError(f"{context}: {exc}") from exc
        _check_response(resp, context)
        return _json(resp, context)

    async def get_token(self) -> ServiceToken:
        """Obtain a short-lived access token."""
        data = await self._get("/get-token", "get token")
        token = data.get("token") if isinstance(data, dict) else None
        expires = data.get("expires") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise RemoteServiceError("get token: response carries no token")
        try:
            expires_at = int(expires)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise RemoteServiceError("get token: response carries no expiry") from exc
        return ServiceToken(token=token, expires=expires_at)

    def _auth_headers(self, token: ServiceToken, integrity_proof: str) -> dict[str, str]:
        return {
            "X-Token": token.token,
            "X-Expires": str(token.expires),
            "X-Integrity": integrity_proof,
        }

    async def fetch_patterns(self, integrity_proof: str) -> list[Any]:
        """Fetch the raw rule list.  Validation is the caller's concern."""
        token = await self.get_token()
        data = await self._get(
            "/patterns", "fetch patterns", headers=self._auth_headers(token, integrity_proof)
        )
        if isinstance(data, dict):
            data = data.get("patterns")
        if not isinstance(data, list):
            raise RemoteServiceError("fetch patterns: expected a list of rules")
        logger.info("Fetched %d rules from pattern service", len(data))
        return data

    async def fetch_hashes(self, integrity_proof: str) -> dict[str, str]:
        """Fetch the expected SHA-256 hashes of the scanner's own files."""
        token = await self.get_token()
        data = await self._get(
            "/hashes", "fetch hashes", headers=self._auth_headers(token, integrity_proof)
        )
        if isinstance(data, dict) and isinstance(data.get("hashes"), dict):
            data = data["hashes"]
        if not isinstance(data, dict) or not data:
            raise RemoteServiceError("fetch hashes: expected a non-empty mapping")
        return {str(k): str(v) for k, v in data.items()}


# ---------------------------------------------------------------------------
# Core checksum authority
# ---------------------------------------------------------------------------


class CoreChecksumClient:
    """Fetches the official ``{path: hash}`` manifest for a core release."""

    def __init__(self, url: str, timeout: float = 30.0) -> None:
        self.url = url
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"User-Agent": _USER_AGENT},
        )

    async def fetch(self, version: str, locale: str = "") -> tuple[dict[str, str], str]:
        """Return ``(checksums, checksum_type)``.

        The site locale is tried first, then ``en_US``, then no locale.

        Raises:
            RemoteServiceError: If no candidate yields a checksum manifest.
        """
        candidates = [locale, "en_US", ""] if locale else ["en_US", ""]
        candidates = list(dict.fromkeys(candidates))
        last_error = "no candidate locale answered"

        async with self._client() as client:
            for candidate in candidates:
                params = {"version": version}
                if candidate:
                    params["locale"] = candidate
                try:
                    resp = await client.get(self.url, params=params)
                except httpx.HTTPError as exc:
                    last_error = str(exc)
                    continue
                if resp.status_code != 200:
                    last_error = f"HTTP {resp.status_code}"
                    continue
                try:
                    body = resp.json()
                except ValueError:
                    last_error = "malformed JSON"
                    continue
                checksums = body.get("checksums") if isinstance(body, dict) else None
                if isinstance(checksums, dict) and checksums:
                    logger.info(
                        "Core checksums for %s (%s): %d files",
                        version, candidate or "default", len(checksums),
                    )
                    return (
                        {str(k): str(v) for k, v in checksums.items()},
                        str(body.get("checksum_type") or "md5"),
                    )

        raise RemoteServiceError(f"core checksums unavailable for {version}: {last_error}")
