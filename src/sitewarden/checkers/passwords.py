# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Weak-password audit of administrator accounts."""

from __future__ import annotations

import asyncio
import logging
import re
from urllib.parse import urlparse

from sitewarden.checkers.hashing import check_password
from sitewarden.core.config import Settings
from sitewarden.core.constants import (
    ADMIN_LIST_LIMIT,
    AiStatus,
    Confidence,
    DbType,
    ScanStep,
    StepStatus,
)
from sitewarden.engine.context import TickContext
from sitewarden.models.finding import Detection, Finding, existing_source_keys
from sitewarden.models.site import UserRecord
from sitewarden.models.state import PasswordState, ScanState

logger = logging.getLogger("sitewarden.checkers.passwords")

COMMON_WEAK_PASSWORDS: tuple[str, ...] = (
    "123456", "password", "123456789", "12345678", "12345", "1234567", "1234567890",
    "qwerty", "abc123", "password1", "admin", "123123", "111111", "1234",
    "letmein", "welcome", "login", "wordpress", "admin123", "000000", "sunshine",
    "princess", "flower", "iloveyou", "monkey", "football", "baseball", "dragon",
    "shadow", "master", "666666", "696969", "654321", "987654321", "qazwsx",
    "1q2w3e4r", "1qaz2wsx", "zaq12wsx", "password123", "adminadmin", "root",
    "toor", "ubuntu", "guest", "user", "test", "changeme", "default",
    "p@ssw0rd", "P@ssw0rd", "Password", "Password1", "admin@123", "india@123",
    "minecraft", "superman", "batman", "tigger", "poohbear", "michael", "jordan",
    "jennifer", "hunter", "killer", "soccer", "football1", "basketball", "harley",
    "ranger", "andrew", "buster", "charlie", "daniel", "george", "thomas",
    "123qwe", "qwe123", "qwerty123", "1q2w3e", "zxcvbnm", "asdfgh", "aa123456",
    "hello", "freedom", "whatever", "trustno1", "starwars", "ninja", "jesus",
    "angel", "babygirl", "summer", "winter", "love", "liverpool", "chelsea",
    "arsenal", "manchester", "united", "barcelona", "realmadrid", "juventus",
    "ferrari", "lamborghini", "mercedes", "porsche", "bmw", "audi", "volvo",
    "india123", "pakistan123", "bangladesh123", "nepal123", "sri123", "malaysia123",
    "singapore123", "thailand123", "vietnam123", "korea123", "japan123", "china123",
    "Aa123456", "admin1", "root123",
)
DEFAULT_GUESSES: tuple[str, ...] = ("password", "admin", "wordpress", "wpadmin", "wp123")

MATCH_BREACHED = "Exact match in top 10,000+ breached passwords list"
MATCH_DEFAULT = "Default WordPress/admin pattern detected"

_CLEAN_RE = re.compile(r"[^a-z0-9]")


def candidate_variants(user: UserRecord, site_name: str = "", site_url: str = "") -> list[str]:
    """Username-, site-name- and domain-derived password guesses for *user*."""
    username = user.login.lower()
    variants = [
        username,
        username.capitalize(),
        username.upper(),
        f"{username}123",
        f"{username}!",
        f"{username}@",
        f"{username}2025",
        f"{username}2026",
        f"{username}{user.id}",
    ]
    site_clean = _CLEAN_RE.sub("", site_name.lower())
    if site_clean:
        variants += [site_clean, f"{site_clean}123", f"{site_clean}2025"]
    domain_clean = _CLEAN_RE.sub("", (urlparse(site_url).hostname or "").lower())
    if domain_clean:
        variants += [domain_clean, f"{domain_clean}123"]
    return list(dict.fromkeys(v for v in variants if v))


def find_weak_match(user: UserRecord, settings: Settings) -> tuple[str, int] | None:
    """Return ``(match description, risk score)`` for the first guess that verifies.

    Breached-list matches score 100, username/site variants 95 and
    default guesses 98.  CPU-bound; run it off the event loop.
    """
    stored = user.password_hash
    if not stored:
        return None

    for weak in COMMON_WEAK_PASSWORDS:
        if check_password(weak, stored):
            return MATCH_BREACHED, 100

    for variant in candidate_variants(user, settings.site_name, settings.site_url):
        if check_password(variant, stored):
            return f"Password matches username/site-derived pattern: '{variant}'", 95

    for guess in DEFAULT_GUESSES:
        if check_password(guess, stored):
            return MATCH_DEFAULT, 98

    return None


def weak_password_path(user: UserRecord) -> str:
    return f"Security → Weak Password: User ID {user.id} ({user.login}) – Role: {', '.join(user.roles)}"


def build_weak_password_finding(user: UserRecord, match_type: str, risk: int) -> Finding:
    registered = user.registered.strftime("%Y-%m-%d %H:%M:%S")
    roles = ", ".join(user.roles)
    return Finding(
        path=weak_password_path(user),
        mtime=registered,
        snippets=[
            Detection(
                matched_text="CRITICAL WEAK PASSWORD",
                original_code=(
                    "ULTRA-HIGH RISK: Administrator-level account uses extremely weak password\n"
                    f"User: {user.login} (ID: {user.id})\n"
                    f"Roles: {roles}\n"
                    f"Match: {match_type}\n"
                    f"Registered: {registered}"
                ),
                context_code="Password Strength Violation – Immediate Action Required",
                patterns=["Ultra-Weak Password", "Common Breach List", "Username-Derived", "Site-Derived"],
                score=risk,
                confidence=Confidence.VERY_HIGH if risk >= 95 else Confidence.HIGH,
                ai_status=AiStatus.MALICIOUS,
                ai_analysis=(
                    f"{match_type}. The password appears in public breach compilations or "
                    "derives from the username or site. Force a password change."
                ),
                without_ai=True,
            )
        ],
        is_database=True,
        db_type=DbType.USER,
        db_id=user.id,
    )


def _finish(state: ScanState, pw: PasswordState) -> None:
    state.password_strength_completed = True
    state.set_count(ScanStep.PASSWORD, pw.checked, pw.found)
    if pw.found > 0:
        state.step_status[ScanStep.PASSWORD] = (
            StepStatus.CRITICAL if pw.high_risk > 0 else StepStatus.WARNING
        )
    state.current_folder = (
        f"Audited {pw.checked} administrator accounts • {pw.found} weak "
        f"(including {pw.high_risk} critical)"
    )
    state.password = None
    logger.info("Password audit complete: %d checked, %d weak", pw.checked, pw.found)


async def run_password_audit(state: ScanState, ctx: TickContext) -> None:
    """Audit administrator passwords, resuming from the persisted account offset."""
    if state.password_strength_completed:
        return

    if state.password is None:
        state.password = PasswordState()
        state.current_step = ScanStep.PASSWORD
        state.current_folder = "Auditing administrator passwords for common weaknesses"
    pw = state.password

    if ctx.source is None:
        _finish(state, pw)
        return

    admins = await ctx.source.list_admins(ADMIN_LIST_LIMIT)
    existing = existing_source_keys(state.findings)
    ignored = set(ctx.settings.ignored_paths)

    while pw.offset < len(admins):
        if ctx.out_of_time():
            state.set_count(ScanStep.PASSWORD, pw.checked, pw.found)
            return
        user = admins[pw.offset]
        pw.offset += 1
        pw.checked += 1

        if f"{DbType.USER}_{user.id}" in existing or weak_password_path(user) in ignored:
            continue

        match = await asyncio.to_thread(find_weak_match, user, ctx.settings)
        if match is None:
            continue

        match_type, risk = match
        pw.found += 1
        if risk >= 95:
            pw.high_risk += 1
        state.findings.append(build_weak_password_finding(user, match_type, risk))
        state.suspicious = len(state.findings)
        existing.add(f"{DbType.USER}_{user.id}")

    _finish(state, pw)
