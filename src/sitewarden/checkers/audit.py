# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Administrator account and autoloaded option audit."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

from sitewarden.core.config import Settings
from sitewarden.core.constants import (
    ADMIN_LIST_LIMIT,
    AiStatus,
    AuditPhase,
    Confidence,
    DbType,
    ScanStep,
    StepStatus,
)
from sitewarden.engine.context import TickContext
from sitewarden.models.finding import Detection, Finding, existing_source_keys
from sitewarden.models.site import UserRecord
from sitewarden.models.state import AuditState, ScanState
from sitewarden.sources.base import SiteDataSource

logger = logging.getLogger("sitewarden.checkers.audit")

DISPOSABLE_DOMAINS = frozenset(
    {
        "temp-mail.org", "tempmail.org", "guerrillamail.com", "10minutemail.com",
        "mailinator.com", "throwawaymail.com", "disposablemail.com", "yopmail.com",
        "sharklasers.com", "guerrillamailblock.com", "filzmail.com",
    }
)
BACKDOOR_USERNAME_RE = re.compile(r"^(admin|root|test|backup|wp|wordpress|user|dev)\d*$", re.I)
HIDDEN_USERNAME_RE = re.compile(
    r"^(admin|root|test|backup|wp|wordpress|user|dev|support|help|hidden|shell)\d*$", re.I
)

DANGEROUS_OPTION_PATTERNS: tuple[str, ...] = (
    "eval(", "base64_decode(", "gzinflate(", "str_rot13(", "create_function(",
    "exec(", "system(", "shell_exec(", "passthru(", "popen(", "proc_open(", "assert(",
    "file_put_contents(", "fwrite(", "<?php", "<? ",
)
KNOWN_MALICIOUS_OPTIONS = frozenset(
    {
        "rs_session", "widget_blackhole", "sys_plug", "active_plugins_backup",
        "wp_check_hash", "rsssl_jquery", "wps_hide_login",
    }
)


def _fmt_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _size_format(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def suspicion_signals(user: UserRecord, recent_days: int = 45, now: datetime | None = None) -> list[str]:
    """Independent reasons to suspect an administrator account."""
    reasons: list[str] = []
    email = user.email.lower()
    domain = email.rpartition("@")[2] if "@" in email else ""
    if domain in DISPOSABLE_DOMAINS:
        reasons.append(f"Disposable/temporary email domain detected ({domain})")

    now = now or datetime.now(user.registered.tzinfo)
    age = now - user.registered
    if age < timedelta(days=recent_days):
        reasons.append(f"Administrator account created very recently ({max(age.days, 0)} days ago)")

    if BACKDOOR_USERNAME_RE.match(user.login):
        reasons.append("Username follows common hidden/backdoor pattern")

    display = user.display_name.strip()
    if display and user.login.lower() not in display.lower() and len(display) > 5:
        reasons.append("Display name significantly differs from login (potential hidden admin)")

    return reasons


def suspicious_admin_path(user: UserRecord) -> str:
    return f"Security → Suspicious Admin: {user.login} (ID: {user.id})"


def hidden_admin_path(user: UserRecord) -> str:
    return f"Security → HIDDEN ADMIN USER: {user.login} (ID: {user.id}) – Completely hidden from admin panel"


def _suspicious_admin_finding(user: UserRecord, reasons: list[str]) -> Finding:
    registered = _fmt_date(user.registered)
    return Finding(
        path=suspicious_admin_path(user),
        mtime=registered,
        snippets=[
            Detection(
                matched_text="SUSPICIOUS ADMIN USER",
                original_code=(
                    "HIGH RISK: Potentially compromised or hidden administrator\n"
                    f"User: {user.login} (ID: {user.id})\n"
                    f"Email: {user.email.lower()}\n"
                    f"Registered: {registered}\n"
                    "Reasons:\n• " + "\n• ".join(reasons)
                ),
                context_code="User Audit – Immediate Review Required",
                patterns=["Suspicious Admin", *reasons],
                score=95,
                confidence=Confidence.HIGH,
                ai_status=AiStatus.MALICIOUS,
                ai_analysis=(
                    "Multiple independent indicators point to a compromised or planted "
                    "administrator account. Reset its password and review its activity."
                ),
                without_ai=True,
            )
        ],
        is_database=True,
        db_type=DbType.USER,
        db_id=user.id,
    )


def _hidden_admin_finding(user: UserRecord) -> Finding:
    registered = _fmt_date(user.registered)
    return Finding(
        path=hidden_admin_path(user),
        mtime=registered,
        snippets=[
            Detection(
                matched_text="CRITICAL HIDDEN ADMIN",
                original_code=(
                    "ULTRA-HIGH RISK: Administrator account exists in the database but is "
                    "hidden from the admin user listing\n"
                    f"User: {user.login} (ID: {user.id})\n"
                    f"Email: {user.email}\n"
                    f"Registered: {registered}\n"
                    "Malware commonly filters user queries to conceal backdoor accounts"
                ),
                context_code="Hidden Admin Detection – Immediate Deletion Required",
                patterns=["Hidden Administrator", "Database-Only Admin", "Potential Backdoor"],
                score=100,
                confidence=Confidence.VERY_HIGH,
                ai_status=AiStatus.MALICIOUS,
                ai_analysis=(
                    "A direct capability query found an administrator that the standard user "
                    "listing does not show, with a backdoor-style username. Delete the account "
                    "and run a full malware scan."
                ),
                without_ai=True,
            )
        ],
        is_database=True,
        db_type=DbType.HIDDEN_USER,
        db_id=user.id,
    )


async def _audit_users(
    state: ScanState, audit: AuditState, source: SiteDataSource, settings: Settings
) -> None:
    existing = existing_source_keys(state.findings)
    ignored = set(settings.ignored_paths)

    admins = await source.list_admins(ADMIN_LIST_LIMIT)
    visible_ids = {u.id for u in admins}

    for user in admins:
        audit.users_checked += 1
        if f"{DbType.USER}_{user.id}" in existing or suspicious_admin_path(user) in ignored:
            continue
        reasons = suspicion_signals(user, settings.audit_recent_days)
        if len(reasons) >= settings.audit_min_signals:
            state.findings.append(_suspicious_admin_finding(user, reasons))
            existing.add(f"{DbType.USER}_{user.id}")
            audit.users_found += 1

    for user in await source.query_db_admins():
        if user.id in visible_ids or not HIDDEN_USERNAME_RE.match(user.login):
            continue
        if {f"{DbType.USER}_{user.id}", f"{DbType.HIDDEN_USER}_{user.id}"} & existing:
            continue
        if hidden_admin_path(user) in ignored:
            continue
        state.findings.append(_hidden_admin_finding(user))
        existing.add(f"{DbType.HIDDEN_USER}_{user.id}")
        audit.users_found += 1
        logger.warning("Hidden administrator detected: %s (ID %d)", user.login, user.id)

    state.suspicious = len(state.findings)


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


def option_reasons(name: str, value: str) -> list[str]:
    """Reasons to flag an autoloaded option: a known bad name and/or the first dangerous pattern."""
    reasons: list[str] = []
    if name in KNOWN_MALICIOUS_OPTIONS:
        reasons.append("Known malicious/historical backdoor option name")
    lowered = value.lower()
    for pattern in DANGEROUS_OPTION_PATTERNS:
        if pattern in lowered:
            reasons.append(f"Contains dangerous PHP pattern: {pattern}")
            break
    return reasons


def option_path(name: str) -> str:
    return f"Database → Option: {name}"


def _option_finding(name: str, value: str, reasons: list[str]) -> Finding:
    return Finding(
        path=option_path(name),
        size=len(value),
        mtime="N/A (database)",
        snippets=[
            Detection(
                matched_text="SUSPICIOUS DATABASE OPTION",
                original_code=(
                    "HIGH RISK: Database option contains suspicious/malicious content\n"
                    f"Option: {name}\n"
                    "Autoload: yes\n"
                    f"Size: {_size_format(len(value))}\n"
                    "Reasons:\n• " + "\n• ".join(reasons)
                ),
                context_code="Option Audit – Manual Review Required",
                patterns=["Suspicious Option", *reasons],
                score=98 if len(reasons) >= 2 else 85,
                confidence=Confidence.HIGH,
                ai_status=AiStatus.MALICIOUS,
                ai_analysis="Dangerous code pattern or known malicious option name. Delete or review the option.",
                without_ai=True,
            )
        ],
        is_database=True,
        db_type=DbType.OPTION,
        option_name=name,
    )


async def _audit_options(state: ScanState, audit: AuditState, settings: Settings, options: dict[str, str]) -> None:
    existing = existing_source_keys(state.findings)
    ignored = set(settings.ignored_paths)

    for name, value in options.items():
        audit.options_checked += 1
        if name.startswith(settings.own_option_prefix):
            continue
        if f"option_{name}" in existing or option_path(name) in ignored:
            continue
        reasons = option_reasons(name, value)
        if reasons:
            state.findings.append(_option_finding(name, value, reasons))
            audit.options_found += 1

    state.suspicious = len(state.findings)


# ---------------------------------------------------------------------------
# Phase runner
# ---------------------------------------------------------------------------


def _update_counts(state: ScanState, audit: AuditState) -> None:
    state.set_count(
        ScanStep.AUDIT,
        audit.users_checked + audit.options_checked,
        audit.users_found + audit.options_found,
    )


async def run_user_option_audit(state: ScanState, ctx: TickContext) -> None:
    """Audit users in one tick, then options in the next."""
    if state.user_option_audit_completed:
        return

    if state.audit is None:
        state.audit = AuditState()
        state.current_step = ScanStep.AUDIT
        state.current_folder = "Auditing administrator accounts and database options"
    audit = state.audit
    source = ctx.source

    if source is None:
        logger.info("No site database configured; skipping user and option audit")
    elif audit.phase == AuditPhase.USERS:
        await _audit_users(state, audit, source, ctx.settings)
        audit.phase = AuditPhase.OPTIONS
        _update_counts(state, audit)
        return
    elif audit.phase == AuditPhase.OPTIONS:
        options = await source.load_autoload_options()
        await _audit_options(state, audit, ctx.settings, options)

    audit.phase = AuditPhase.COMPLETE
    _update_counts(state, audit)
    found = audit.users_found + audit.options_found
    if found > 0:
        state.step_status[ScanStep.AUDIT] = StepStatus.WARNING
    state.current_folder = (
        f"Audited {audit.users_checked + audit.options_checked} items • {found} suspicious findings"
    )
    state.user_option_audit_completed = True
    state.audit = None
    logger.info("User and option audit complete: %d suspicious", found)
