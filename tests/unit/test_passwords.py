# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for password hash verification and the administrator password audit."""

from __future__ import annotations

import base64
import hashlib
import hmac

import bcrypt
import pytest

from sitewarden.checkers.hashing import check_password, phpass_crypt
from sitewarden.checkers.passwords import (
    MATCH_BREACHED,
    MATCH_DEFAULT,
    candidate_variants,
    find_weak_match,
    run_password_audit,
    weak_password_path,
)
from sitewarden.core.constants import Confidence, DbType, ScanStep, StepStatus
from sitewarden.models.state import ScanState
from sitewarden.sources.memory import InMemorySiteDataSource

PHPASS_VECTOR = ("test12345", "$P$9IQRaTwmfeRo7ud9Fh4E2PdI0S3r.L0")
STRONG_MD5 = hashlib.md5(b"Zq8!vL2#long-and-unguessable").hexdigest()


def _md5(password: str) -> str:
    return hashlib.md5(password.encode()).hexdigest()


def _bcrypt(password: str, prefix: str = "$2b$") -> str:
    hashed = bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=4)).decode()
    return prefix + hashed[4:]


def _wp_bcrypt(password: str) -> str:
    digest = hmac.new(b"wp-sha384", password.encode(), hashlib.sha384).digest()
    inner = bcrypt.hashpw(base64.b64encode(digest), bcrypt.gensalt(rounds=4)).decode()
    return "$wp" + inner


class TestCheckPassword:
    def test_phpass_known_vector(self):
        password, stored = PHPASS_VECTOR
        assert check_password(password, stored)
        assert not check_password("test1234", stored)

    def test_phpass_malformed_setting(self):
        assert phpass_crypt("x", "$P$") == "*0"
        assert phpass_crypt("x", "*0abcdefghij") == "*1"

    def test_md5(self):
        assert check_password("password", _md5("password"))
        assert check_password("password", _md5("password").upper())
        assert not check_password("Password", _md5("password"))

    @pytest.mark.parametrize("prefix", ["$2b$", "$2y$"])
    def test_bcrypt(self, prefix):
        stored = _bcrypt("letmein", prefix)
        assert check_password("letmein", stored)
        assert not check_password("letmeout", stored)

    def test_wp_prefixed_bcrypt(self):
        stored = _wp_bcrypt("wordpress")
        assert check_password("wordpress", stored)
        assert check_password(" wordpress ", stored)
        assert not check_password("WordPress", stored)

    def test_unknown_or_empty_hash(self):
        assert not check_password("password", "")
        assert not check_password("password", "plain-text")
        assert not check_password("password", "$2b$garbage")


class TestFindWeakMatch:
    def test_breached_list(self, make_user, settings):
        user = make_user(1, "alice", password_hash=_md5("qwerty"))
        assert find_weak_match(user, settings) == (MATCH_BREACHED, 100)

    def test_username_variant(self, make_user, settings):
        user = make_user(7, "alice", password_hash=_md5("alice7"))
        match_type, risk = find_weak_match(user, settings)
        assert "'alice7'" in match_type
        assert risk == 95

    def test_site_derived_variant(self, make_user, make_settings):
        settings = make_settings(site_name="Rose Garden", site_url="https://rosegarden.example")
        user = make_user(1, "alice", password_hash=_md5("rosegarden123"))
        assert find_weak_match(user, settings)[1] == 95

    def test_default_guess(self, make_user, settings):
        user = make_user(1, "alice", password_hash=_md5("wpadmin"))
        assert find_weak_match(user, settings) == (MATCH_DEFAULT, 98)

    def test_strong_password(self, make_user, settings):
        user = make_user(1, "alice", password_hash=STRONG_MD5)
        assert find_weak_match(user, settings) is None

    def test_no_hash(self, make_user, settings):
        assert find_weak_match(make_user(1, "alice"), settings) is None

    def test_variants_deduplicated(self, make_user):
        variants = candidate_variants(make_user(1, "x"), "X", "")
        assert len(variants) == len(set(variants))


class TestRunPasswordAudit:
    async def test_weak_admin_reported(self, make_ctx, make_user):
        weak = make_user(1, "admin", password_hash=_md5("password"))
        strong = make_user(2, "carol", password_hash=STRONG_MD5)
        state = ScanState()

        await run_password_audit(state, make_ctx(source=InMemorySiteDataSource(admins=[weak, strong])))

        assert state.password_strength_completed
        assert state.password is None
        assert len(state.findings) == 1
        finding = state.findings[0]
        assert finding.path == weak_password_path(weak)
        assert finding.db_type == DbType.USER
        assert finding.db_id == 1
        assert finding.snippets[0].score == 100
        assert finding.snippets[0].confidence == Confidence.VERY_HIGH
        assert state.step_counts[ScanStep.PASSWORD].checked == 2
        assert state.step_status[ScanStep.PASSWORD] == StepStatus.CRITICAL

    async def test_clean_accounts(self, make_ctx, make_user):
        state = ScanState()
        source = InMemorySiteDataSource(admins=[make_user(2, "carol", password_hash=STRONG_MD5)])
        await run_password_audit(state, make_ctx(source=source))
        assert state.findings == []
        assert ScanStep.PASSWORD not in state.step_status

    async def test_already_reported_user_skipped(self, make_ctx, make_user):
        weak = make_user(1, "admin", password_hash=_md5("password"))
        state = ScanState()
        ctx = make_ctx(source=InMemorySiteDataSource(admins=[weak]))
        await run_password_audit(state, ctx)
        state.password_strength_completed = False
        await run_password_audit(state, ctx)
        assert len(state.findings) == 1

    async def test_without_source(self, make_ctx):
        state = ScanState()
        await run_password_audit(state, make_ctx())
        assert state.password_strength_completed
