# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for spamvertising detection and the comment scanning phase."""

from __future__ import annotations

from sitewarden.checkers.spamvertising import (
    comment_path,
    run_spamvertising,
    scan_string_content,
    spam_confidence,
)
from sitewarden.core.constants import AiStatus, Confidence, DbType, ScanStep, StepStatus
from sitewarden.models.finding import Finding
from sitewarden.models.site import CommentRecord
from sitewarden.models.state import ScanState
from sitewarden.sources.memory import InMemorySiteDataSource

SPAM_BODY = "Great post! Buy viagra now at https://pills-cheap.xyz for less."
CLEAN_BODY = "Thanks for the thoughtful write-up, it helped me fix my garden shed."


class TestScanStringContent:
    def test_clean_text(self):
        assert scan_string_content(CLEAN_BODY) == []
        assert scan_string_content("   \n") == []

    def test_keyword_and_tld_grouped(self):
        detections = scan_string_content(SPAM_BODY, "Comment ID: 1")
        assert len(detections) == 1
        d = detections[0]
        assert d.score == 98
        assert d.confidence == Confidence.VERY_HIGH
        assert d.ai_status == AiStatus.MALICIOUS
        assert d.context_code == "Comment ID: 1"
        assert "Critical spam keyword (pharma/adult/gambling)" in d.patterns
        assert "Link to high-risk spam/pharma/gambling TLD" in d.patterns

    def test_hidden_element(self):
        html = '<div style="display:none"><a href="https://example.com">cheap loans</a></div>'
        detections = scan_string_content(html)
        assert detections[0].score == 99

    def test_keyword_stuffing(self):
        text = " ".join(["cheapest"] * 9)
        detections = scan_string_content(text)
        assert detections
        assert any("Keyword stuffing" in note for note in detections[0].patterns)

    def test_below_stuffing_threshold(self):
        assert scan_string_content(" ".join(["cheapest"] * 8)) == []

    def test_distant_hits_form_separate_groups(self):
        text = "viagra " + ("harmless filler text " * 80) + "\ncasino"
        detections = scan_string_content(text)
        assert len(detections) == 2
        assert detections[1].original_line == 2

    def test_merge_distance_is_configurable(self):
        text = "viagra " + ("harmless filler text " * 80) + "casino"
        assert len(scan_string_content(text, merge_chars=5000)) == 1

    def test_confidence_bands(self):
        assert spam_confidence(99) == Confidence.VERY_HIGH
        assert spam_confidence(88) == Confidence.HIGH
        assert spam_confidence(60) == Confidence.MEDIUM
        assert spam_confidence(10) == Confidence.LOW


class TestRunSpamvertising:
    def _source(self) -> InMemorySiteDataSource:
        return InMemorySiteDataSource(
            comments=[
                CommentRecord(comment_id=1, content=SPAM_BODY, date="2024-02-01 10:00:00"),
                CommentRecord(comment_id=2, content=CLEAN_BODY, date="2024-01-01 10:00:00"),
                CommentRecord(
                    comment_id=3,
                    user_id=0,
                    author="Promo",
                    author_url="https://win-big.top/casino",
                    content="nice",
                    date="2023-12-01 10:00:00",
                ),
            ]
        )

    async def test_batch_then_finish(self, make_ctx):
        state = ScanState()
        ctx = make_ctx(source=self._source())

        await run_spamvertising(state, ctx)
        assert state.current_step == ScanStep.SPAMVERTISING
        assert not state.spamvertising_content_completed
        assert state.spam.offset == 3
        assert {f.path for f in state.findings} == {comment_path(1), comment_path(3)}
        assert all(f.db_type == DbType.COMMENT for f in state.findings)

        await run_spamvertising(state, ctx)
        assert state.spamvertising_content_completed
        assert state.spam is None
        assert state.step_counts[ScanStep.SPAMVERTISING].checked == 3
        assert state.step_status[ScanStep.SPAMVERTISING] == StepStatus.WARNING

    async def test_existing_finding_not_duplicated(self, make_ctx):
        state = ScanState(
            findings=[Finding(path=comment_path(1), is_database=True, db_type=DbType.COMMENT, db_id=1)]
        )
        await run_spamvertising(state, make_ctx(source=self._source()))
        assert [f.path for f in state.findings].count(comment_path(1)) == 1
        assert len(state.findings) == 2

    async def test_ignored_path_skipped(self, make_ctx, make_settings):
        settings = make_settings(ignored_paths=[comment_path(1)])
        state = ScanState()
        await run_spamvertising(state, make_ctx(source=self._source(), settings_override=settings))
        assert [f.db_id for f in state.findings] == [3]

    async def test_without_source_completes(self, make_ctx):
        state = ScanState()
        await run_spamvertising(state, make_ctx())
        assert state.spamvertising_content_completed
        assert state.step_counts[ScanStep.SPAMVERTISING].checked == 0

    async def test_completed_phase_is_noop(self, make_ctx):
        state = ScanState(spamvertising_content_completed=True)
        await run_spamvertising(state, make_ctx(source=self._source()))
        assert state.findings == []
