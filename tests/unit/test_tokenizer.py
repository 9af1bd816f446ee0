# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for the two-view tokenizer and its line/offset maps."""

from __future__ import annotations

from unittest.mock import patch

from sitewarden.core.exceptions import TokenizeError
from sitewarden.scanner.tokenizer import (
    identity_view,
    is_probably_script_like,
    strip_with_line_map,
    tokenize,
)

SAMPLE = "<?php\n/* multi\nline */\n$x = 1;\neval($y);\n"


class TestStripWithLineMap:
    def test_comments_removed(self):
        view = strip_with_line_map("<?php\n// eval($hidden)\n# system('x')\n$a = 1;\n")
        assert "eval" not in view.code
        assert "system" not in view.code
        assert "$a = 1;" in view.code

    def test_string_literals_kept_verbatim(self):
        view = strip_with_line_map('<?php\n$a = "// not a comment";\n')
        assert '"// not a comment"' in view.code

    def test_whitespace_collapsed(self):
        view = strip_with_line_map("<?php\n$a    =\n\n\t1;\n")
        assert "$a = 1;" in view.code

    def test_whitespace_around_dropped_comment_collapses(self):
        view = strip_with_line_map("<?php\n$a /* note */ = 1; // tail\n$b = 2;\n")
        assert "$a = 1; $b = 2;" in view.code
        assert "  " not in view.code
        assert view.line_at(view.code.index("$b")) == 3

    def test_heredoc_body_kept(self):
        content = "<?php\n$s = <<<EOT\n  keep   # this\nEOT;\n"
        view = strip_with_line_map(content)
        assert "keep   # this" in view.code

    def test_line_map_points_back_to_original_line(self):
        view = strip_with_line_map(SAMPLE)
        idx = view.code.index("eval")
        assert view.line_at(idx) == 5

    def test_offset_map_points_back_to_original_offset(self):
        view = strip_with_line_map(SAMPLE)
        idx = view.code.index("eval")
        assert view.original_offset(idx) == SAMPLE.index("eval")

    def test_plain_text_without_open_tag(self):
        view = strip_with_line_map("just   some\n\ntext")
        assert view.code == "just some text"
        assert view.line_map == {0: 1}

    def test_html_between_blocks_is_preserved(self):
        view = strip_with_line_map("<p>hi</p>\n<?php echo 1; ?>\n<b>x</b>")
        assert "<p>hi</p>" in view.code
        assert "<b>x</b>" in view.code


class TestTokenize:
    def test_falls_back_to_identity_view_on_error(self):
        content = "<?php\neval($x);\n"
        with patch(
            "sitewarden.scanner.tokenizer.strip_with_line_map",
            side_effect=TokenizeError("boom"),
        ):
            view = tokenize(content)
        assert view.error == "boom"
        assert view.code == content
        assert view.line_at(content.index("eval")) == 2

    def test_success_has_no_error(self):
        assert tokenize(SAMPLE).error is None


class TestIdentityView:
    def test_maps_each_line_start(self):
        view = identity_view("a\nbb\nccc")
        assert view.line_at(0) == 1
        assert view.line_at(2) == 2
        assert view.line_at(6) == 3
        assert view.original_offset(7) == 7


class TestScriptLike:
    def test_open_tag(self):
        assert is_probably_script_like("text <?php echo 1;")

    def test_keywords(self):
        assert is_probably_script_like("function go() {}")

    def test_prose(self):
        assert not is_probably_script_like("Dear customer, thanks for your order.")
