"""Truncation and result presentation."""

import pytest

from trpc_sveltekit_mcp.formatter import ELLIPSIS, format_match, truncate_text
from trpc_sveltekit_mcp.fts import Match
from trpc_sveltekit_mcp.models import EXAMPLES, KNOWLEDGE


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate_text("short", 10) == "short"
        assert truncate_text("exactly10!", 10) == "exactly10!"

    def test_cuts_at_late_whitespace(self):
        # last space in the first 20 chars is at index 16 == 0.8 * 20
        assert truncate_text("alpha beta gamma delta", 20) == "alpha beta gamma..."

    def test_hard_cut_without_whitespace(self):
        assert truncate_text("abcdefghijklmnopqrstuvwxyz", 10) == "abcdefghij..."

    def test_hard_cut_when_whitespace_is_too_early(self):
        assert truncate_text("abc defghijklmnop", 10) == "abc defghi..."

    def test_negative_length_counts_as_zero(self):
        assert truncate_text("hello world and more words here", -3) == ELLIPSIS
        assert truncate_text("", -3) == ""

    def test_newline_counts_as_whitespace(self):
        assert truncate_text("abcdefghi\njklmnop", 10) == "abcdefghi..."

    @pytest.mark.parametrize("n", [-5, 0, 1, 5, 17, 40, 79, 80, 81, 200])
    def test_length_bound(self, n):
        text = "The router groups procedures; each procedure is a query or mutation. " * 3
        assert len(truncate_text(text, n)) <= max(n, 0) + len(ELLIPSIS)

    def test_marker_past_cut_is_dropped(self):
        text = "plain words here and then <mark>router</mark>"
        out = truncate_text(text, 20)
        assert "<mark>" not in out
        assert out.endswith(ELLIPSIS)


class TestFormatMatch:
    def test_knowledge_shape(self):
        record = {"id": 1, "question": "What is a router?", "answer": "A router groups procedures."}
        match = Match(1, -2.5, {"question": "What is a <mark>router</mark>?", "answer": "A <mark>router</mark> groups procedures."})
        out = format_match(KNOWLEDGE, record, match, 800)
        assert out == {
            "id": 1,
            "question": "What is a router?",
            "answer": "A router groups procedures.",
            "highlighted_question": "What is a <mark>router</mark>?",
            "highlighted_answer": "A <mark>router</mark> groups procedures.",
            "relevance_score": 2.5,
        }

    def test_examples_truncates_every_field(self):
        long = "word " * 100
        record = {"instruction": long, "input": long, "output": long}
        match = Match(4, -1.0, {"instruction": long, "input": long, "output": long})
        out = format_match(EXAMPLES, record, match, 50)
        for field in ("instruction", "input", "output"):
            assert out[field].endswith(ELLIPSIS)
            assert len(out[field]) <= 53
            assert len(out[f"highlighted_{field}"]) <= 53
