"""Tests for the tiered fuzzy matcher."""

import pytest

from tracecore.daemon.fuzzy import match, match_best


class TestTiers:
    """Each tier and the order they are evaluated in."""

    def test_exact(self):
        assert match("chrome", "chrome") == 1.0

    def test_prefix(self):
        assert match("chrom", "chrome") == 0.9

    def test_substring(self):
        assert match("rome", "chrome") == 0.7

    def test_subsequence(self):
        # c, h, m consumed; longest run "ch" = 2
        score = match("chm", "chrome")
        expected = min(0.6, (3 / 6) * 0.4 + (2 / 3) * 0.2)
        assert score == pytest.approx(expected)

    def test_subsequence_capped(self):
        assert match("abcdefgh", "abcdefgxh") <= 0.6

    def test_unconsumed_query_scores_zero(self):
        assert match("xyz", "chrome") == 0.0

    def test_order_matters_for_subsequence(self):
        assert match("emorhc", "chrome") == 0.0


def test_identity_is_exact():
    for text in ["a", "firefox", "google chrome", "2+2"]:
        assert match(text, text) == 1.0


def test_empty_query_defined():
    assert match("", "anything") >= 0.0
    assert match("", "") == 1.0


def test_empty_text():
    assert match("a", "") == 0.0


@pytest.mark.parametrize("query,text", [
    ("fire", "firefox"),
    ("te", "terminal"),
    ("sl", "slack"),
])
def test_prefix_beats_subsequence(query, text):
    """A prefix hit always outranks a pure subsequence hit for the same query."""
    scattered = "x".join(query) + "zzz"
    assert match(query, text) > match(query, scattered)


def test_bounds():
    pairs = [("a", "b"), ("ab", "ba"), ("abc", "aXbXc"), ("q", "qqqq"), ("long query", "short")]
    for query, text in pairs:
        assert 0.0 <= match(query, text) <= 1.0


def test_match_best_takes_maximum():
    terms = ["exit", "quit", "terminate"]
    assert match_best("quit", terms) == 1.0
    assert match_best("term", terms) == 0.9
    assert match_best("zzz", terms) == 0.0


def test_match_best_no_terms():
    assert match_best("anything", []) == 0.0
