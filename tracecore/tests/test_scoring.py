"""Tests for the score combiner and ranking."""

import math
import random

import pytest

from tracecore.daemon.models import Candidate, CandidateKind, ScoredCandidate
from tracecore.daemon.scoring import combine, dedupe, normalize_usage, rank


def scored(title, score, identifier=None):
    candidate = Candidate(
        id=identifier or f"id.{title}",
        title=title,
        kind=CandidateKind.COMMAND,
        match_score=score,
    )
    return ScoredCandidate(candidate, score)


class TestNormalize:

    def test_zero_and_negative(self):
        assert normalize_usage(0) == 0.0
        assert normalize_usage(-3) == 0.0

    def test_saturates(self):
        assert normalize_usage(50) == 1.0
        assert normalize_usage(5000) == 1.0

    def test_logarithmic(self):
        assert normalize_usage(9) == pytest.approx(math.log10(10) / math.log10(51))

    def test_first_uses_count_most(self):
        assert normalize_usage(2) - normalize_usage(1) > normalize_usage(40) - normalize_usage(39)


class TestCombine:

    @pytest.mark.parametrize("match_score", [0.0, 0.1, 0.3])
    def test_threshold_filters(self, match_score):
        assert combine(match_score, 0) is None
        assert combine(match_score, 1000) is None

    def test_no_usage(self):
        assert combine(1.0, 0) == pytest.approx(0.8)

    def test_prefix_without_usage(self):
        assert combine(0.9, 0) == pytest.approx(0.72)

    def test_saturated_usage(self):
        assert combine(0.5, 120) == pytest.approx(0.6)

    def test_custom_threshold(self):
        assert combine(0.4, 0, threshold=0.5) is None
        assert combine(0.6, 0, threshold=0.5) == pytest.approx(0.48)

    def test_usage_never_resurrects_weak_match(self):
        assert combine(0.31, 10_000) < combine(0.7, 0)


class TestRank:

    def test_order_independent(self):
        items = [scored(t, s) for t, s in [("a", 0.5), ("b", 0.9), ("c", 0.7), ("d", 0.1)]]
        expected = [s.title for s in rank(items)]
        for _ in range(10):
            shuffled = items[:]
            random.shuffle(shuffled)
            assert [s.title for s in rank(shuffled)] == expected
        assert expected == ["b", "c", "a", "d"]

    def test_ties_broken_by_title(self):
        items = [scored("Zoom", 0.8), scored("Alacritty", 0.8), scored("Mail", 0.8)]
        assert [s.title for s in rank(items)] == ["Alacritty", "Mail", "Zoom"]

    def test_limit(self):
        items = [scored(f"item{i:02d}", i / 100) for i in range(30)]
        top = rank(items, 10)
        assert len(top) == 10
        assert top[0].title == "item29"


def test_dedupe_keeps_highest():
    low = scored("Chrome", 0.5, identifier="chrome")
    high = scored("Chrome", 0.9, identifier="chrome")
    other = scored("Firefox", 0.6, identifier="firefox")
    result = dedupe([low, other, high])
    assert len(result) == 2
    assert high in result
    assert low not in result
