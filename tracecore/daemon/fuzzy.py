"""Tiered fuzzy string matching with scores in [0, 1].

Tiers are evaluated in order and the first one that applies wins:

    exact match      1.0
    prefix match     0.9
    substring match  0.7
    subsequence      <= 0.6

Callers lower-case both strings beforehand.
"""

from typing import Iterable

EXACT_SCORE = 1.0
PREFIX_SCORE = 0.9
CONTAINS_SCORE = 0.7
SUBSEQUENCE_CAP = 0.6


def match(query: str, text: str) -> float:
    """Score how well ``query`` matches ``text``."""
    if text == query:
        return EXACT_SCORE
    if text.startswith(query):
        return PREFIX_SCORE
    if query in text:
        return CONTAINS_SCORE
    return _subsequence_score(query, text)


def match_best(query: str, terms: Iterable[str]) -> float:
    """Best score of ``query`` against a list of alias terms."""
    return max((match(query, term) for term in terms), default=0.0)


def _subsequence_score(query: str, text: str) -> float:
    query_index = 0
    matched = 0
    run = 0
    longest_run = 0

    for char in text:
        if query_index < len(query) and query[query_index] == char:
            matched += 1
            query_index += 1
            run += 1
            longest_run = max(longest_run, run)
        else:
            run = 0

    # Every query character must be consumed
    if matched != len(query):
        return 0.0

    match_ratio = matched / len(text)
    consecutive_bonus = longest_run / len(query)
    return min(SUBSEQUENCE_CAP, match_ratio * 0.4 + consecutive_bonus * 0.2)
