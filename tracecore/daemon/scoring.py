"""Unified scoring: blend match relevance with usage history, then rank."""

import math
from typing import Iterable, List, Optional

from .models import ScoredCandidate

DEFAULT_THRESHOLD = 0.3
MATCH_WEIGHT = 0.8
USAGE_WEIGHT = 0.2
USAGE_SATURATION = 50.0


def normalize_usage(score: float) -> float:
    """
    Compress a raw usage score into [0, 1].

    Logarithmic, so the first few uses count for far more than the hundredth.
    """
    if score <= 0:
        return 0.0
    if score >= USAGE_SATURATION:
        return 1.0
    return min(math.log10(score + 1) / math.log10(USAGE_SATURATION + 1), 1.0)


def combine(match_score: float,
            usage_score: float,
            threshold: float = DEFAULT_THRESHOLD) -> Optional[float]:
    """Blend a match score with a usage score; None if the match is too weak."""
    if match_score <= threshold:
        return None
    return match_score * MATCH_WEIGHT + normalize_usage(usage_score) * USAGE_WEIGHT


def rank(scored: Iterable[ScoredCandidate], limit: Optional[int] = None) -> List[ScoredCandidate]:
    """Sort by score descending, ties broken by title, optionally truncated."""
    ordered = sorted(scored, key=lambda s: (-s.score, s.title))
    if limit is not None:
        return ordered[:limit]
    return ordered


def dedupe(scored: Iterable[ScoredCandidate]) -> List[ScoredCandidate]:
    """Keep the highest-scoring entry per candidate identifier."""
    best = {}
    for item in scored:
        current = best.get(item.candidate.id)
        if current is None or item.score > current.score:
            best[item.candidate.id] = item
    return list(best.values())
