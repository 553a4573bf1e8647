"""Data models shared by the dispatcher, providers and usage tracker."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional


class CandidateKind(Enum):
    """Structural kind of a candidate."""
    PROGRAM = "program"
    COMMAND = "command"
    WINDOW_PLACEMENT = "window_placement"
    SHORTCUT = "shortcut"
    CALCULATION = "calculation"
    WEB_SUGGESTION = "web_suggestion"


class UsageType(Enum):
    """Usage category as persisted in the usage store."""
    APPLICATION = "application"
    COMMAND = "command"
    WEB_SEARCH = "webSearch"

    @classmethod
    def for_kind(cls, kind: CandidateKind) -> "UsageType":
        if kind == CandidateKind.PROGRAM:
            return cls.APPLICATION
        if kind == CandidateKind.WEB_SUGGESTION:
            return cls.WEB_SEARCH
        return cls.COMMAND


class Accessory(Enum):
    """Optional indicator rendered next to a candidate."""
    RUNNING = "running"


@dataclass(frozen=True)
class Query:
    """A query string captured once per aggregation round."""
    text: str

    @property
    def lower(self) -> str:
        return self.text.lower()

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class QueryContext:
    """
    Read-only snapshot shared by every provider in one round.

    Built once by the dispatcher; providers must never mutate it.
    """
    query: Query
    usage_scores: Mapping[str, float] = field(default_factory=dict)
    running_identifiers: FrozenSet[str] = frozenset()

    def __post_init__(self):
        # Freeze the score mapping so concurrent providers see one view
        object.__setattr__(self, 'usage_scores', MappingProxyType(dict(self.usage_scores)))
        object.__setattr__(self, 'running_identifiers', frozenset(self.running_identifiers))

    @classmethod
    def for_query(cls, text: str, **kwargs) -> "QueryContext":
        return cls(query=Query(text), **kwargs)

    def usage_score(self, identifier: str) -> float:
        return self.usage_scores.get(identifier, 0.0)


@dataclass
class Candidate:
    """One actionable search result."""
    id: str
    title: str
    kind: CandidateKind
    match_score: float
    subtitle: Optional[str] = None
    accessory: Optional[Accessory] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    action: Optional[Callable[[], Any]] = field(default=None, repr=False, compare=False)

    @property
    def usage_type(self) -> UsageType:
        return UsageType.for_kind(self.kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'subtitle': self.subtitle,
            'kind': self.kind.value,
            'match_score': self.match_score,
            'accessory': self.accessory.value if self.accessory else None,
            'metadata': self.metadata,
        }


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate paired with its combined score for one round."""
    candidate: Candidate
    score: float

    @property
    def title(self) -> str:
        return self.candidate.title
