"""Result provider contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ..fuzzy import match, match_best
from ..models import Candidate, CandidateKind, QueryContext, ScoredCandidate
from ..scoring import DEFAULT_THRESHOLD, combine


class ResultProvider(ABC):
    """
    Produces scored candidates for one query.

    Providers receive the lower-cased query and the round's read-only
    context. They may be plain or async; the dispatcher runs plain ones in a
    worker thread, so they must not touch shared mutable state.
    """

    name: str = "provider"
    # Tail providers are appended after ranking instead of competing for top-K
    tail: bool = False

    def __init__(self, threshold: float = DEFAULT_THRESHOLD):
        self.threshold = threshold

    @abstractmethod
    def provide(self, query: str, context: QueryContext) -> List[ScoredCandidate]:
        """Return candidates paired with their combined score."""

    def score(self, match_score: float, identifier: str, context: QueryContext) -> Optional[float]:
        """Blend a match score with the identifier's usage from the snapshot."""
        return combine(match_score, context.usage_score(identifier), self.threshold)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


@dataclass(frozen=True)
class AliasCommand:
    """A fixed command with synonyms the user might type for it."""
    identifier: str
    title: str
    subtitle: str
    aliases: Tuple[str, ...]

    def match(self, query: str) -> float:
        """Best of the alias list, the title and the subtitle."""
        return max(
            match_best(query, self.aliases),
            match(query, self.title.lower()),
            match(query, self.subtitle.lower()),
        )


class AliasCommandProvider(ResultProvider):
    """Scores a fixed command list by alias, title and subtitle."""

    kind = CandidateKind.COMMAND

    def commands(self) -> Sequence[AliasCommand]:
        raise NotImplementedError

    def action_for(self, command: AliasCommand) -> Optional[Callable[[], Any]]:
        return None

    def candidate_for(self, command: AliasCommand, match_score: float) -> Candidate:
        return Candidate(
            id=command.identifier,
            title=command.title,
            subtitle=command.subtitle,
            kind=self.kind,
            match_score=match_score,
            action=self.action_for(command),
        )

    def provide(self, query: str, context: QueryContext) -> List[ScoredCandidate]:
        if not query:
            return []
        results = []
        for command in self.commands():
            match_score = command.match(query)
            combined = self.score(match_score, command.identifier, context)
            if combined is not None:
                results.append(ScoredCandidate(self.candidate_for(command, match_score), combined))
        return results
