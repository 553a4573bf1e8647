"""Installed-program search."""

from typing import List

from ..automation import PlatformAutomation
from ..catalog import Program, ProgramCatalog
from ..fuzzy import match_best
from ..models import Accessory, Candidate, CandidateKind, QueryContext, ScoredCandidate
from ..scoring import DEFAULT_THRESHOLD, rank
from .base import ResultProvider

KEYWORD_WEIGHT = 0.8


class ProgramProvider(ResultProvider):
    """Matches the query against program display names."""

    name = "programs"

    def __init__(self,
                 catalog: ProgramCatalog,
                 automation: PlatformAutomation,
                 limit: int = 30,
                 threshold: float = DEFAULT_THRESHOLD):
        super().__init__(threshold)
        self.catalog = catalog
        self.automation = automation
        self.limit = limit

    def provide(self, query: str, context: QueryContext) -> List[ScoredCandidate]:
        if not query:
            return []

        results = []
        for program in self.catalog.programs:
            match_score = self.match_program(query, program)
            combined = self.score(match_score, program.identifier, context)
            if combined is None:
                continue
            results.append(ScoredCandidate(self._candidate(program, match_score, context), combined))

        return rank(results, self.limit)

    @staticmethod
    def match_program(query: str, program: Program) -> float:
        # A word start counts as a prefix: "chrom" -> "Google Chrome" scores 0.9
        score = match_best(query, program.name_terms)
        if program.keywords:
            score = max(score, match_best(query, program.keywords) * KEYWORD_WEIGHT)
        return score

    def _candidate(self, program: Program, match_score: float, context: QueryContext) -> Candidate:
        running = program.identifier in context.running_identifiers
        return Candidate(
            id=program.identifier,
            title=program.display_name,
            subtitle=program.path,
            kind=CandidateKind.PROGRAM,
            match_score=match_score,
            accessory=Accessory.RUNNING if running else None,
            action=lambda: self.automation.launch(program),
        )
