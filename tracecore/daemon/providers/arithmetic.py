"""Inline arithmetic results."""

from typing import List, Optional

from ..automation import PlatformAutomation
from ..bus import Event, EventBus
from ..calculator import evaluate, is_math_expression
from ..error_handling import CalculationError
from ..models import Candidate, CandidateKind, QueryContext, ScoredCandidate
from .base import ResultProvider

CALCULATION_ID = "com.trace.command.math"
# Calculations outrank everything regardless of usage
CALCULATION_SCORE = 1.0


class CalculatorProvider(ResultProvider):
    """
    Evaluates the raw query when it looks like arithmetic.

    A malformed expression still yields its candidate, carrying the error in
    its metadata; activating it reports ``result.failed`` instead of
    dropping the row.
    """

    name = "calculator"

    def __init__(self, automation: PlatformAutomation, event_bus: Optional[EventBus] = None):
        super().__init__()
        self.automation = automation
        self.event_bus = event_bus

    def provide(self, query: str, context: QueryContext) -> List[ScoredCandidate]:
        expression = context.query.text.strip()
        if not is_math_expression(expression):
            return []

        try:
            result = evaluate(expression)
        except CalculationError as e:
            error = str(e)
            candidate = Candidate(
                id=CALCULATION_ID,
                title=f"{expression} = ?",
                subtitle="Invalid expression",
                kind=CandidateKind.CALCULATION,
                match_score=CALCULATION_SCORE,
                metadata={'expression': expression, 'error': error},
            )
            candidate.action = lambda: self._emit("result.failed", {
                'identifier': CALCULATION_ID,
                'title': candidate.title,
                'error': error,
            })
        else:
            candidate = Candidate(
                id=CALCULATION_ID,
                title=f"{expression} = {result}",
                subtitle="Copy result to clipboard",
                kind=CandidateKind.CALCULATION,
                match_score=CALCULATION_SCORE,
                metadata={'expression': expression, 'result': result},
                action=lambda: self._copy(expression, result),
            )

        return [ScoredCandidate(candidate, CALCULATION_SCORE)]

    def _copy(self, expression: str, result: str) -> bool:
        copied = self.automation.copy_to_clipboard(result)
        self._emit("result.completed", {
            'identifier': CALCULATION_ID,
            'title': f"{expression} = {result}",
            'subtitle': "Copied to clipboard" if copied else "Copy failed",
            'value': result,
        })
        return copied

    def _emit(self, event_type: str, data: dict) -> bool:
        if self.event_bus is None:
            return False
        return self.event_bus.emit_nowait(Event(type=event_type, data=data, source=self.name))
