"""Window-placement commands."""

from enum import Enum
from typing import List

from ..automation import PlatformAutomation
from ..fuzzy import match, match_best
from ..models import Candidate, CandidateKind, QueryContext, ScoredCandidate
from ..scoring import DEFAULT_THRESHOLD
from .base import ResultProvider

WINDOW_TERMS = (
    "window", "win", "resize", "move", "position", "left", "right", "center", "top", "bottom",
    "half", "third", "quarter", "maximize", "max", "larger", "smaller", "split",
)


class WindowPosition(Enum):
    LEFT_HALF = "left-half"
    RIGHT_HALF = "right-half"
    CENTER_HALF = "center-half"
    TOP_HALF = "top-half"
    BOTTOM_HALF = "bottom-half"
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"
    FIRST_THIRD = "first-third"
    CENTER_THIRD = "center-third"
    LAST_THIRD = "last-third"
    FIRST_TWO_THIRDS = "first-two-thirds"
    LAST_TWO_THIRDS = "last-two-thirds"
    MAXIMIZE = "maximize"
    FULL_SCREEN = "full-screen"
    ALMOST_MAXIMIZE = "almost-maximize"
    MAXIMIZE_HEIGHT = "maximize-height"
    SMALLER = "smaller"
    LARGER = "larger"
    CENTER = "center"
    CENTER_PROMINENTLY = "center-prominently"

    @property
    def display_name(self) -> str:
        return self.value.replace("-", " ").title()

    @property
    def identifier(self) -> str:
        return f"com.trace.window.{self.value}"

    @property
    def subtitle(self) -> str:
        return _SUBTITLES[self]

    @property
    def search_terms(self) -> List[str]:
        name = self.display_name.lower()
        return [self.value, name, name.replace(" ", "")]


_SUBTITLES = {
    WindowPosition.LEFT_HALF: "Move window to left half of screen",
    WindowPosition.RIGHT_HALF: "Move window to right half of screen",
    WindowPosition.CENTER_HALF: "Move window to center half of screen",
    WindowPosition.TOP_HALF: "Move window to top half of screen",
    WindowPosition.BOTTOM_HALF: "Move window to bottom half of screen",
    WindowPosition.TOP_LEFT: "Move window to top left quarter",
    WindowPosition.TOP_RIGHT: "Move window to top right quarter",
    WindowPosition.BOTTOM_LEFT: "Move window to bottom left quarter",
    WindowPosition.BOTTOM_RIGHT: "Move window to bottom right quarter",
    WindowPosition.FIRST_THIRD: "Move window to first third of screen",
    WindowPosition.CENTER_THIRD: "Move window to center third of screen",
    WindowPosition.LAST_THIRD: "Move window to last third of screen",
    WindowPosition.FIRST_TWO_THIRDS: "Move window to first two thirds of screen",
    WindowPosition.LAST_TWO_THIRDS: "Move window to last two thirds of screen",
    WindowPosition.MAXIMIZE: "Maximize window to full screen",
    WindowPosition.FULL_SCREEN: "Enter native full screen mode",
    WindowPosition.ALMOST_MAXIMIZE: "Maximize with small margins",
    WindowPosition.MAXIMIZE_HEIGHT: "Maximize window height only",
    WindowPosition.SMALLER: "Make window smaller",
    WindowPosition.LARGER: "Make window larger",
    WindowPosition.CENTER: "Center window on screen",
    WindowPosition.CENTER_PROMINENTLY: "Center and resize prominently",
}


class WindowPlacementProvider(ResultProvider):
    """
    Moves or resizes the focused window.

    Only active when the query looks window-related: it must match one of
    the generic window terms or a position name above the threshold. When
    position names match directly only those are considered.
    """

    name = "window_placement"

    def __init__(self, automation: PlatformAutomation, threshold: float = DEFAULT_THRESHOLD):
        super().__init__(threshold)
        self.automation = automation

    def provide(self, query: str, context: QueryContext) -> List[ScoredCandidate]:
        if not query:
            return []

        direct = [
            position for position in WindowPosition
            if match_best(query, position.search_terms) > self.threshold
        ]
        window_related = any(match(query, term) > self.threshold for term in WINDOW_TERMS)
        if not direct and not window_related:
            return []

        results = []
        for position in direct or list(WindowPosition):
            match_score = max(
                match_best(query, position.search_terms),
                match(query, position.subtitle.lower()),
            )
            combined = self.score(match_score, position.identifier, context)
            if combined is None:
                continue
            results.append(ScoredCandidate(self._candidate(position, match_score), combined))
        return results

    def _candidate(self, position: WindowPosition, match_score: float) -> Candidate:
        return Candidate(
            id=position.identifier,
            title=position.display_name,
            subtitle=position.subtitle,
            kind=CandidateKind.WINDOW_PLACEMENT,
            match_score=match_score,
            metadata={'position': position.value},
            action=lambda: self.automation.apply_window_position(position.value),
        )
