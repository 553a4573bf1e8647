"""Web-search fallback entries."""

from typing import List, Sequence
from urllib.parse import quote_plus

from ..automation import PlatformAutomation
from ..config import WebSearchEngine
from ..models import Candidate, CandidateKind, QueryContext, ScoredCandidate
from .base import ResultProvider

# Fallback rows never compete for a ranked slot
FALLBACK_SCORE = 0.0


def search_url(engine: WebSearchEngine, text: str) -> str:
    return engine.url_template.replace("{query}", quote_plus(text))


class WebSearchProvider(ResultProvider):
    """One "search the web" entry per configured engine, appended after ranking."""

    name = "web_search"
    tail = True

    def __init__(self, engines: Sequence[WebSearchEngine], automation: PlatformAutomation):
        super().__init__()
        self.engines = list(engines)
        self.automation = automation

    def provide(self, query: str, context: QueryContext) -> List[ScoredCandidate]:
        text = context.query.text.strip()
        if not text:
            return []

        results = []
        for engine in self.engines:
            url = search_url(engine, text)
            results.append(ScoredCandidate(Candidate(
                id=f"com.trace.search.{engine.id}",
                title=f"Search {engine.name} for '{text}'",
                subtitle=engine.subtitle,
                kind=CandidateKind.WEB_SUGGESTION,
                match_score=FALLBACK_SCORE,
                metadata={'url': url, 'engine': engine.id},
                action=lambda url=url: self.automation.open_url(url),
            ), FALLBACK_SCORE))
        return results
