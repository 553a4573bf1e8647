"""Folder shortcuts and bookmarked links."""

from pathlib import Path
from typing import List, Sequence
from urllib.parse import urlparse

from ..automation import PlatformAutomation
from ..config import FolderShortcut, QuickLink
from ..fuzzy import match, match_best
from ..models import Candidate, CandidateKind, QueryContext, ScoredCandidate
from ..scoring import DEFAULT_THRESHOLD
from .base import ResultProvider

EXACT_NAME_BOOST = 0.3
PREFIX_NAME_BOOST = 0.2


class FolderProvider(ResultProvider):
    """Opens configured folders that exist on disk."""

    name = "folders"

    def __init__(self,
                 folders: Sequence[FolderShortcut],
                 automation: PlatformAutomation,
                 threshold: float = DEFAULT_THRESHOLD):
        super().__init__(threshold)
        self.folders = list(folders)
        self.automation = automation

    def provide(self, query: str, context: QueryContext) -> List[ScoredCandidate]:
        if not query:
            return []

        results = []
        for folder in self.folders:
            match_score = match(query, folder.name.lower())
            identifier = f"com.trace.folder.{folder.id}"
            combined = self.score(match_score, identifier, context)
            if combined is None or not folder.resolved_path.is_dir():
                continue
            results.append(ScoredCandidate(Candidate(
                id=identifier,
                title=folder.name,
                subtitle=str(folder.resolved_path),
                kind=CandidateKind.SHORTCUT,
                match_score=match_score,
                metadata={'path': str(folder.resolved_path), 'default': folder.is_default},
                action=lambda folder=folder: self.automation.open_path(str(folder.resolved_path)),
            ), combined))
        return results


def is_file_link(url: str) -> bool:
    return url.startswith(("file://", "/", "~"))


def link_terms(link: QuickLink) -> List[str]:
    """Name, keywords and the URL's host (web) or file name (file)."""
    terms = [link.name.lower()]
    terms.extend(k.lower() for k in link.keywords)
    if is_file_link(link.url):
        path = urlparse(link.url).path if link.url.startswith("file://") else link.url
        terms.append(Path(path).name.lower())
    else:
        host = urlparse(link.url).hostname
        if host:
            terms.append(host.lower())
    return list(dict.fromkeys(t for t in terms if t))


class QuickLinkProvider(ResultProvider):
    """Bookmarked URLs and files."""

    name = "quick_links"

    def __init__(self,
                 links: Sequence[QuickLink],
                 automation: PlatformAutomation,
                 threshold: float = DEFAULT_THRESHOLD):
        super().__init__(threshold)
        self.links = list(links)
        self.automation = automation

    @staticmethod
    def match_link(query: str, link: QuickLink) -> float:
        score = match_best(query, link_terms(link))
        name = link.name.lower()
        if name == query:
            return min(score + EXACT_NAME_BOOST, 1.0)
        if name.startswith(query):
            return min(score + PREFIX_NAME_BOOST, 1.0)
        return score

    def provide(self, query: str, context: QueryContext) -> List[ScoredCandidate]:
        if not query:
            return []

        results = []
        for link in self.links:
            match_score = self.match_link(query, link)
            identifier = f"com.trace.quicklink.{link.id}"
            combined = self.score(match_score, identifier, context)
            if combined is None:
                continue
            results.append(ScoredCandidate(self._candidate(link, identifier, match_score), combined))
        return results

    def _candidate(self, link: QuickLink, identifier: str, match_score: float) -> Candidate:
        if is_file_link(link.url):
            target = urlparse(link.url).path if link.url.startswith("file://") else link.url
            subtitle = str(Path(target).expanduser())
            action = lambda: self.automation.open_path(target)
        else:
            url = link.url if "://" in link.url else f"https://{link.url}"
            subtitle = urlparse(url).hostname or link.url
            action = lambda: self.automation.open_url(url)

        return Candidate(
            id=identifier,
            title=link.name,
            subtitle=subtitle,
            kind=CandidateKind.SHORTCUT,
            match_score=match_score,
            metadata={'url': link.url},
            action=action,
        )
