"""Query dispatcher: per-keystroke fan-out, merge, rank and publish.

Each call to ``search`` is one round:
1. the round is numbered and becomes the active one
2. usage scores and the running-program set are snapshotted once
3. every provider runs concurrently against the same snapshot
4. results are merged, deduplicated, ranked and truncated, then the
   fallback (tail) entries are appended
5. the list is published only if no newer round has started meanwhile
"""

import asyncio
import inspect
import time
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from loguru import logger

from .bus import Event, EventBus
from .config import Config
from .error_handling import CircuitBreaker, CircuitOpenError, ProviderError
from .models import Candidate, QueryContext, ScoredCandidate, UsageType
from .providers.base import ResultProvider
from .scoring import dedupe, rank
from .usage import UsageRecord, UsageTracker


@dataclass
class SearchResult:
    """The published outcome of one round."""
    query: str
    round_id: int
    ranked: List[ScoredCandidate]
    tail: List[ScoredCandidate] = field(default_factory=list)
    latency_ms: Dict[str, float] = field(default_factory=dict)
    failed_providers: List[str] = field(default_factory=list)
    cache_hit: bool = False

    @property
    def results(self) -> List[ScoredCandidate]:
        return self.ranked + self.tail

    @property
    def candidates(self) -> List[Candidate]:
        return [item.candidate for item in self.results]

    def find(self, identifier: str) -> Optional[Candidate]:
        for candidate in self.candidates:
            if candidate.id == identifier:
                return candidate
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'query': self.query,
            'round': self.round_id,
            'results': [
                {**item.candidate.to_dict(), 'score': round(item.score, 4)}
                for item in self.results
            ],
            'total': len(self.ranked) + len(self.tail),
            'latency_ms': self.latency_ms,
            'failed_providers': self.failed_providers,
            'cache_hit': self.cache_hit,
        }


class QueryCache:
    """LRU cache of round results keyed by exact query text."""

    def __init__(self, max_size: int = 128, ttl_seconds: int = 30):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._entries: "OrderedDict[str, Tuple[SearchResult, datetime]]" = OrderedDict()

    def get(self, key: str) -> Optional[SearchResult]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        result, stored_at = entry
        if (datetime.now() - stored_at).total_seconds() > self.ttl_seconds:
            del self._entries[key]
            return None

        self._entries.move_to_end(key)
        return result

    def put(self, key: str, result: SearchResult) -> None:
        if self.max_size <= 0:
            return
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = (result, datetime.now())
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class QueryDispatcher:
    """Runs search rounds over a fixed provider list."""

    def __init__(self,
                 providers: Sequence[ResultProvider],
                 usage: UsageTracker,
                 running_identifiers: Optional[Callable[[], FrozenSet[str]]] = None,
                 event_bus: Optional[EventBus] = None,
                 max_results: int = 10,
                 provider_timeout_ms: int = 250,
                 cache_size: int = 128,
                 cache_ttl_seconds: int = 30):
        """
        Initialize the dispatcher.

        Args:
            providers: Result providers, queried concurrently every round
            usage: Usage tracker read for the snapshot and written on selection
            running_identifiers: Returns identifiers of running programs
            event_bus: Receives search.* events when given
            max_results: Ranked slots before tail entries are appended
            provider_timeout_ms: Soft deadline; providers still running are dropped
        """
        # Tail providers run inline, outside the deadline and the breakers
        self.providers = [p for p in providers if not p.tail]
        self.tail_providers = [p for p in providers if p.tail]
        self.usage = usage
        self.event_bus = event_bus
        self.max_results = max_results
        self.timeout = provider_timeout_ms / 1000.0
        self._running_identifiers = running_identifiers or frozenset
        self.cache = QueryCache(cache_size, cache_ttl_seconds)
        self.breakers = {p.name: CircuitBreaker(p.name) for p in self.providers}

        self._round = 0
        self._active_query: Optional[str] = None
        self._published: Optional[SearchResult] = None
        self._latencies: deque = deque(maxlen=1000)
        self._stats = {
            'rounds': 0,
            'published': 0,
            'discarded': 0,
            'cache_hits': 0,
            'provider_failures': 0,
            'provider_timeouts': 0,
        }

    @classmethod
    def from_config(cls,
                    config: Config,
                    providers: Sequence[ResultProvider],
                    usage: UsageTracker,
                    running_identifiers: Optional[Callable[[], FrozenSet[str]]] = None,
                    event_bus: Optional[EventBus] = None) -> "QueryDispatcher":
        return cls(
            providers,
            usage,
            running_identifiers=running_identifiers,
            event_bus=event_bus,
            max_results=config.search.max_results,
            provider_timeout_ms=config.search.provider_timeout_ms,
            cache_size=config.search.cache_size,
            cache_ttl_seconds=config.search.cache_ttl_seconds,
        )

    @property
    def active_query(self) -> Optional[str]:
        return self._active_query

    @property
    def current_results(self) -> Optional[SearchResult]:
        """The most recently published round."""
        return self._published

    def is_current(self, round_id: int) -> bool:
        return round_id == self._round

    async def search(self, text: str) -> Optional[SearchResult]:
        """
        Run one round for ``text``.

        Returns the published result, or None when a newer round started
        before this one finished.
        """
        self._round += 1
        round_id = self._round
        self._active_query = text
        self._stats['rounds'] += 1
        start = time.perf_counter()

        cached = self.cache.get(text)
        if cached is not None:
            self._stats['cache_hits'] += 1
            logger.debug(f"Cache hit for query: {text!r}")
            result = SearchResult(
                query=text,
                round_id=round_id,
                ranked=cached.ranked,
                tail=cached.tail,
                latency_ms={'total': (time.perf_counter() - start) * 1000},
                cache_hit=True,
            )
            return self._publish_or_discard(result)

        context = await self._snapshot(text)
        outputs, latencies, failed = await self._fan_out(context)

        primary: List[ScoredCandidate] = []
        for provider in self.providers:
            primary.extend(outputs.get(provider.name, []))

        ranked = rank(dedupe(primary), self.max_results)
        tail = await self._tail_entries(context)
        total_ms = (time.perf_counter() - start) * 1000
        result = SearchResult(
            query=text,
            round_id=round_id,
            ranked=ranked,
            tail=tail,
            latency_ms={'total': total_ms, **latencies},
            failed_providers=failed,
        )

        # Partial rounds are not worth remembering
        if not failed:
            self.cache.put(text, result)
        self._latencies.append(total_ms)
        return self._publish_or_discard(result)

    async def _snapshot(self, text: str) -> QueryContext:
        usage_scores = self.usage.all_scores()
        try:
            running = await asyncio.to_thread(self._running_identifiers)
        except Exception as e:
            logger.warning(f"Could not read running programs: {e}")
            running = frozenset()
        return QueryContext.for_query(text, usage_scores=usage_scores, running_identifiers=running)

    async def _invoke(self, provider: ResultProvider, context: QueryContext) -> List[ScoredCandidate]:
        query = context.query.lower
        if inspect.iscoroutinefunction(provider.provide):
            return list(await provider.provide(query, context))
        return list(await asyncio.to_thread(provider.provide, query, context))

    async def _tail_entries(self, context: QueryContext) -> List[ScoredCandidate]:
        entries: List[ScoredCandidate] = []
        for provider in self.tail_providers:
            try:
                items = provider.provide(context.query.lower, context)
                if inspect.isawaitable(items):
                    items = await items
            except Exception as e:
                logger.error(f"{ProviderError(provider.name, e)}")
                continue
            entries.extend(items)
        return entries

    async def _timed(self, provider: ResultProvider, context: QueryContext) -> Tuple[List[ScoredCandidate], float]:
        start = time.perf_counter()
        items = await self.breakers[provider.name].call(self._invoke, provider, context)
        return items, (time.perf_counter() - start) * 1000

    async def _fan_out(self, context: QueryContext) -> Tuple[Dict[str, List[ScoredCandidate]], Dict[str, float], List[str]]:
        outputs: Dict[str, List[ScoredCandidate]] = {}
        latencies: Dict[str, float] = {}
        # Skipped and failed providers both leave the round partial
        failed: List[str] = []

        tasks: Dict[asyncio.Task, ResultProvider] = {}
        for provider in self.providers:
            if not self.breakers[provider.name].allow():
                logger.debug(f"Skipping provider {provider.name}: circuit open")
                failed.append(provider.name)
                continue
            tasks[asyncio.create_task(self._timed(provider, context))] = provider

        if not tasks:
            return outputs, latencies, sorted(failed)

        try:
            done, pending = await asyncio.wait(tasks, timeout=self.timeout)
        finally:
            # Also reached when this round itself is cancelled
            for task in tasks:
                if not task.done():
                    task.cancel()

        for task in pending:
            provider = tasks[task]
            task.cancel()
            self.breakers[provider.name].record_failure(
                asyncio.TimeoutError(f"no result within {self.timeout * 1000:.0f}ms"))
            self._stats['provider_timeouts'] += 1
            failed.append(provider.name)
            logger.warning(f"Provider {provider.name} timed out for query {context.query.text!r}")

        for task in done:
            provider = tasks[task]
            error = task.exception()
            if isinstance(error, CircuitOpenError):
                # Another round holds the trial call
                failed.append(provider.name)
                continue
            if error is not None:
                self._stats['provider_failures'] += 1
                failed.append(provider.name)
                logger.error(f"{ProviderError(provider.name, error)}")
                continue
            items, elapsed = task.result()
            outputs[provider.name] = items
            latencies[provider.name] = elapsed

        return outputs, latencies, sorted(failed)

    def _publish_or_discard(self, result: SearchResult) -> Optional[SearchResult]:
        if not self.is_current(result.round_id):
            self._stats['discarded'] += 1
            logger.debug(f"Discarding stale round {result.round_id} for {result.query!r}")
            self._emit("search.discarded", {'query': result.query, 'round': result.round_id})
            return None

        self._published = result
        self._stats['published'] += 1
        self._emit("search.published", {
            'query': result.query,
            'round': result.round_id,
            'result_count': len(result.results),
            'latency_ms': result.latency_ms.get('total', 0),
        })
        return result

    def record_selection(self, identifier: str, kind: UsageType) -> UsageRecord:
        """Record a selection; must be called before the candidate's action runs."""
        record = self.usage.record(identifier, kind)
        self.cache.clear()
        return record

    async def activate(self, candidate: Candidate) -> Any:
        """Record the selection, then run the candidate's action."""
        self.record_selection(candidate.id, candidate.usage_type)
        if candidate.action is None:
            return None

        try:
            outcome = candidate.action()
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except Exception as e:
            logger.error(f"Action for {candidate.id} failed: {e}")
            self._emit("result.failed", {'identifier': candidate.id, 'error': str(e)})
            return False

        # Late-resolving candidates may have changed their titles
        self.cache.clear()
        return outcome

    async def clear_usage(self) -> None:
        await self.usage.clear()
        self.cache.clear()

    def get_statistics(self) -> Dict[str, Any]:
        """Get dispatcher statistics."""
        stats: Dict[str, Any] = dict(self._stats)
        stats['average_latency_ms'] = (
            sum(self._latencies) / len(self._latencies) if self._latencies else 0.0
        )
        stats['cache'] = {
            'size': len(self.cache),
            'max_size': self.cache.max_size,
            'ttl_seconds': self.cache.ttl_seconds,
        }
        stats['providers'] = {
            name: breaker.health.to_dict() for name, breaker in self.breakers.items()
        }
        return stats

    def _emit(self, event_type: str, data: Dict[str, Any]) -> None:
        if self.event_bus is not None:
            self.event_bus.emit_nowait(Event(type=event_type, data=data, source="dispatcher"))
