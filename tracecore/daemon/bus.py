"""In-process event bus for search, usage and late result updates.

Events are named ``category.action``:

    search.published / search.discarded     one per finished round
    usage.recorded / usage.flushed / usage.cleared
    result.loading / result.completed / result.failed

The ``result.*`` events let one candidate (a calculation, an address lookup)
report a value or failure after its list was published, without touching the
rest of the list.
"""

import asyncio
import inspect
import weakref
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from loguru import logger


@dataclass
class Event:
    type: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source: Optional[str] = None


def pattern_matches(pattern: str, event_type: str) -> bool:
    """``*`` matches everything, ``search.*`` matches one category."""
    if pattern == "*":
        return True
    if pattern.endswith(".*"):
        return event_type.startswith(pattern[:-1])
    return event_type == pattern


@dataclass
class Subscription:
    pattern: str
    ref: Any

    @classmethod
    def create(cls, pattern: str, handler: Callable[[Event], Any]) -> "Subscription":
        # Bound methods need WeakMethod or they die immediately
        ref = weakref.WeakMethod(handler) if inspect.ismethod(handler) else weakref.ref(handler)
        return cls(pattern, ref)

    @property
    def handler(self) -> Optional[Callable[[Event], Any]]:
        return self.ref()


_STOP = object()


class EventBus:
    """
    Bounded async queue with pattern subscriptions.

    Publishers never block: ``emit_nowait`` drops the event when the queue is
    full. Handlers run one at a time in subscription order on the loop; a
    handler that raises is counted and skipped. Subscriptions hold weak
    references, so a collected handler unsubscribes itself.
    """

    def __init__(self, max_queue: int = 1000):
        self._subscriptions: List[Subscription] = []
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._worker: Optional[asyncio.Task] = None
        self._stats: Dict[str, int] = defaultdict(int)

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def subscribe(self, pattern: str, handler: Callable[[Event], Any]) -> None:
        self._subscriptions.append(Subscription.create(pattern, handler))
        logger.debug(f"Subscribed {getattr(handler, '__name__', handler)} to {pattern}")

    def unsubscribe(self, pattern: str, handler: Callable[[Event], Any]) -> None:
        self._subscriptions = [
            s for s in self._subscriptions
            if s.handler is not None and not (s.pattern == pattern and s.handler == handler)
        ]

    async def emit(self, event: Event) -> None:
        self.emit_nowait(event)

    def emit_nowait(self, event: Event) -> bool:
        """Queue an event; False when it had to be dropped."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._stats['dropped'] += 1
            logger.warning(f"Event queue full, dropping {event.type}")
            return False
        self._stats['emitted'] += 1
        return True

    async def start(self) -> None:
        if self.running:
            logger.warning("Event bus already running")
            return
        self._worker = asyncio.create_task(self._run())
        logger.info("Event bus started")

    async def stop(self) -> None:
        """Deliver everything already queued, then stop the worker."""
        if not self.running:
            return
        await self._queue.put(_STOP)
        await self._worker
        self._worker = None
        logger.info("Event bus stopped")

    async def join(self) -> None:
        """Wait until every queued event has been delivered."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                if event is _STOP:
                    return
                await self._deliver(event)
                self._stats['processed'] += 1
            finally:
                self._queue.task_done()

    def _handlers_for(self, event_type: str) -> List[Callable[[Event], Any]]:
        live = [s for s in self._subscriptions if s.handler is not None]
        self._subscriptions = live
        return [s.handler for s in live if pattern_matches(s.pattern, event_type)]

    async def _deliver(self, event: Event) -> None:
        for handler in self._handlers_for(event.type):
            try:
                outcome = handler(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                self._stats['handler_errors'] += 1
                logger.error(f"Handler for {event.type} failed: {e}")

    def get_stats(self) -> Dict[str, int]:
        stats = dict(self._stats)
        stats['queued'] = self._queue.qsize()
        return stats
