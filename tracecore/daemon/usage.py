"""Usage tracking: selection history, recency/frequency scores, debounced persistence.

The store maps identifier -> UsageRecord and is persisted as a JSON object:

    {"org.mozilla.firefox": {"identifier": "...", "type": "application",
                             "count": 3, "lastUsed": "...", "firstUsed": "..."}}

Concurrency:
- reads (score, all_scores) share a read lock, writes (record, clear) take it
  exclusively, so no reader sees a half-updated record
- persistence runs on the event loop, debounced, and flushes are serialized
  by an asyncio lock so two writes never race on the same file
"""

import asyncio
import json
import os
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

import aiofiles
import aiofiles.os
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .bus import Event, EventBus
from .models import UsageType

SECONDS_PER_DAY = 24 * 60 * 60
RECENCY_WINDOW_DAYS = 30.0
RECENCY_FLOOR = 0.5


class UsageRecord(BaseModel):
    """Selection history for one identifier."""
    model_config = ConfigDict(populate_by_name=True)

    identifier: str
    kind: UsageType = Field(default=UsageType.APPLICATION, alias="type")
    count: int = Field(ge=1)
    last_used: datetime = Field(alias="lastUsed")
    first_used: datetime = Field(alias="firstUsed")

    @field_validator('last_used', 'first_used')
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode='after')
    def check_order(self) -> "UsageRecord":
        if self.first_used > self.last_used:
            raise ValueError("firstUsed must not be after lastUsed")
        return self


def usage_score(record: Optional[UsageRecord], now: datetime) -> float:
    """
    Recency/frequency score for a record.

    Rewards raw count and usage density since first use, decaying linearly
    over 30 days of disuse down to half weight.
    """
    if record is None:
        return 0.0

    base = float(record.count)

    days_since_last = (now - record.last_used).total_seconds() / SECONDS_PER_DAY
    recency_multiplier = max(RECENCY_FLOOR, 1.0 - days_since_last / RECENCY_WINDOW_DAYS)

    days_since_first = (now - record.first_used).total_seconds() / SECONDS_PER_DAY
    frequency = base / days_since_first if days_since_first > 0 else base

    return (base * 0.5 + frequency * 100 * 0.5) * recency_multiplier


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReadWriteLock:
    """Many concurrent readers or one exclusive writer."""

    def __init__(self):
        self._cond = threading.Condition()
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class Debouncer:
    """
    Runs an async action once calls stop arriving for ``delay`` seconds.

    Each trigger cancels the pending timer and starts a new one. A generation
    counter settles the race where a timer wakes just as a new trigger lands:
    only the timer of the latest generation fires.
    """

    def __init__(self, delay: float, action: Callable[[], Awaitable[None]]):
        self.delay = delay
        self._action = action
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.fired = 0

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            self._loop = loop
            self._schedule()
        elif self._loop is not None and not self._loop.is_closed():
            # Called from a worker thread
            self._loop.call_soon_threadsafe(self._schedule)
        else:
            logger.warning("Debounced action requested without an event loop; skipped")

    def _schedule(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = self._loop.create_task(self._run(self._generation))

    async def _run(self, generation: int) -> None:
        await asyncio.sleep(self.delay)
        if generation != self._generation:
            return
        # Past this point the action runs to completion even if re-triggered
        self._task = None
        self.fired += 1
        await self._action()

    def cancel(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> None:
        """Cancel the timer and run the action now."""
        self.cancel()
        await self._action()


class UsageTracker:
    """Owns the usage store; the only writer of selection history."""

    def __init__(self,
                 path: Path,
                 debounce_seconds: float = 1.0,
                 event_bus: Optional[EventBus] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.path = Path(path)
        self._records: Dict[str, UsageRecord] = {}
        self._lock = ReadWriteLock()
        self._write_lock = asyncio.Lock()
        self._debouncer = Debouncer(debounce_seconds, self._save)
        self._event_bus = event_bus
        self._clock = clock
        self._dirty = False
        self.stats = {'writes': 0, 'write_errors': 0}

    async def initialize(self) -> None:
        """Load the store from disk; a missing or unreadable file means no history."""
        if not self.path.exists():
            logger.info("No existing usage data found")
            return

        try:
            async with aiofiles.open(self.path, 'r') as f:
                raw = json.loads(await f.read())
            if not isinstance(raw, dict):
                raise ValueError("usage file is not a JSON object")
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load usage data, starting empty: {e}")
            return

        records = {}
        for identifier, entry in raw.items():
            try:
                record = UsageRecord.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping invalid usage record {identifier}: {e.error_count()} errors")
                continue
            records[identifier] = record

        with self._lock.write():
            self._records = records
        logger.info(f"Loaded usage data with {len(records)} entries")

    def record(self, identifier: str, kind: UsageType = UsageType.APPLICATION) -> UsageRecord:
        """Record one selection and schedule a debounced save."""
        now = self._clock()
        with self._lock.write():
            existing = self._records.get(identifier)
            if existing is not None:
                updated = existing.model_copy(update={
                    'count': existing.count + 1,
                    'last_used': max(now, existing.last_used),
                })
            else:
                updated = UsageRecord(
                    identifier=identifier,
                    kind=kind,
                    count=1,
                    last_used=now,
                    first_used=now,
                )
            self._records[identifier] = updated
            self._dirty = True

        logger.debug(f"Recorded usage for {identifier}: {updated.count}")
        self._emit("usage.recorded", {'identifier': identifier, 'count': updated.count})
        self._debouncer.trigger()
        return updated

    def score(self, identifier: str) -> float:
        with self._lock.read():
            record = self._records.get(identifier)
        return usage_score(record, self._clock())

    def all_scores(self) -> Dict[str, float]:
        now = self._clock()
        with self._lock.read():
            records = list(self._records.values())
        return {r.identifier: usage_score(r, now) for r in records}

    def get_record(self, identifier: str) -> Optional[UsageRecord]:
        with self._lock.read():
            return self._records.get(identifier)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._records)

    async def clear(self) -> None:
        """Drop all history and persist immediately."""
        self._debouncer.cancel()
        with self._lock.write():
            self._records = {}
            self._dirty = True
        await self._save()
        logger.info("Cleared all usage data")
        self._emit("usage.cleared", {})

    async def flush(self) -> None:
        """Write pending changes now instead of waiting for the debounce."""
        if self._dirty or self._debouncer.pending:
            await self._debouncer.flush()

    async def close(self) -> None:
        await self.flush()

    async def _save(self) -> None:
        async with self._write_lock:
            with self._lock.read():
                payload = {
                    identifier: record.model_dump(mode='json', by_alias=True)
                    for identifier, record in self._records.items()
                }
                self._dirty = False

            try:
                await self._write_atomic(json.dumps(payload, indent=2, sort_keys=True))
            except OSError as e:
                # In-memory state stays authoritative; the next record retries
                self._dirty = True
                self.stats['write_errors'] += 1
                logger.error(f"Failed to save usage data: {e}")
                return

            self.stats['writes'] += 1
            logger.debug(f"Saved usage data ({len(payload)} entries)")
            self._emit("usage.flushed", {'entries': len(payload)})

    async def _write_atomic(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        async with aiofiles.open(tmp_path, 'w') as f:
            await f.write(text)
            await f.flush()
            await asyncio.to_thread(os.fsync, f.fileno())
        await aiofiles.os.replace(tmp_path, self.path)

    def _emit(self, event_type: str, data: Dict) -> None:
        if self._event_bus is not None:
            self._event_bus.emit_nowait(Event(type=event_type, data=data, source="usage_tracker"))
