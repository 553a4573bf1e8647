"""Tests for usage tracking and debounced persistence."""

import asyncio
import json
import os
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from tracecore.daemon.bus import EventBus
from tracecore.daemon.models import UsageType
from tracecore.daemon.usage import (
    Debouncer, ReadWriteLock, UsageRecord, UsageTracker, usage_score,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def usage_path(tmp_path):
    return tmp_path / "data" / "usage_data.json"


def make_record(count, first_days_ago, last_days_ago):
    return UsageRecord(
        identifier="app.X",
        kind=UsageType.APPLICATION,
        count=count,
        first_used=NOW - timedelta(days=first_days_ago),
        last_used=NOW - timedelta(days=last_days_ago),
    )


class TestUsageScore:

    def test_absent_is_zero(self):
        assert usage_score(None, NOW) == 0.0

    def test_same_instant(self):
        # No elapsed lifetime: frequency falls back to the raw count
        record = make_record(2, 0, 0)
        assert usage_score(record, NOW) == pytest.approx(2 * 0.5 + 2 * 100 * 0.5)

    def test_density(self):
        record = make_record(10, 5, 0)
        assert usage_score(record, NOW) == pytest.approx(10 * 0.5 + (10 / 5) * 100 * 0.5)

    def test_recency_floor(self):
        recent = make_record(5, 40, 0)
        stale = make_record(5, 40, 31)
        ancient = make_record(5, 40, 400)
        assert usage_score(recent, NOW) >= usage_score(stale, NOW)
        assert usage_score(stale, NOW) == pytest.approx(usage_score(recent, NOW) * 0.5)
        assert usage_score(ancient, NOW) == pytest.approx(usage_score(stale, NOW))

    def test_fifty_uses_in_a_day_saturates(self):
        record = make_record(50, 0.5, 0)
        assert usage_score(record, NOW) >= 50


class TestUsageRecord:

    def test_aliases_round_trip(self):
        record = make_record(3, 2, 1)
        dumped = record.model_dump(mode='json', by_alias=True)
        assert set(dumped) == {"identifier", "type", "count", "lastUsed", "firstUsed"}
        assert dumped["type"] == "application"
        assert UsageRecord.model_validate(dumped) == record

    def test_rejects_zero_count(self):
        with pytest.raises(ValueError):
            UsageRecord(identifier="x", count=0, lastUsed=NOW, firstUsed=NOW)

    def test_rejects_first_after_last(self):
        with pytest.raises(ValueError):
            UsageRecord(identifier="x", count=1, lastUsed=NOW, firstUsed=NOW + timedelta(days=1))

    def test_naive_timestamps_are_utc(self):
        record = UsageRecord(identifier="x", count=1,
                             lastUsed="2025-01-01T00:00:00", firstUsed="2025-01-01T00:00:00")
        assert record.last_used.tzinfo is not None


@pytest.mark.asyncio
async def test_record_creates_then_increments(usage_path):
    clock = FakeClock()
    tracker = UsageTracker(usage_path, debounce_seconds=10, clock=clock)

    first = tracker.record("firefox", UsageType.APPLICATION)
    assert first.count == 1
    assert first.first_used == first.last_used == NOW

    clock.advance(hours=3)
    second = tracker.record("firefox", UsageType.APPLICATION)
    assert second.count == 2
    assert second.first_used == NOW
    assert second.last_used == NOW + timedelta(hours=3)

    counts = []
    for _ in range(5):
        counts.append(tracker.record("firefox").count)
    assert counts == sorted(set(counts))

    tracker._debouncer.cancel()


@pytest.mark.asyncio
async def test_missing_file_is_empty(usage_path):
    tracker = UsageTracker(usage_path)
    await tracker.initialize()
    assert len(tracker) == 0
    assert tracker.score("anything") == 0.0


@pytest.mark.asyncio
async def test_corrupt_file_is_empty(usage_path):
    usage_path.parent.mkdir(parents=True)
    usage_path.write_text("{not json")

    tracker = UsageTracker(usage_path, debounce_seconds=0.01)
    await tracker.initialize()
    assert len(tracker) == 0

    # Next successful write replaces the corrupt file
    tracker.record("terminal", UsageType.APPLICATION)
    await tracker.flush()
    assert "terminal" in json.loads(usage_path.read_text())


@pytest.mark.asyncio
async def test_invalid_records_skipped(usage_path):
    usage_path.parent.mkdir(parents=True)
    usage_path.write_text(json.dumps({
        "good": {"identifier": "good", "type": "command", "count": 2,
                 "lastUsed": "2025-05-01T00:00:00+00:00", "firstUsed": "2025-04-01T00:00:00+00:00"},
        "bad": {"identifier": "bad", "type": "command", "count": 0},
    }))

    tracker = UsageTracker(usage_path)
    await tracker.initialize()
    assert len(tracker) == 1
    assert tracker.get_record("good").kind == UsageType.COMMAND


@pytest.mark.asyncio
async def test_persistence_format_and_reload(usage_path):
    tracker = UsageTracker(usage_path, debounce_seconds=0.01)
    tracker.record("com.trace.search.google", UsageType.WEB_SEARCH)
    await tracker.flush()

    data = json.loads(usage_path.read_text())
    entry = data["com.trace.search.google"]
    assert entry["type"] == "webSearch"
    assert entry["count"] == 1
    assert datetime.fromisoformat(entry["lastUsed"].replace("Z", "+00:00"))
    assert not usage_path.with_name(usage_path.name + ".tmp").exists()

    reloaded = UsageTracker(usage_path)
    await reloaded.initialize()
    assert reloaded.get_record("com.trace.search.google").count == 1


@pytest.mark.asyncio
async def test_debounce_coalesces_burst(usage_path):
    """Ten records within 200ms produce one write after the burst settles."""
    tracker = UsageTracker(usage_path, debounce_seconds=0.3)

    for i in range(10):
        tracker.record(f"app.{i % 3}")
        await asyncio.sleep(0.02)

    await asyncio.sleep(0.15)
    assert tracker.stats['writes'] == 0
    assert not usage_path.exists()

    await asyncio.sleep(0.35)
    assert tracker.stats['writes'] == 1
    assert len(json.loads(usage_path.read_text())) == 3


@pytest.mark.asyncio
async def test_clear_writes_immediately(usage_path):
    tracker = UsageTracker(usage_path, debounce_seconds=10)
    tracker.record("a")
    tracker.record("b")

    await tracker.clear()

    assert len(tracker) == 0
    assert json.loads(usage_path.read_text()) == {}
    assert tracker.stats['writes'] == 1


@pytest.mark.asyncio
async def test_fsync_runs_off_loop(usage_path, monkeypatch):
    loop_thread = threading.get_ident()
    synced = []
    real_fsync = os.fsync

    def fsync(fd):
        synced.append(threading.get_ident())
        real_fsync(fd)

    monkeypatch.setattr("tracecore.daemon.usage.os.fsync", fsync)
    tracker = UsageTracker(usage_path, debounce_seconds=10)
    tracker.record("a")

    await tracker.flush()

    assert len(synced) == 1
    assert synced[0] != loop_thread
    assert "a" in json.loads(usage_path.read_text())


@pytest.mark.asyncio
async def test_write_failure_keeps_memory(usage_path):
    tracker = UsageTracker(usage_path, debounce_seconds=0.01)
    tracker._write_atomic = AsyncMock(side_effect=OSError("disk full"))

    tracker.record("a")
    await tracker.flush()

    assert tracker.stats['write_errors'] == 1
    assert tracker.get_record("a").count == 1
    assert tracker._dirty


@pytest.mark.asyncio
async def test_usage_events(usage_path):
    bus = EventBus()
    await bus.start()
    received = []

    async def handler(event):
        received.append(event.type)

    bus.subscribe("usage.*", handler)

    tracker = UsageTracker(usage_path, debounce_seconds=0.01, event_bus=bus)
    tracker.record("a")
    await tracker.flush()
    await tracker.clear()
    await asyncio.sleep(0.1)

    assert received == ["usage.recorded", "usage.flushed", "usage.flushed", "usage.cleared"]
    await bus.stop()


@pytest.mark.asyncio
async def test_scores_reflect_all_records(usage_path):
    clock = FakeClock()
    tracker = UsageTracker(usage_path, debounce_seconds=10, clock=clock)
    for _ in range(50):
        tracker.record("app.X")
    tracker.record("app.Y")

    scores = tracker.all_scores()
    assert set(scores) == {"app.X", "app.Y"}
    assert scores["app.X"] > scores["app.Y"] > 0
    assert tracker.score("app.X") == scores["app.X"]
    tracker._debouncer.cancel()


@pytest.mark.asyncio
async def test_debouncer_generation_wins():
    calls = []

    async def action():
        calls.append(1)

    debouncer = Debouncer(0.05, action)
    debouncer.trigger()
    await asyncio.sleep(0.03)
    debouncer.trigger()
    await asyncio.sleep(0.03)
    assert calls == []

    await asyncio.sleep(0.05)
    assert calls == [1]
    assert debouncer.fired == 1
    assert not debouncer.pending


@pytest.mark.asyncio
async def test_debouncer_flush_runs_now():
    action = AsyncMock()
    debouncer = Debouncer(10, action)
    debouncer.trigger()
    await debouncer.flush()
    action.assert_awaited_once()
    assert not debouncer.pending


def test_read_write_lock_excludes_readers():
    lock = ReadWriteLock()
    events = []

    def reader():
        with lock.read():
            events.append("read")

    with lock.write():
        thread = threading.Thread(target=reader)
        thread.start()
        thread.join(timeout=0.1)
        assert events == []

    thread.join(timeout=1)
    assert events == ["read"]


def test_read_write_lock_shares_readers():
    lock = ReadWriteLock()
    with lock.read():
        done = []

        def reader():
            with lock.read():
                done.append(True)

        thread = threading.Thread(target=reader)
        thread.start()
        thread.join(timeout=1)
        assert done == [True]
