"""Tests for HistoryStore: ordering, cursors, eviction, JSONL persistence."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

import pytest

from src.core.config import HistoryConfig
from src.core.types import (
    DeliveryOutcome,
    DeliveryStatus,
    EventType,
    HistoryRecord,
    NotificationEvent,
    Severity,
)
from src.history.exceptions import StoreError
from src.history.store import HistoryStore


# ── Helpers ─────────────────────────────────────────────────────


def _record(event_id: int, recorded_at: float | None = None) -> HistoryRecord:
    event = NotificationEvent(
        id=event_id,
        type=EventType.DRIFT,
        severity=Severity.WARNING,
        title=f"event {event_id}",
        message="drift",
    )
    return HistoryRecord(
        event=event,
        outcomes=(DeliveryOutcome(channel_id="a", status=DeliveryStatus.DELIVERED),),
        recorded_at=recorded_at if recorded_at is not None else time.time(),
    )


async def _filled(store: HistoryStore, n: int) -> HistoryStore:
    for _ in range(n):
        await store.append(_record(store.next_event_id()))
    return store


# ── Query ───────────────────────────────────────────────────────


class TestList:
    async def test_newest_first(self) -> None:
        store = await _filled(HistoryStore(), 3)
        assert [r.event.id for r in store.list()] == [3, 2, 1]

    async def test_limit(self) -> None:
        store = await _filled(HistoryStore(), 3)
        assert [r.event.id for r in store.list(2)] == [3, 2]

    async def test_before_cursor(self) -> None:
        store = await _filled(HistoryStore(), 5)
        assert [r.event.id for r in store.list(2, before=4)] == [3, 2]
        assert store.list(10, before=1) == []

    async def test_zero_limit(self) -> None:
        store = await _filled(HistoryStore(), 2)
        assert store.list(0) == []

    async def test_empty(self) -> None:
        assert HistoryStore().list() == []

    async def test_out_of_order_append_sorted_by_id(self) -> None:
        store = HistoryStore()
        await store.append(_record(2))
        await store.append(_record(1))
        assert [r.event.id for r in store.list()] == [2, 1]

    async def test_get(self) -> None:
        store = await _filled(HistoryStore(), 3)
        rec = store.get(2)
        assert rec is not None
        assert rec.event.title == "event 2"
        assert store.get(99) is None

    async def test_ids_strictly_increasing(self) -> None:
        store = HistoryStore()
        ids = [store.next_event_id() for _ in range(5)]
        assert ids == sorted(set(ids))


# ── Eviction ────────────────────────────────────────────────────


class TestEviction:
    async def test_max_records(self) -> None:
        store = await _filled(HistoryStore(HistoryConfig(max_records=3)), 5)
        assert len(store) == 3
        assert [r.event.id for r in store.list()] == [5, 4, 3]

    async def test_late_record_survives_its_own_append(self) -> None:
        store = HistoryStore(HistoryConfig(max_records=2))
        await store.append(_record(2))
        await store.append(_record(3))
        await store.append(_record(1))
        assert len(store) == 2
        assert [r.event.id for r in store.list()] == [3, 1]
        assert store.get(1) is not None

    async def test_max_age(self) -> None:
        store = HistoryStore(HistoryConfig(max_age_secs=60))
        await store.append(_record(1, recorded_at=time.time() - 3600))
        await store.append(_record(2))
        assert [r.event.id for r in store.list()] == [2]


# ── Persistence ─────────────────────────────────────────────────


class TestPersistence:
    async def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "history.jsonl"
        store = HistoryStore(HistoryConfig(path=str(path)))
        await store.open()
        await _filled(store, 3)
        assert len(path.read_text().splitlines()) == 3

        reloaded = HistoryStore(HistoryConfig(path=str(path)))
        await reloaded.open()
        assert [r.event.id for r in reloaded.list()] == [3, 2, 1]
        assert reloaded.list()[0] == store.list()[0]
        assert reloaded.next_event_id() == 4

    async def test_open_missing_file(self, tmp_path: Path) -> None:
        store = HistoryStore(HistoryConfig(path=str(tmp_path / "none.jsonl")))
        await store.open()
        assert len(store) == 0
        assert store.next_event_id() == 1

    async def test_invalid_lines_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "history.jsonl"
        path.write_text(_record(1).model_dump_json() + "\n{not json\n\n")
        store = HistoryStore(HistoryConfig(path=str(path)))
        await store.open()
        assert [r.event.id for r in store.list()] == [1]

    async def test_unwritable_path_raises_and_commits_nothing(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = HistoryStore(HistoryConfig(path=str(blocker / "history.jsonl")))

        with pytest.raises(StoreError):
            await store.append(_record(1))
        assert len(store) == 0
        assert store.list() == []

    async def test_compaction_bounds_file(self, tmp_path: Path) -> None:
        path = tmp_path / "history.jsonl"
        store = HistoryStore(HistoryConfig(path=str(path), max_records=2))
        await store.open()
        await _filled(store, 5)
        lines = path.read_text().splitlines()
        assert len(lines) <= 4

        reloaded = HistoryStore(HistoryConfig(path=str(path), max_records=2))
        await reloaded.open()
        assert [r.event.id for r in reloaded.list()] == [5, 4]


# ── Concurrency ─────────────────────────────────────────────────


class TestConcurrentAppend:
    async def test_gathered_appends_all_committed(self, tmp_path: Path) -> None:
        path = tmp_path / "history.jsonl"
        store = HistoryStore(HistoryConfig(path=str(path)))
        await store.open()

        records = [_record(store.next_event_id()) for _ in range(50)]
        await asyncio.gather(*(store.append(r) for r in reversed(records)))

        assert len(store) == 50
        assert [r.event.id for r in store.list(100)] == list(range(50, 0, -1))
        assert len(path.read_text().splitlines()) == 50
