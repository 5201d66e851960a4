"""HistoryStore — bounded, append-only log of events and their outcomes."""

from __future__ import annotations

import asyncio
import bisect
import itertools
import os
import time
from pathlib import Path

import structlog
from pydantic import ValidationError

from src.core.config import HistoryConfig
from src.core.types import HistoryRecord
from src.history.exceptions import StoreError

logger = structlog.get_logger(__name__)


class HistoryStore:
    """In-memory history with optional JSON-lines persistence.

    Records are kept sorted by event id. ``append`` holds an asyncio lock for
    the durable write and commits to memory in one synchronous step, so
    readers never observe a partially written record. Eviction (oldest
    first, by count and optionally by age) runs inside ``append``.

    Usage::

        store = HistoryStore(HistoryConfig(max_records=500, path="data/history.jsonl"))
        await store.open()
        await store.append(record)
        latest = store.list(limit=20)
    """

    def __init__(self, config: HistoryConfig | None = None) -> None:
        self._config = config or HistoryConfig()
        self._records: list[HistoryRecord] = []
        self._ids: list[int] = []
        self._lock = asyncio.Lock()
        self._id_counter = itertools.count(1)
        self._path = Path(self._config.path) if self._config.path else None
        self._lines_on_disk = 0

    def __len__(self) -> int:
        return len(self._records)

    @property
    def config(self) -> HistoryConfig:
        return self._config

    def next_event_id(self) -> int:
        """Strictly increasing event id, continuing after loaded records."""
        return next(self._id_counter)

    # ── Persistence ─────────────────────────────────────────────

    async def open(self) -> None:
        """Load previously persisted records (no-op without a path)."""
        if self._path is None:
            return
        async with self._lock:
            records = await asyncio.to_thread(self._read_file)
            records.sort(key=lambda r: r.event.id)
            self._lines_on_disk = len(records)
            self._records = records
            self._ids = [r.event.id for r in records]
            self._evict(time.time())
            last_id = self._ids[-1] if self._ids else 0
            self._id_counter = itertools.count(last_id + 1)
        logger.info("history_loaded", path=str(self._path), records=len(self._records))

    def _read_file(self) -> list[HistoryRecord]:
        assert self._path is not None
        if not self._path.exists():
            return []
        records: list[HistoryRecord] = []
        with open(self._path, encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(HistoryRecord.model_validate_json(line))
                except ValidationError:
                    logger.warning("history_line_invalid", path=str(self._path), line=lineno)
        return records

    def _write_line(self, line: str) -> None:
        assert self._path is not None
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
            f.flush()
            os.fsync(f.fileno())

    def _rewrite_file(self, records: list[HistoryRecord]) -> None:
        assert self._path is not None
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            for record in records:
                f.write(record.model_dump_json() + "\n")
        os.replace(tmp, self._path)

    # ── Append / query ──────────────────────────────────────────

    async def append(self, record: HistoryRecord) -> None:
        """Store a record; raises StoreError if it cannot be persisted."""
        async with self._lock:
            if self._path is not None:
                try:
                    await asyncio.to_thread(self._write_line, record.model_dump_json())
                except OSError as exc:
                    logger.error("history_append_failed", event_id=record.event.id, error=str(exc))
                    raise StoreError(f"could not persist event {record.event.id}: {exc}") from exc
                self._lines_on_disk += 1

            idx = bisect.bisect_right(self._ids, record.event.id)
            self._ids.insert(idx, record.event.id)
            self._records.insert(idx, record)
            evicted = self._evict(time.time(), keep=record.event.id)

            if self._path is not None and self._lines_on_disk > 2 * self._config.max_records:
                await self._compact()

        if evicted:
            logger.debug("history_evicted", count=evicted, size=len(self._records))

    async def _compact(self) -> None:
        snapshot = list(self._records)
        try:
            await asyncio.to_thread(self._rewrite_file, snapshot)
        except OSError as exc:
            # Compaction is housekeeping; the appended line is already durable.
            logger.warning("history_compaction_failed", error=str(exc))
            return
        self._lines_on_disk = len(snapshot)
        logger.info("history_compacted", records=len(snapshot))

    def _evict(self, now: float, keep: int | None = None) -> int:
        """Drop the oldest records past the age window or over capacity.

        ``keep`` is never dropped, so the record an ``append`` just added stays
        visible even when its id is older than everything retained.
        """
        max_age = self._config.max_age_secs
        limit = max(self._config.max_records, 0)
        remaining = len(self._records)
        drop: set[int] = set()
        for idx, rec in enumerate(self._records):
            if rec.event.id == keep:
                continue
            expired = max_age is not None and now - rec.recorded_at > max_age
            if not expired and remaining <= limit:
                break
            drop.add(idx)
            remaining -= 1
        if drop:
            self._records = [r for i, r in enumerate(self._records) if i not in drop]
            self._ids = [r.event.id for r in self._records]
        return len(drop)

    def list(self, limit: int = 50, before: int | None = None) -> list[HistoryRecord]:
        """Most recent records first; ``before`` is an exclusive event-id cursor."""
        if limit <= 0:
            return []
        end = len(self._ids) if before is None else bisect.bisect_left(self._ids, before)
        start = max(0, end - limit)
        return self._records[start:end][::-1]

    def get(self, event_id: int) -> HistoryRecord | None:
        idx = bisect.bisect_left(self._ids, event_id)
        if idx < len(self._ids) and self._ids[idx] == event_id:
            return self._records[idx]
        return None
