"""
History ledger: bounded, append-only record of saved predictions.

Storage layout: one key holding a JSON array of HistoryEntry dicts,
most-recent-first. Every operation reads and rewrites the whole array.

Rules:
- append() always creates a new entry (re-running a prediction for the same
  match keeps both snapshots) and carries the newest existing result for
  that match onto it.
- The array never exceeds `capacity`; the oldest entries drop first.
- attach_result() updates every snapshot of the match.
- Store failures and corrupted documents degrade to an empty ledger and are
  only logged. A mutation after such a read starts from that empty list, so
  its write replaces whatever the store held.
- Mutations are serialized through one asyncio.Lock.
"""

import asyncio
import dataclasses
import json
import logging
import time
import uuid
from typing import Callable, Iterable, Optional

from probableplay.config import Settings, get_settings
from probableplay.errors import PersistenceUnavailable
from probableplay.history.storage import HistoryStore
from probableplay.models import (
    DetailedForecast,
    HistoryEntry,
    Match,
    MatchResult,
    Prediction,
    PredictionKind,
    StandardPrediction,
)
from probableplay.telemetry import record_ledger_error

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id() -> str:
    return str(uuid.uuid4())


class HistoryLedger:
    """Bounded, most-recent-first prediction history over a HistoryStore.

    Usage:
        ledger = HistoryLedger(JsonFileHistoryStore("./data/history"))

        entry = await ledger.append(match, prediction, PredictionKind.STANDARD)
        await ledger.attach_result(match.id, result)
        entries = await ledger.list()
    """

    def __init__(
        self,
        store: HistoryStore,
        key: Optional[str] = None,
        capacity: Optional[int] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], int] = _now_ms,
        id_factory: Callable[[], str] = _new_id,
    ):
        settings = settings or get_settings()
        self.store = store
        self.key = key or settings.HISTORY_KEY
        self.capacity = capacity if capacity is not None else settings.HISTORY_CAPACITY
        if self.capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {self.capacity}")
        self._clock = clock
        self._id_factory = id_factory
        self._lock = asyncio.Lock()

    async def _read(self) -> list[HistoryEntry]:
        try:
            raw = await self.store.load(self.key)
        except PersistenceUnavailable as e:
            logger.warning(f"[LEDGER] Store unreadable, treating history as empty: {e}")
            record_ledger_error("read")
            return []

        if not raw:
            return []

        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError(f"expected a JSON array, got {type(items).__name__}")
            entries = []
            for item in items:
                if not isinstance(item, dict):
                    raise ValueError(f"expected an entry object, got {type(item).__name__}")
                entries.append(HistoryEntry.from_dict(item))
            return entries
        except (ValueError, KeyError, TypeError, AttributeError, RecursionError) as e:
            logger.warning(f"[LEDGER] Corrupted history under '{self.key}', treating as empty: {e}")
            record_ledger_error("decode")
            return []

    async def _write(self, entries: list[HistoryEntry]) -> bool:
        payload = json.dumps([entry.to_dict() for entry in entries], ensure_ascii=False)
        try:
            await self.store.save(self.key, payload)
            return True
        except PersistenceUnavailable as e:
            logger.error(f"[LEDGER] Failed to persist {len(entries)} entries: {e}")
            record_ledger_error("write")
            return False

    async def append(
        self,
        match: Match,
        prediction: Prediction,
        kind: PredictionKind,
    ) -> HistoryEntry:
        """
        Save a new prediction snapshot at the head of the ledger.

        Args:
            match: Fixture the prediction is for.
            prediction: StandardPrediction or DetailedForecast matching `kind`.
            kind: Prediction kind tag.

        Returns:
            The created HistoryEntry.
        """
        kind = PredictionKind(kind)
        expected = StandardPrediction if kind == PredictionKind.STANDARD else DetailedForecast
        if not isinstance(prediction, expected):
            raise TypeError(f"{kind.value} entry requires {expected.__name__}, got {type(prediction).__name__}")

        async with self._lock:
            entries = await self._read()

            # Newest snapshot of this match that already has a result
            previous = next(
                (e for e in entries if e.match.id == match.id and e.result is not None),
                None,
            )

            entry = HistoryEntry(
                id=self._id_factory(),
                match=match,
                kind=kind,
                timestamp=self._clock(),
                standard_prediction=prediction if kind == PredictionKind.STANDARD else None,
                detailed_forecast=prediction if kind == PredictionKind.DETAILED else None,
                result=previous.result if previous else None,
            )

            entries.insert(0, entry)
            dropped = len(entries) - self.capacity
            if dropped > 0:
                del entries[self.capacity:]
                logger.debug(f"[LEDGER] Capacity {self.capacity} reached, dropped {dropped} oldest")

            await self._write(entries)

        logger.info(
            f"[LEDGER] Saved {kind.value} prediction for match={match.id} "
            f"(entry={entry.id}, carried_result={previous is not None})"
        )
        return entry

    async def attach_result(self, match_id: str, result: MatchResult) -> bool:
        """Set `result` on every entry of match_id. Returns True if any entry changed."""
        async with self._lock:
            entries = await self._read()
            updated = False
            for i, entry in enumerate(entries):
                if entry.match.id == match_id:
                    entries[i] = dataclasses.replace(entry, result=result)
                    updated = True

            if updated:
                await self._write(entries)
        return updated

    async def remove(self, ids: Iterable[str]) -> list[HistoryEntry]:
        """Delete entries by id, keeping the order of the rest. Returns the remainder."""
        doomed = set(ids)
        async with self._lock:
            entries = await self._read()
            remaining = [e for e in entries if e.id not in doomed]
            await self._write(remaining)
        if len(remaining) != len(entries):
            logger.info(f"[LEDGER] Removed {len(entries) - len(remaining)} entries")
        return remaining

    async def clear(self) -> None:
        """Drop the whole history."""
        async with self._lock:
            await self._write([])
        logger.info("[LEDGER] History cleared")

    async def pending_matches(self) -> list[Match]:
        """Distinct matches (newest snapshot first) that have no result yet."""
        seen: set[str] = set()
        pending = []
        for entry in await self._read():
            if entry.result is None and entry.match.id not in seen:
                seen.add(entry.match.id)
                pending.append(entry.match)
        return pending

    async def pending_match_ids(self) -> list[str]:
        return [match.id for match in await self.pending_matches()]

    # Keep last: shadows the builtin `list` in the class body
    async def list(self) -> list[HistoryEntry]:
        """All entries, most-recent-first."""
        return await self._read()
