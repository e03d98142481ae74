"""In-memory lookup structures over committed candles.

Three mappings are kept in lockstep: ID -> record, session -> records (in
insertion order) and timestamp -> record (last write wins on collisions).
The index is derived data: ``rebuild`` from the source of truth always
yields the same state as incremental ``add``/``remove`` calls.
"""

import logging
import time
from datetime import datetime
from typing import Iterable, Optional

from candleguard.models import CandleRecord

logger = logging.getLogger(__name__)


class CandleIndex:
    """Fast retrieval of candles by ID, session, timestamp and index range."""

    def __init__(self, records: Optional[Iterable[CandleRecord]] = None):
        self._by_id: dict[str, CandleRecord] = {}
        self._by_session: dict[str, list[CandleRecord]] = {}
        self._by_timestamp: dict[datetime, CandleRecord] = {}
        if records is not None:
            self.rebuild(records)

    def rebuild(self, records: Iterable[CandleRecord]) -> None:
        """Replace the index contents with the given records."""
        start = time.perf_counter()
        fresh = CandleIndex()
        for record in records:
            fresh.add(record)

        # Swap in the finished mappings only once they are complete
        self._by_id, self._by_session, self._by_timestamp = (
            fresh._by_id, fresh._by_session, fresh._by_timestamp
        )
        logger.debug(
            "Index rebuilt: %d candles in %.2fms",
            len(self._by_id), (time.perf_counter() - start) * 1000,
        )

    def add(self, record: CandleRecord) -> None:
        """Add a record, replacing any record with the same ID."""
        if record.id in self._by_id:
            self.remove(record.id)
        self._by_id[record.id] = record
        self._by_session.setdefault(record.session_id, []).append(record)
        self._by_timestamp[record.timestamp] = record

    def remove(self, record_id: str) -> Optional[CandleRecord]:
        """Remove a record by ID.

        Returns:
            The removed record, or None if it was not indexed.
        """
        record = self._by_id.pop(record_id, None)
        if record is None:
            return None

        bucket = self._by_session.get(record.session_id, [])
        for position, candidate in enumerate(bucket):
            if candidate.id == record_id:
                del bucket[position]
                break
        if not bucket:
            self._by_session.pop(record.session_id, None)

        current = self._by_timestamp.get(record.timestamp)
        if current is not None and current.id == record_id:
            del self._by_timestamp[record.timestamp]
            # Fall back to the latest remaining record at the same instant
            for candidate in self._by_id.values():
                if candidate.timestamp == record.timestamp:
                    self._by_timestamp[record.timestamp] = candidate

        return record

    def clear(self) -> None:
        self._by_id.clear()
        self._by_session.clear()
        self._by_timestamp.clear()

    def by_id(self, record_id: str) -> Optional[CandleRecord]:
        return self._by_id.get(record_id)

    def by_session(self, session_id: str) -> list[CandleRecord]:
        """Records of a session in insertion order."""
        return list(self._by_session.get(session_id, []))

    def by_timestamp(self, timestamp: datetime) -> Optional[CandleRecord]:
        return self._by_timestamp.get(timestamp)

    def by_time_range(
        self, session_id: str, start: datetime, end: datetime
    ) -> list[CandleRecord]:
        """Records of a session with ``start <= timestamp <= end``."""
        return [
            r for r in self._by_session.get(session_id, [])
            if start <= r.timestamp <= end
        ]

    def by_index_range(
        self, session_id: str, start_index: int, end_index: int
    ) -> list[CandleRecord]:
        """Records of a session with ``start_index <= candle_index <= end_index``."""
        return [
            r for r in self._by_session.get(session_id, [])
            if start_index <= r.candle_index <= end_index
        ]

    def latest(self, session_id: str, count: int) -> list[CandleRecord]:
        """The ``count`` records of a session with the highest index, highest first."""
        if count <= 0:
            return []
        bucket = self._by_session.get(session_id, [])
        return sorted(bucket, key=lambda r: r.candle_index, reverse=True)[:count]

    def snapshot(self) -> dict:
        """Plain copies of the three mappings, for comparison and debugging."""
        return {
            "by_id": dict(self._by_id),
            "by_session": {k: list(v) for k, v in self._by_session.items()},
            "by_timestamp": dict(self._by_timestamp),
        }

    def stats(self) -> dict:
        """Index statistics.

        Returns:
            Dictionary with candle, session and timestamp counts.
        """
        return {
            "total_candles": len(self._by_id),
            "sessions": len(self._by_session),
            "timestamps": len(self._by_timestamp),
        }

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._by_id
