"""Property-based tests for the candle index.

**Feature: candle-input-pipeline**
"""

from datetime import datetime, timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from candleguard.engine import CandleIndex
from candleguard.models import CandleRecord

START = datetime(2024, 1, 1, 9, 0)


def make_candle(record_id: str, session_id: str, index: int, minute: int) -> CandleRecord:
    return CandleRecord(
        id=record_id,
        session_id=session_id,
        candle_index=index,
        timestamp=START + timedelta(minutes=minute),
        open=1.0850,
        high=1.0870,
        low=1.0840,
        close=1.0860,
        volume=1000,
    )


@st.composite
def record_lists(draw, min_size: int = 0, max_size: int = 15):
    """Records with unique IDs; sessions and timestamps deliberately collide."""
    size = draw(st.integers(min_value=min_size, max_value=max_size))
    return [
        make_candle(
            f"id-{i}",
            draw(st.sampled_from(["s1", "s2", "s3"])),
            draw(st.integers(min_value=0, max_value=20)),
            draw(st.integers(min_value=0, max_value=4)),
        )
        for i in range(size)
    ]


class TestIndexConvergence:
    """
    **Feature: candle-input-pipeline, Property 9: Index Convergence**

    *For any* initial record set followed by adds and removes, the
    incrementally maintained index equals a direct rebuild of the final
    record set.
    """

    @given(records=record_lists(min_size=1), data=st.data())
    @settings(max_examples=200)
    def test_incremental_equals_rebuild(self, records: list[CandleRecord], data):
        split = data.draw(st.integers(min_value=0, max_value=len(records)))
        initial, extra = records[:split], records[split:]
        removed = data.draw(st.sets(st.sampled_from([r.id for r in records])))

        index = CandleIndex()
        index.rebuild(initial)
        for record in extra:
            index.add(record)
        for record_id in removed:
            assert index.remove(record_id) is not None

        final = [r for r in records if r.id not in removed]
        assert index.snapshot() == CandleIndex(final).snapshot()

    @given(records=record_lists())
    @settings(max_examples=100)
    def test_rebuild_is_idempotent(self, records: list[CandleRecord]):
        index = CandleIndex(records)
        first = index.snapshot()

        index.rebuild(records)

        assert index.snapshot() == first


class TestIndexQueries:
    """Tests for lookups over a populated index."""

    def setup_method(self):
        self.records = [make_candle(f"id-{i}", "s1", i, i * 5) for i in range(10)]
        self.records.append(make_candle("other", "s2", 0, 0))
        self.index = CandleIndex(self.records)

    def test_by_id(self):
        assert self.index.by_id("id-3") is self.records[3]
        assert self.index.by_id("missing") is None
        assert "id-3" in self.index

    def test_by_session_keeps_insertion_order(self):
        assert [r.id for r in self.index.by_session("s1")] == [f"id-{i}" for i in range(10)]
        assert self.index.by_session("unknown") == []

    def test_by_session_returns_copy(self):
        self.index.by_session("s1").clear()
        assert len(self.index.by_session("s1")) == 10

    def test_timestamp_collision_last_write_wins(self):
        # id-0 and 'other' share START; 'other' was added last
        assert self.index.by_timestamp(START).id == "other"

    def test_timestamp_falls_back_after_removal(self):
        self.index.remove("other")
        assert self.index.by_timestamp(START).id == "id-0"

    def test_by_index_range(self):
        result = self.index.by_index_range("s1", 2, 4)
        assert [r.candle_index for r in result] == [2, 3, 4]

    def test_by_time_range(self):
        result = self.index.by_time_range("s1", START + timedelta(minutes=10), START + timedelta(minutes=20))
        assert [r.candle_index for r in result] == [2, 3, 4]

    def test_latest(self):
        assert [r.candle_index for r in self.index.latest("s1", 3)] == [9, 8, 7]
        assert self.index.latest("s1", 0) == []

    def test_remove_last_in_session_drops_bucket(self):
        self.index.remove("other")
        assert self.index.stats() == {"total_candles": 10, "sessions": 1, "timestamps": 10}

    def test_remove_unknown(self):
        assert self.index.remove("missing") is None
        assert len(self.index) == 11

    def test_add_replaces_same_id(self):
        replacement = make_candle("id-3", "s2", 7, 500)
        self.index.add(replacement)

        assert len(self.index) == 11
        assert self.index.by_id("id-3") is replacement
        assert "id-3" not in [r.id for r in self.index.by_session("s1")]
        assert self.index.by_timestamp(START + timedelta(minutes=15)) is None

    def test_clear(self):
        self.index.clear()
        assert self.index.stats() == {"total_candles": 0, "sessions": 0, "timestamps": 0}
