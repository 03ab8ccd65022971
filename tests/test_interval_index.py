"""Tests for busy-interval overlap detection."""

from datetime import timedelta

import pytest

from detail_scheduler.errors import UpstreamUnavailable
from detail_scheduler.scheduling.interval_index import BusyInterval, IntervalIndex
from tests.conftest import FakeCalendarStore, local

NINE = local(2026, 3, 3, 9)
TEN = local(2026, 3, 3, 10)
ELEVEN = local(2026, 3, 3, 11)
NOON = local(2026, 3, 3, 12)


class TestBusyInterval:
    def test_rejects_start_after_end(self):
        with pytest.raises(ValueError):
            BusyInterval(start=TEN, end=NINE)

    def test_rejects_zero_length(self):
        with pytest.raises(ValueError):
            BusyInterval(start=TEN, end=TEN)


class TestOverlapSemantics:
    def test_identical_interval_overlaps(self):
        index = IntervalIndex([BusyInterval(TEN, ELEVEN)])
        assert index.overlaps(TEN, ELEVEN)

    def test_touching_before_does_not_overlap(self):
        index = IntervalIndex([BusyInterval(TEN, ELEVEN)])
        assert not index.overlaps(NINE, TEN)

    def test_touching_after_does_not_overlap(self):
        index = IntervalIndex([BusyInterval(TEN, ELEVEN)])
        assert not index.overlaps(ELEVEN, NOON)

    def test_partial_overlap(self):
        index = IntervalIndex([BusyInterval(TEN, NOON)])
        assert index.overlaps(NINE, TEN + timedelta(minutes=1))
        assert index.overlaps(ELEVEN + timedelta(minutes=59), NOON + timedelta(hours=1))

    def test_containment_both_ways(self):
        index = IntervalIndex([BusyInterval(NINE, NOON)])
        assert index.overlaps(TEN, ELEVEN)
        inner = IntervalIndex([BusyInterval(TEN, ELEVEN)])
        assert inner.overlaps(NINE, NOON)

    @pytest.mark.parametrize("a,b", [
        ((NINE, TEN), (TEN, ELEVEN)),
        ((NINE, ELEVEN), (TEN, NOON)),
        ((NINE, NOON), (TEN, ELEVEN)),
        ((TEN, ELEVEN), (TEN, ELEVEN)),
        ((NINE, TEN), (ELEVEN, NOON)),
    ])
    def test_overlap_is_symmetric(self, a, b):
        left = IntervalIndex([BusyInterval(*a)]).overlaps(*b)
        right = IntervalIndex([BusyInterval(*b)]).overlaps(*a)
        assert left == right

    def test_empty_index_never_overlaps(self):
        assert not IntervalIndex().overlaps(NINE, NOON)


class TestConflicts:
    def test_returns_only_overlapping_intervals_in_order(self):
        index = IntervalIndex([
            BusyInterval(ELEVEN, NOON, "c"),
            BusyInterval(NINE, TEN, "a"),
            BusyInterval(TEN, ELEVEN, "b"),
        ])
        found = index.conflicts(TEN, NOON)
        assert [i.source_id for i in found] == ["b", "c"]

    def test_long_interval_starting_early_is_found(self):
        index = IntervalIndex([
            BusyInterval(NINE - timedelta(hours=3), NOON, "long"),
            BusyInterval(NINE, TEN, "short"),
        ])
        assert [i.source_id for i in index.conflicts(ELEVEN, NOON)] == ["long"]


class TestFromEvents:
    def test_skips_entries_without_both_endpoints(self):
        index = IntervalIndex.from_events([
            {"start": NINE, "end": None, "source_id": "open-ended"},
            {"start": None, "end": TEN, "source_id": "no-start"},
            {"start": TEN, "end": ELEVEN, "source_id": "ok"},
        ])
        assert len(index) == 1
        assert next(iter(index)).source_id == "ok"

    def test_skips_impossible_intervals(self):
        index = IntervalIndex.from_events([
            {"start": ELEVEN, "end": TEN, "source_id": "backwards"},
            {"start": TEN, "end": TEN, "source_id": "empty"},
        ])
        assert len(index) == 0


class TestRebuild:
    def test_rebuild_reads_the_calendar(self):
        calendar = FakeCalendarStore()
        calendar.add_busy(TEN, NOON, "evt-1")
        index = IntervalIndex.rebuild(calendar, "primary", NINE, NOON)
        assert index.overlaps(ELEVEN, NOON)
        assert calendar.list_calls == [(NINE, NOON)]

    def test_rebuild_propagates_upstream_failure(self):
        calendar = FakeCalendarStore()
        calendar.fail = True
        with pytest.raises(UpstreamUnavailable):
            IntervalIndex.rebuild(calendar, "primary", NINE, NOON)
