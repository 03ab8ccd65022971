"""
In-memory index of busy time ranges for the business calendar.

Intervals are half-open: ``[start, end)``. Two ranges overlap when
``a.start < b.end and a.end > b.start``, so back-to-back appointments that
only touch at an endpoint never conflict.
"""

import logging
from bisect import bisect_left
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Iterator, Optional

from detail_scheduler.clients.base import CalendarStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusyInterval:
    """A confirmed, calendar-blocking time range."""

    start: datetime
    end: datetime
    source_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.start < self.end:
            raise ValueError(f"Busy interval must have start < end, got {self.start} >= {self.end}")

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and end > self.start


class IntervalIndex:
    """Sorted busy intervals supporting overlap queries."""

    def __init__(self, intervals: Iterable[BusyInterval] = ()) -> None:
        self._intervals: list[BusyInterval] = sorted(intervals, key=lambda i: (i.start, i.end))
        self._starts: list[datetime] = [i.start for i in self._intervals]

    @classmethod
    def from_events(cls, raw: Iterable[dict[str, Any]]) -> "IntervalIndex":
        """Build from ``{"start", "end", "source_id"}`` mappings.

        Entries without both endpoints, or with ``start >= end``, are left
        out instead of failing the whole index.
        """
        intervals: list[BusyInterval] = []
        for item in raw:
            start, end = item.get("start"), item.get("end")
            source_id = item.get("source_id")
            if start is None or end is None:
                logger.debug("Skipping busy interval %s without both endpoints", source_id)
                continue
            if not start < end:
                logger.debug("Skipping impossible busy interval %s (%s >= %s)", source_id, start, end)
                continue
            intervals.append(BusyInterval(start=start, end=end, source_id=source_id))
        return cls(intervals)

    @classmethod
    def rebuild(
        cls,
        calendar: CalendarStore,
        resource_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> "IntervalIndex":
        """Fetch the calendar's current busy intervals and index them.

        Raises:
            UpstreamUnavailable: If the calendar store cannot be read.
        """
        index = cls.from_events(calendar.list_busy_intervals(resource_id, time_min, time_max))
        logger.debug(
            "Interval index rebuilt with %d intervals for %s..%s",
            len(index), time_min.isoformat(), time_max.isoformat(),
        )
        return index

    def conflicts(self, start: datetime, end: datetime) -> list[BusyInterval]:
        """All intervals overlapping ``[start, end)``."""
        # Only intervals starting before ``end`` can overlap.
        upper = bisect_left(self._starts, end)
        return [i for i in self._intervals[:upper] if i.end > start]

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return bool(self.conflicts(start, end))

    def __len__(self) -> int:
        return len(self._intervals)

    def __iter__(self) -> Iterator[BusyInterval]:
        return iter(self._intervals)
