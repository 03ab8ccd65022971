"""
Candidate start-time generation across the booking horizon.

Starts are laid on a fixed grid inside the business booking window and then
filtered against the live busy intervals. The output is a pure function of
the calendar contents and ``now``: calling twice against unchanged data
returns the same list.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from detail_scheduler.clients.base import CalendarStore
from detail_scheduler.config import BusinessConfig
from detail_scheduler.errors import InvalidBookingRequest
from detail_scheduler.scheduling.interval_index import IntervalIndex
from detail_scheduler.scheduling.services import ServiceDurationTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingRules:
    """Business-hours rules applied to every candidate start."""

    timezone: str = "America/Chicago"
    window_start_hour: int = 9
    window_end_hour: int = 15
    lunch_hour: int = 12
    closing_hour: int = 17
    non_working_days: frozenset[int] = field(default_factory=lambda: frozenset({5, 6}))
    horizon_days: int = 14
    half_hour_max_minutes: int = 90
    reminder_hour: int = 16

    @classmethod
    def from_config(cls, business: BusinessConfig) -> "BookingRules":
        return cls(
            timezone=business.timezone,
            window_start_hour=business.booking_start_hour,
            window_end_hour=business.booking_end_hour,
            lunch_hour=business.lunch_hour,
            closing_hour=business.closing_hour,
            non_working_days=frozenset(business.non_working_days),
            horizon_days=business.horizon_days,
            half_hour_max_minutes=business.half_hour_max_minutes,
            reminder_hour=business.reminder_hour,
        )

    @property
    def tz(self) -> pytz.BaseTzInfo:
        return pytz.timezone(self.timezone)

    def localize(self, day: date, at: time) -> datetime:
        return self.tz.localize(datetime.combine(day, at))

    def step_minutes(self, duration_minutes: int) -> int:
        """30-minute granularity for short services, hourly otherwise."""
        return 30 if duration_minutes <= self.half_hour_max_minutes else 60

    def start_times(self, duration_minutes: int) -> list[time]:
        """Local start times on a working day, before end-time filtering.

        Runs from the window start through the last full hour before the
        window end. The lunch-hour start is skipped.
        """
        step = self.step_minutes(duration_minutes)
        first = self.window_start_hour * 60
        last = (self.window_end_hour - 1) * 60
        starts = []
        for minute_of_day in range(first, last + 1, step):
            hour, minute = divmod(minute_of_day, 60)
            if hour == self.lunch_hour and minute == 0:
                continue
            starts.append(time(hour, minute))
        return starts


@dataclass(frozen=True)
class CandidateSlot:
    """A tentative, not-yet-committed bookable start time."""

    start: datetime
    duration_minutes: int

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)


class SlotGenerator:
    """Produces bookable start times for a service across the horizon."""

    def __init__(
        self,
        calendar: CalendarStore,
        durations: ServiceDurationTable,
        rules: BookingRules,
        resource_id: str,
    ) -> None:
        self._calendar = calendar
        self._durations = durations
        self._rules = rules
        self._resource_id = resource_id

    @property
    def rules(self) -> BookingRules:
        return self._rules

    def duration_for(self, service: str) -> int:
        return self._durations.minutes_for(service)

    def generate(
        self,
        service: str,
        horizon_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[datetime]:
        """Ordered, de-duplicated bookable start times.

        Raises:
            UpstreamUnavailable: If the calendar store cannot be read.
        """
        return [slot.start for slot in self.candidates(service, horizon_days, now)]

    def candidates(
        self,
        service: str,
        horizon_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[CandidateSlot]:
        rules = self._rules
        now = now or datetime.now(pytz.utc)
        horizon = horizon_days if horizon_days is not None else rules.horizon_days
        duration = self.duration_for(service)

        today = now.astimezone(rules.tz).date()
        window_end = rules.localize(today + timedelta(days=horizon + 1), time.min)
        index = IntervalIndex.rebuild(self._calendar, self._resource_id, now, window_end)

        starts: set[datetime] = set()
        for offset in range(1, horizon + 1):
            day = today + timedelta(days=offset)
            if day.weekday() in rules.non_working_days:
                continue
            closing = rules.localize(day, time(rules.closing_hour))
            for at in rules.start_times(duration):
                start = rules.localize(day, at)
                end = start + timedelta(minutes=duration)
                if end > closing:
                    continue
                if index.overlaps(start, end):
                    continue
                starts.add(start)

        slots = [CandidateSlot(start=s, duration_minutes=duration) for s in sorted(starts)]
        logger.info(
            "Generated %d candidate slots for %r (%d min) over %d days",
            len(slots), service, duration, horizon,
        )
        return slots

    def check_rules(
        self, start: datetime, duration_minutes: int, now: Optional[datetime] = None
    ) -> None:
        """Reject a start the generator would never offer.

        Busy intervals are not consulted here; that is the commit-time
        re-check's job. With ``now`` the start must also fall on a horizon
        day: after today and at most ``horizon_days`` ahead.

        Raises:
            InvalidBookingRequest: If ``start`` breaks a business-hours rule.
        """
        rules = self._rules
        if start.tzinfo is None:
            raise InvalidBookingRequest("Requested start must include a UTC offset")

        local = start.astimezone(rules.tz)
        if now is not None:
            if start <= now:
                raise InvalidBookingRequest("Requested start is in the past")
            today = now.astimezone(rules.tz).date()
            if local.date() <= today:
                raise InvalidBookingRequest("Same-day bookings are not offered")
            if local.date() > today + timedelta(days=rules.horizon_days):
                raise InvalidBookingRequest(
                    f"{local:%Y-%m-%d} is beyond the {rules.horizon_days}-day booking horizon"
                )
        if local.weekday() in rules.non_working_days:
            raise InvalidBookingRequest(f"{local:%A} is not a working day")
        if local.second or local.microsecond or local.time() not in rules.start_times(duration_minutes):
            raise InvalidBookingRequest(
                f"{local:%H:%M} is not an offered start time for a {duration_minutes}-minute service"
            )
        closing = rules.localize(local.date(), time(rules.closing_hour))
        if start + timedelta(minutes=duration_minutes) > closing:
            raise InvalidBookingRequest(
                f"A {duration_minutes}-minute service starting {local:%H:%M} runs past closing"
            )
