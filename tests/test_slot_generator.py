"""Tests for candidate slot generation."""

from collections import defaultdict
from datetime import date, time

import pytest
import pytz

from detail_scheduler.errors import InvalidBookingRequest, UpstreamUnavailable
from detail_scheduler.scheduling.services import ServiceDurationTable
from detail_scheduler.scheduling.slot_generator import BookingRules, SlotGenerator
from tests.conftest import CHICAGO, NOW, local


def _by_day(slots):
    days = defaultdict(list)
    for slot in slots:
        local_start = slot.astimezone(CHICAGO)
        days[local_start.date()].append(local_start.time())
    return days


class TestBookingRules:
    def test_half_hour_grid_for_short_services(self, rules):
        starts = rules.start_times(60)
        assert time(9, 30) in starts
        assert starts[0] == time(9, 0)
        assert starts[-1] == time(14, 0)

    def test_hourly_grid_for_long_services(self, rules):
        assert rules.start_times(120) == [time(9), time(10), time(11), time(13), time(14)]

    def test_ninety_minutes_still_gets_half_hours(self, rules):
        assert rules.step_minutes(90) == 30
        assert rules.step_minutes(91) == 60

    def test_lunch_start_skipped_but_half_past_kept(self, rules):
        starts = rules.start_times(60)
        assert time(12, 0) not in starts
        assert time(12, 30) in starts


class TestExpressWashScenario:
    def test_every_weekday_in_horizon_has_slots(self, slot_generator):
        slots = slot_generator.generate("Express Wash", now=NOW)
        days = _by_day(slots)
        expected_days = [
            date(2026, 3, d) for d in (3, 4, 5, 6, 9, 10, 11, 12, 13, 16)
        ]
        assert sorted(days) == expected_days

    def test_hourly_and_half_hourly_starts_none_after_two(self, slot_generator):
        slots = slot_generator.generate("Express Wash", now=NOW)
        for starts in _by_day(slots).values():
            assert starts == [
                time(9, 0), time(9, 30), time(10, 0), time(10, 30), time(11, 0),
                time(11, 30), time(12, 30), time(13, 0), time(13, 30), time(14, 0),
            ]
        assert len(slots) == 100

    def test_no_weekend_slots(self, slot_generator):
        slots = slot_generator.generate("Express Wash", now=NOW)
        assert all(s.astimezone(CHICAGO).weekday() < 5 for s in slots)

    def test_today_is_never_offered(self, slot_generator):
        slots = slot_generator.generate("Express Wash", now=NOW)
        assert all(s.astimezone(CHICAGO).date() > NOW.date() for s in slots)

    def test_output_is_ascending_without_duplicates(self, slot_generator):
        slots = slot_generator.generate("Express Wash", now=NOW)
        assert slots == sorted(set(slots))

    def test_slots_are_timezone_aware(self, slot_generator):
        slot = slot_generator.generate("Express Wash", now=NOW)[0]
        assert slot.tzinfo is not None
        assert slot.isoformat() == "2026-03-03T09:00:00-06:00"

    def test_dst_change_keeps_local_wall_clock(self, slot_generator):
        slots = slot_generator.generate("Express Wash", now=NOW)
        after_dst = [s for s in slots if s.astimezone(CHICAGO).date() == date(2026, 3, 9)]
        assert after_dst[0].isoformat() == "2026-03-09T09:00:00-05:00"


class TestClosingBoundary:
    def test_full_detail_must_end_by_closing(self, slot_generator):
        slots = slot_generator.generate("Full Detail", now=NOW)
        for starts in _by_day(slots).values():
            assert starts == [time(9), time(10), time(11), time(13)]

    def test_unknown_service_uses_default_duration(self, slot_generator):
        slots = slot_generator.generate("Mystery Service", now=NOW)
        for starts in _by_day(slots).values():
            assert starts == [time(9), time(10), time(11), time(13), time(14)]

    def test_service_longer_than_the_day_has_no_slots(self, slot_generator):
        assert slot_generator.generate("Ceramic Coating - 3 Year", now=NOW) == []


class TestBusyIntervals:
    def test_ten_to_noon_block(self, calendar, slot_generator):
        calendar.add_busy(local(2026, 3, 4, 10), local(2026, 3, 4, 12), "evt-busy")
        slots = slot_generator.generate("Express Wash", now=NOW)
        starts = _by_day(slots)[date(2026, 3, 4)]
        assert time(9, 0) in starts
        assert time(12, 30) in starts
        for blocked in (time(9, 30), time(10), time(10, 30), time(11), time(11, 30)):
            assert blocked not in starts

    def test_half_past_nine_kept_for_thirty_minute_service(self, calendar, rules):
        table = ServiceDurationTable({"default": 120, "Quick Vacuum": 30})
        generator = SlotGenerator(calendar, table, rules, "primary")
        calendar.add_busy(local(2026, 3, 4, 10), local(2026, 3, 4, 12), "evt-busy")
        starts = _by_day(generator.generate("Quick Vacuum", now=NOW))[date(2026, 3, 4)]
        assert time(9, 30) in starts
        assert time(10) not in starts

    def test_no_slot_overlaps_any_busy_interval(self, calendar, slot_generator):
        blocks = [
            (local(2026, 3, 3, 8, 45), local(2026, 3, 3, 9, 15)),
            (local(2026, 3, 5, 13, 10), local(2026, 3, 5, 16, 0)),
            (local(2026, 3, 10, 11, 0), local(2026, 3, 10, 11, 30)),
            (local(2026, 3, 12, 0, 0), local(2026, 3, 13, 0, 0)),
        ]
        for n, (start, end) in enumerate(blocks):
            calendar.add_busy(start, end, f"evt-{n}")

        for service in ("Express Wash", "Full Detail", "Exterior Only", "Interior Only"):
            slots = slot_generator.candidates(service, now=NOW)
            for slot in slots:
                for start, end in blocks:
                    assert not (slot.start < end and slot.end > start)

    def test_intervals_without_endpoints_are_ignored(self, calendar, slot_generator):
        calendar.add_busy(local(2026, 3, 3, 9), None, "all-day")
        slots = slot_generator.generate("Express Wash", now=NOW)
        assert len(slots) == 100

    def test_rerun_against_unchanged_calendar_is_identical(self, calendar, slot_generator):
        calendar.add_busy(local(2026, 3, 4, 10), local(2026, 3, 4, 12), "evt-busy")
        first = slot_generator.generate("Express Wash", now=NOW)
        second = slot_generator.generate("Express Wash", now=NOW)
        assert first == second

    def test_index_window_covers_whole_horizon(self, calendar, slot_generator):
        slot_generator.generate("Express Wash", now=NOW)
        time_min, time_max = calendar.list_calls[-1]
        assert time_min == NOW
        assert time_max == local(2026, 3, 17)


class TestHorizonAndFailures:
    def test_shorter_horizon(self, slot_generator):
        slots = slot_generator.generate("Express Wash", horizon_days=2, now=NOW)
        assert sorted(_by_day(slots)) == [date(2026, 3, 3), date(2026, 3, 4)]

    def test_calendar_failure_raises_instead_of_inventing_slots(self, calendar, slot_generator):
        calendar.fail = True
        with pytest.raises(UpstreamUnavailable):
            slot_generator.generate("Express Wash", now=NOW)


class TestCheckRules:
    def test_offered_start_passes(self, slot_generator):
        slot_generator.check_rules(local(2026, 3, 3, 9, 30), 60)

    def test_naive_start_rejected(self, slot_generator):
        with pytest.raises(InvalidBookingRequest):
            slot_generator.check_rules(local(2026, 3, 3, 9).replace(tzinfo=None), 60)

    def test_weekend_rejected(self, slot_generator):
        with pytest.raises(InvalidBookingRequest, match="not a working day"):
            slot_generator.check_rules(local(2026, 3, 7, 9), 60)

    def test_lunch_start_rejected(self, slot_generator):
        with pytest.raises(InvalidBookingRequest):
            slot_generator.check_rules(local(2026, 3, 3, 12), 60)

    def test_half_hour_rejected_for_long_service(self, slot_generator):
        with pytest.raises(InvalidBookingRequest):
            slot_generator.check_rules(local(2026, 3, 3, 9, 30), 240)

    def test_off_grid_minute_rejected(self, slot_generator):
        with pytest.raises(InvalidBookingRequest):
            slot_generator.check_rules(local(2026, 3, 3, 9, 15), 60)

    def test_start_after_window_rejected(self, slot_generator):
        with pytest.raises(InvalidBookingRequest):
            slot_generator.check_rules(local(2026, 3, 3, 16, 30), 30)

    def test_past_closing_rejected(self, slot_generator):
        with pytest.raises(InvalidBookingRequest, match="past closing"):
            slot_generator.check_rules(local(2026, 3, 3, 14), 240)

    def test_horizon_enforced_when_now_given(self, slot_generator):
        slot_generator.check_rules(local(2026, 3, 3, 9), 60, now=NOW)
        with pytest.raises(InvalidBookingRequest, match="horizon"):
            slot_generator.check_rules(local(2026, 3, 17, 9), 60, now=NOW)

    def test_other_timezone_is_converted(self, slot_generator):
        utc_start = local(2026, 3, 3, 10).astimezone(pytz.utc)
        slot_generator.check_rules(utc_start, 60)


class TestCustomRules:
    def test_saturday_working_day(self, calendar, durations):
        rules = BookingRules(non_working_days=frozenset({6}))
        generator = SlotGenerator(calendar, durations, rules, "primary")
        slots = generator.generate("Full Detail", horizon_days=5, now=NOW)
        assert date(2026, 3, 7) in _by_day(slots)
