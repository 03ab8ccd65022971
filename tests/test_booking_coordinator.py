"""Tests for the check-then-insert booking commit."""

import pytest

from detail_scheduler.errors import ConflictError, InvalidBookingRequest, UpstreamUnavailable
from detail_scheduler.scheduling.booking_coordinator import BookingCoordinator
from detail_scheduler.scheduling.reminders import KIND_CONFIRMATION, KIND_REMINDER, NotificationQueue
from tests.conftest import NOW, FakeProfileStore, local, make_customer

TUESDAY_NINE = local(2026, 3, 3, 9)


@pytest.fixture
def profiles():
    return FakeProfileStore()


@pytest.fixture
def notifications(session_factory, dispatcher, rules):
    return NotificationQueue(session_factory, dispatcher, rules, "Clean Machine", "(918) 856-5304")


@pytest.fixture
def coordinator(calendar, slot_generator, notifications, profiles):
    return BookingCoordinator(
        calendar,
        slot_generator,
        "primary",
        notifications=notifications,
        profiles=profiles,
        clock=lambda: NOW,
    )


class TestCommit:
    def test_successful_commit_returns_appointment(self, coordinator, calendar):
        appointment = coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())
        assert appointment.id == "evt-1"
        assert appointment.start == TUESDAY_NINE
        assert appointment.end == local(2026, 3, 3, 10)
        assert appointment.customer_phone == "9185550100"
        assert len(calendar.events) == 1

    def test_inserted_event_format(self, coordinator, calendar):
        coordinator.commit("Express Wash", TUESDAY_NINE, make_customer(notes="Black SUV"))
        event = calendar.events[0]
        assert event["summary"] == "Express Wash - Jane Doe"
        assert "Phone: 9185550100" in event["description"]
        assert "Email: jane@example.com" in event["description"]
        assert "Notes: Black SUV" in event["description"]
        assert event["location"] == "123 Main St, Tulsa OK"

    def test_second_commit_for_same_slot_conflicts(self, coordinator, calendar):
        coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())
        with pytest.raises(ConflictError) as exc_info:
            coordinator.commit("Express Wash", TUESDAY_NINE, make_customer(name="John Roe"))
        assert exc_info.value.conflicting_ids == ["evt-1"]
        assert len(calendar.events) == 1

    def test_overlapping_longer_booking_conflicts(self, coordinator):
        coordinator.commit("Express Wash", local(2026, 3, 3, 10), make_customer())
        with pytest.raises(ConflictError):
            coordinator.commit("Full Detail", TUESDAY_NINE, make_customer(name="John Roe"))

    def test_back_to_back_bookings_both_succeed(self, coordinator):
        coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())
        second = coordinator.commit("Express Wash", local(2026, 3, 3, 10), make_customer())
        assert second.id == "evt-2"

    def test_recheck_uses_live_calendar_not_stale_availability(
        self, coordinator, calendar, slot_generator
    ):
        offered = slot_generator.generate("Express Wash", now=NOW)
        assert TUESDAY_NINE in offered
        calendar.add_busy(local(2026, 3, 3, 8, 30), local(2026, 3, 3, 9, 30), "walk-in")
        with pytest.raises(ConflictError):
            coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())

    def test_recheck_reads_the_requested_window(self, coordinator, calendar):
        coordinator.commit("Full Detail", TUESDAY_NINE, make_customer())
        assert calendar.list_calls[0] == (TUESDAY_NINE, local(2026, 3, 3, 13))


class TestInvalidRequests:
    def test_past_start_rejected(self, calendar, slot_generator):
        coordinator = BookingCoordinator(
            calendar, slot_generator, "primary", clock=lambda: local(2026, 3, 4, 8)
        )
        with pytest.raises(InvalidBookingRequest, match="past"):
            coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())
        assert calendar.events == []

    def test_same_day_start_rejected(self, coordinator, calendar):
        with pytest.raises(InvalidBookingRequest, match="Same-day"):
            coordinator.commit("Express Wash", local(2026, 3, 2, 13), make_customer())
        assert calendar.events == []

    def test_last_horizon_day_accepted(self, coordinator):
        appointment = coordinator.commit("Express Wash", local(2026, 3, 16, 9), make_customer())
        assert appointment.start == local(2026, 3, 16, 9)

    def test_start_beyond_horizon_rejected(self, coordinator, calendar):
        with pytest.raises(InvalidBookingRequest, match="horizon"):
            coordinator.commit("Express Wash", local(2026, 3, 17, 9), make_customer())
        with pytest.raises(InvalidBookingRequest, match="horizon"):
            coordinator.commit("Express Wash", local(2031, 3, 4, 9), make_customer())
        assert calendar.list_calls == []
        assert calendar.events == []

    def test_weekend_rejected_before_calendar_is_read(self, coordinator, calendar):
        with pytest.raises(InvalidBookingRequest):
            coordinator.commit("Express Wash", local(2026, 3, 7, 9), make_customer())
        assert calendar.list_calls == []

    def test_past_closing_rejected(self, coordinator):
        with pytest.raises(InvalidBookingRequest):
            coordinator.commit("Full Detail", local(2026, 3, 3, 14), make_customer())


class TestUpstreamFailures:
    def test_calendar_read_failure(self, coordinator, calendar):
        calendar.fail = True
        with pytest.raises(UpstreamUnavailable):
            coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())

    def test_insert_failure_is_not_a_booking(self, coordinator, calendar, dispatcher):
        calendar.fail_insert = True
        with pytest.raises(UpstreamUnavailable):
            coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())
        assert dispatcher.sms == []

    def test_insert_without_id_is_not_a_booking(self, coordinator, calendar, profiles):
        calendar.insert_returns_no_id = True
        with pytest.raises(UpstreamUnavailable, match="no event id"):
            coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())
        assert profiles.merged == []


class TestSideEffects:
    def test_profile_merged(self, coordinator, profiles):
        coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())
        phone, summary = profiles.merged[0]
        assert phone == "9185550100"
        assert summary["appointment_id"] == "evt-1"
        assert summary["service"] == "Express Wash"
        assert summary["notes"] == "Standard booking"

    def test_confirmation_sent_and_reminder_queued(self, coordinator, notifications, dispatcher):
        coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())
        assert len(dispatcher.sms) == 1
        assert "is confirmed for Tuesday, March 3, 2026 at 9:00 AM" in dispatcher.sms[0][1]
        assert len(dispatcher.emails) == 1
        kinds = {task.kind for task in notifications.tasks_for("evt-1")}
        assert kinds == {KIND_CONFIRMATION, KIND_REMINDER}

    def test_profile_failure_does_not_fail_booking(
        self, calendar, slot_generator, notifications, dispatcher
    ):
        coordinator = BookingCoordinator(
            calendar,
            slot_generator,
            "primary",
            notifications=notifications,
            profiles=FakeProfileStore(fail=True),
            clock=lambda: NOW,
        )
        appointment = coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())
        assert appointment.id == "evt-1"
        assert len(dispatcher.sms) == 1

    def test_undelivered_confirmation_does_not_fail_booking(
        self, coordinator, dispatcher, notifications
    ):
        dispatcher.deliver = False
        appointment = coordinator.commit("Express Wash", TUESDAY_NINE, make_customer())
        assert appointment.id == "evt-1"
        confirmation = [t for t in notifications.tasks_for("evt-1") if t.kind == KIND_CONFIRMATION]
        assert confirmation[0].status == "pending"

    def test_works_without_side_effect_collaborators(self, calendar, slot_generator):
        coordinator = BookingCoordinator(calendar, slot_generator, "primary", clock=lambda: NOW)
        assert coordinator.commit("Express Wash", TUESDAY_NINE, make_customer()).id == "evt-1"
