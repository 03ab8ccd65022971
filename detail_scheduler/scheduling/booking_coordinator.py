"""
Booking commit with a check-then-insert against the live calendar.

The availability list a customer picked from may be stale by the time they
book. ``commit`` therefore re-reads the busy intervals around the requested
start, recomputes overlap on that fresh snapshot, and only then inserts the
event. The re-check and the insert run back to back under a lock and are
never reordered. The calendar store remains the final arbiter: a conflict it
reports, or an insert that yields no event id, is never reported as booked.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

import pytz

from detail_scheduler.clients.base import CalendarStore, CustomerProfileStore
from detail_scheduler.errors import (
    ConflictError,
    PartialFailure,
    UpstreamUnavailable,
)
from detail_scheduler.logging_context import get_request_logger
from detail_scheduler.schemas.booking_schema import Appointment, CustomerInfo
from detail_scheduler.scheduling.appointments import build_event
from detail_scheduler.scheduling.interval_index import IntervalIndex
from detail_scheduler.scheduling.reminders import NotificationQueue
from detail_scheduler.scheduling.slot_generator import SlotGenerator
from detail_scheduler.utils import normalize_phone

logger = get_request_logger(__name__)


class BookingCoordinator:
    """Validates and commits bookings against the calendar store."""

    def __init__(
        self,
        calendar: CalendarStore,
        slot_generator: SlotGenerator,
        resource_id: str,
        notifications: Optional[NotificationQueue] = None,
        profiles: Optional[CustomerProfileStore] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(pytz.utc),
    ) -> None:
        self._calendar = calendar
        self._slots = slot_generator
        self._resource_id = resource_id
        self._notifications = notifications
        self._profiles = profiles
        self._clock = clock
        self._lock = threading.Lock()

    def commit(self, service: str, requested_start: datetime, customer: CustomerInfo) -> Appointment:
        """
        Book ``service`` at ``requested_start`` for ``customer``.

        Returns:
            The confirmed appointment, whose id is the calendar event id.

        Raises:
            InvalidBookingRequest: The start breaks a business-hours rule, is in the past
                or falls outside the booking horizon.
            ConflictError: The slot is no longer free.
            UpstreamUnavailable: The calendar could not be read, or the insert
                failed or returned no event id.
        """
        duration = self._slots.duration_for(service)
        self._slots.check_rules(requested_start, duration, now=self._clock())

        end = requested_start + timedelta(minutes=duration)

        with self._lock:
            fresh = IntervalIndex.rebuild(self._calendar, self._resource_id, requested_start, end)
            conflicts = fresh.conflicts(requested_start, end)
            if conflicts:
                ids = [c.source_id for c in conflicts if c.source_id]
                logger.info(
                    "Booking conflict for %s at %s with %s",
                    service, requested_start.isoformat(), ids,
                )
                raise ConflictError(
                    f"{requested_start.isoformat()} is no longer available", conflicting_ids=ids
                )

            event = build_event(service, requested_start, duration, customer)
            event_id = self._calendar.insert_event(self._resource_id, event)
            if not event_id:
                raise UpstreamUnavailable("calendar", "insert returned no event id")

        appointment = Appointment(
            id=event_id,
            customer_name=customer.name,
            customer_phone=normalize_phone(customer.phone),
            customer_email=customer.email,
            service=service,
            start=requested_start,
            end=end,
            location=customer.address or "",
        )
        logger.info(
            "Booked %s for %s at %s (event %s)",
            service, customer.name, requested_start.isoformat(), event_id,
        )

        for failure in self._run_side_effects(appointment, customer):
            logger.warning("Booking side effect failed: %s", failure)
        return appointment

    # ------------------------------------------------------------------ #
    # Fire-and-forget side effects
    # ------------------------------------------------------------------ #

    def _run_side_effects(
        self, appointment: Appointment, customer: CustomerInfo
    ) -> list[PartialFailure]:
        """Run post-booking steps; each failure is collected, never raised."""
        steps: list[tuple[str, Callable[[], object]]] = []
        if self._profiles is not None:
            steps.append(("profile merge", lambda: self._merge_profile(appointment, customer)))
        if self._notifications is not None:
            notifications = self._notifications
            steps.append(("confirmation", lambda: notifications.queue_confirmation(appointment)))
            steps.append(
                ("reminder", lambda: notifications.schedule_day_before_reminder(appointment))
            )

        failures: list[PartialFailure] = []
        for step, action in steps:
            try:
                action()
            except Exception as exc:
                failures.append(PartialFailure(step, appointment.id, exc))
        return failures

    def _merge_profile(self, appointment: Appointment, customer: CustomerInfo) -> None:
        self._profiles.merge_appointment(
            appointment.customer_phone,
            {
                "appointment_id": appointment.id,
                "name": customer.name,
                "email": customer.email,
                "address": customer.address,
                "service": appointment.service,
                "date": appointment.start,
                "notes": customer.notes or "Standard booking",
            },
        )
