"""Shared test fixtures, in-memory collaborators and builders."""

from datetime import datetime, timedelta
from typing import Any, Optional

import pytest
import pytz

from detail_scheduler.clients.base import DeliveryResult
from detail_scheduler.database import create_db_engine, create_session_factory
from detail_scheduler.errors import UpstreamUnavailable
from detail_scheduler.schemas.booking_schema import CustomerInfo
from detail_scheduler.scheduling.appointments import build_event
from detail_scheduler.scheduling.services import ServiceDurationTable
from detail_scheduler.scheduling.slot_generator import BookingRules, SlotGenerator

CHICAGO = pytz.timezone("America/Chicago")

# Monday 2026-03-02 08:00 local; the horizon starts on Tuesday the 3rd.
NOW = CHICAGO.localize(datetime(2026, 3, 2, 8, 0))


def local(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return CHICAGO.localize(datetime(year, month, day, hour, minute))


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeCalendarStore:
    """Calendar store holding event dicts in memory."""

    def __init__(self, events: Optional[list[dict[str, Any]]] = None) -> None:
        self.events: list[dict[str, Any]] = list(events or [])
        self.fail = False
        self.fail_insert = False
        self.insert_returns_no_id = False
        self.list_calls: list[tuple[datetime, datetime]] = []
        self._next_id = 1

    def list_events(self, resource_id, time_min, time_max):
        self.list_calls.append((time_min, time_max))
        if self.fail:
            raise UpstreamUnavailable("calendar", "simulated outage")
        selected = []
        for event in self.events:
            start, end = event.get("start"), event.get("end")
            if start is None or end is None or (start < time_max and end > time_min):
                selected.append(dict(event))
        return selected

    def list_busy_intervals(self, resource_id, time_min, time_max):
        return [
            {"start": e.get("start"), "end": e.get("end"), "source_id": e.get("id")}
            for e in self.list_events(resource_id, time_min, time_max)
        ]

    def insert_event(self, resource_id, event):
        if self.fail_insert:
            raise UpstreamUnavailable("calendar", "simulated insert failure")
        if self.insert_returns_no_id:
            return None
        event_id = f"evt-{self._next_id}"
        self._next_id += 1
        self.events.append({"id": event_id, **event})
        return event_id

    def add_busy(self, start: datetime, end: Optional[datetime], event_id: str = "busy") -> None:
        self.events.append({"id": event_id, "summary": "Busy", "start": start, "end": end})


class FakeForecastProvider:
    """Emits one hourly sample per hour of the requested window.

    ``chances`` are consumed in order; the last value repeats.
    """

    def __init__(
        self,
        chances: Optional[list[float]] = None,
        condition: str = "",
        temperature: float = 70.0,
        error: Optional[BaseException] = None,
    ) -> None:
        self.chances = chances if chances is not None else [0]
        self.condition = condition
        self.temperature = temperature
        self.error = error
        self.calls: list[tuple[float, float, datetime, datetime]] = []

    def get_forecast(self, latitude, longitude, time_min, time_max):
        self.calls.append((latitude, longitude, time_min, time_max))
        if self.error is not None:
            raise self.error
        samples = []
        hour = time_min.replace(minute=0, second=0, microsecond=0)
        index = 0
        while hour < time_max and self.chances:
            samples.append({
                "timestamp": hour,
                "chance_of_rain_percent": self.chances[min(index, len(self.chances) - 1)],
                "temperature_f": self.temperature,
                "condition_text": self.condition,
            })
            hour += timedelta(hours=1)
            index += 1
        return samples


class FakeDispatcher:
    """Records every send; can refuse delivery or blow up for a phone."""

    def __init__(self, deliver: bool = True) -> None:
        self.deliver = deliver
        self.raise_for_phone: Optional[str] = None
        self.sms: list[tuple[str, str]] = []
        self.emails: list[tuple[str, str, str]] = []

    def send_sms(self, phone, body):
        if self.raise_for_phone and phone == self.raise_for_phone:
            raise RuntimeError("dispatcher exploded")
        self.sms.append((phone, body))
        if self.deliver:
            return DeliveryResult(delivered=True)
        return DeliveryResult(delivered=False, error="carrier rejected")

    def send_email(self, address, subject, body):
        self.emails.append((address, subject, body))
        if self.deliver:
            return DeliveryResult(delivered=True)
        return DeliveryResult(delivered=False, error="mailbox unavailable")


class FakeProfileStore:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.merged: list[tuple[str, dict[str, Any]]] = []

    def merge_appointment(self, phone, summary):
        if self.fail:
            raise RuntimeError("profile store down")
        self.merged.append((phone, summary))


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_customer(
    name: str = "Jane Doe",
    phone: str = "(918) 555-0100",
    email: Optional[str] = "jane@example.com",
    address: Optional[str] = "123 Main St, Tulsa OK",
    notes: Optional[str] = None,
) -> CustomerInfo:
    return CustomerInfo(name=name, phone=phone, email=email, address=address, notes=notes)


def make_booked_event(
    event_id: str,
    start: datetime,
    service: str = "Express Wash",
    duration_minutes: int = 60,
    customer: Optional[CustomerInfo] = None,
) -> dict[str, Any]:
    """A calendar event as the booking path writes it."""
    event = build_event(service, start, duration_minutes, customer or make_customer())
    event["id"] = event_id
    return event


@pytest.fixture
def rules():
    return BookingRules()


@pytest.fixture
def durations():
    return ServiceDurationTable.from_catalog()


@pytest.fixture
def calendar():
    return FakeCalendarStore()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def slot_generator(calendar, durations, rules):
    return SlotGenerator(calendar, durations, rules, resource_id="primary")


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite:///:memory:")
    factory = create_session_factory(engine)
    yield factory
    engine.dispose()
