"""Interfaces of the external collaborators consumed by the scheduling core.

Calendar events crossing these seams are plain dicts with aware datetimes:

    {"id", "summary", "description", "location", "start", "end"}

``start``/``end`` are ``None`` when the source event has no timed endpoint
(all-day events, malformed data).
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single SMS or email send."""

    delivered: bool
    error: Optional[str] = None


class CalendarStore(Protocol):
    def list_events(
        self, resource_id: str, time_min: datetime, time_max: datetime
    ) -> list[dict[str, Any]]:
        """Confirmed events intersecting ``[time_min, time_max)``."""
        ...

    def list_busy_intervals(
        self, resource_id: str, time_min: datetime, time_max: datetime
    ) -> list[dict[str, Any]]:
        """``{"start", "end", "source_id"}`` for each event in the window."""
        ...

    def insert_event(self, resource_id: str, event: dict[str, Any]) -> Optional[str]:
        """Insert an event and return its id, or ``None`` if none was issued."""
        ...


class ForecastProvider(Protocol):
    def get_forecast(
        self, latitude: float, longitude: float, time_min: datetime, time_max: datetime
    ) -> list[dict[str, Any]]:
        """Hourly ``{"timestamp", "chance_of_rain_percent", "temperature_f", "condition_text"}``."""
        ...


class NotificationDispatcher(Protocol):
    def send_sms(self, phone: str, body: str) -> DeliveryResult:
        ...

    def send_email(self, address: str, subject: str, body: str) -> DeliveryResult:
        ...


class CustomerProfileStore(Protocol):
    def merge_appointment(self, phone: str, summary: dict[str, Any]) -> None:
        ...
