"""Error taxonomy shared by the scheduling and weather-alert pipelines.

Upstream I/O failures are translated into one of these kinds at the
component boundary. None of them is ever answered with synthetic data.
"""

from typing import Optional

AVAILABILITY_UNAVAILABLE_MESSAGE = (
    "Scheduling is temporarily unavailable. Please contact support to schedule."
)
BOOKING_UNAVAILABLE_MESSAGE = (
    "We couldn't confirm your booking right now. Please try again or contact support."
)
SLOT_TAKEN_MESSAGE = "That time was just taken. Please pick another time."


class SchedulingError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(SchedulingError, ValueError):
    """Missing or invalid configuration. Fatal at startup."""


class UpstreamUnavailable(SchedulingError):
    """A calendar, forecast or notification call failed or timed out."""

    def __init__(self, service: str, detail: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"{service} unavailable: {detail}")
        self.service = service
        self.detail = detail
        self.cause = cause


class ConflictError(SchedulingError):
    """The requested slot is no longer free at commit time."""

    def __init__(self, message: str, conflicting_ids: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.conflicting_ids = conflicting_ids or []


class PartialFailure(SchedulingError):
    """A post-booking side effect failed after the booking succeeded."""

    def __init__(self, step: str, appointment_id: str, cause: BaseException) -> None:
        super().__init__(f"{step} failed for appointment {appointment_id}: {cause}")
        self.step = step
        self.appointment_id = appointment_id
        self.cause = cause


class InvalidBookingRequest(SchedulingError, ValueError):
    """The requested start can never be booked under the business rules."""
