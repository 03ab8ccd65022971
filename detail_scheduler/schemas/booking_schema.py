"""Booking and availability data models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CustomerInfo(BaseModel):
    """Contact details supplied with a booking request."""
    name: str = Field(min_length=1)
    phone: str = Field(min_length=7)
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("name", "phone")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class Appointment(BaseModel):
    """A confirmed appointment backed by a calendar event."""
    model_config = ConfigDict(frozen=True)

    id: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    service: str
    start: datetime
    end: Optional[datetime] = None
    location: str = ""


class BookingRequest(BaseModel):
    """Validated POST /booking body."""
    service: str = Field(min_length=1)
    start: datetime
    customer: CustomerInfo


class BookingResponse(BaseModel):
    """Booking commit result."""
    success: bool
    message: str
    appointment_id: Optional[str] = None
    confirmed_start: Optional[datetime] = None


class AvailabilityResponse(BaseModel):
    """Ordered bookable start times for a service."""
    success: bool
    service: str
    duration_minutes: int = 0
    slots: list[str] = Field(default_factory=list)
    message: str = ""


class SweepResponse(BaseModel):
    """Counts reported by the weather sweep trigger."""
    checked: int
    alerts_sent: int


class ErrorResponse(BaseModel):
    """Body returned with 4xx/5xx responses."""
    success: bool = False
    message: str
    error: str
