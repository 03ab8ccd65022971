"""Customer profile models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ServiceHistoryEntry(BaseModel):
    """One booked service in a customer's history."""
    appointment_id: str
    service: str
    date: datetime
    notes: str = ""


class CustomerProfile(BaseModel):
    """Customer record kept by the profile store."""
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    last_interaction: Optional[datetime] = None
    service_history: list[ServiceHistoryEntry] = Field(default_factory=list)
