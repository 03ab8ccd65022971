"""
In-process customer profile store.

Profiles are keyed by normalized phone number. A production deployment
would back this with a CRM or spreadsheet; bookings only ever merge into it,
so its failures never affect a booking.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Optional

import pytz

from detail_scheduler.schemas.customer_schema import CustomerProfile, ServiceHistoryEntry
from detail_scheduler.utils import normalize_phone

logger = logging.getLogger(__name__)


class InMemoryCustomerProfileStore:
    """Customer profiles with their service history."""

    def __init__(self, profiles: Optional[list[CustomerProfile]] = None) -> None:
        self._profiles: dict[str, CustomerProfile] = {}
        self._lock = threading.Lock()
        for profile in profiles or []:
            self._profiles[normalize_phone(profile.phone)] = profile

    def lookup(self, phone: str) -> Optional[CustomerProfile]:
        """Look up a customer by phone number. Returns None if not found."""
        profile = self._profiles.get(normalize_phone(phone))
        if profile:
            logger.debug("Returning customer found: %s", profile.name)
        return profile

    def merge_appointment(self, phone: str, summary: dict[str, Any]) -> None:
        """Create or update the profile for ``phone`` and append the booking to its history."""
        cleaned = normalize_phone(phone)
        entry = ServiceHistoryEntry(
            appointment_id=summary["appointment_id"],
            service=summary["service"],
            date=summary["date"],
            notes=summary.get("notes") or "",
        )
        with self._lock:
            profile = self._profiles.get(cleaned)
            if profile is None:
                profile = CustomerProfile(name=summary.get("name") or "", phone=cleaned)
                logger.info("New customer created: %s (%s)", profile.name, cleaned)

            history = [h for h in profile.service_history if h.appointment_id != entry.appointment_id]
            history.append(entry)
            self._profiles[cleaned] = profile.model_copy(update={
                "name": summary.get("name") or profile.name,
                "email": summary.get("email") or profile.email,
                "address": summary.get("address") or profile.address,
                "last_interaction": datetime.now(pytz.utc),
                "service_history": history,
            })

    def __len__(self) -> int:
        return len(self._profiles)
