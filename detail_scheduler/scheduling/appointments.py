"""Translate between appointments and calendar events.

Events written by the booking path carry their contact details in the
description, one ``Label: value`` per line, and use ``"<service> - <name>"``
as the summary. The weather sweep reads them back the same way.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Optional

from detail_scheduler.schemas.booking_schema import Appointment, CustomerInfo
from detail_scheduler.utils import normalize_phone

logger = logging.getLogger(__name__)

SUMMARY_SEPARATOR = " - "
UNKNOWN_SERVICE = "Unknown Service"
UNKNOWN_CUSTOMER = "Unknown Customer"

_FIELD_PATTERN = r"^{label}:[ \t]*(.+?)[ \t]*$"


def _description_field(description: str, label: str) -> Optional[str]:
    match = re.search(_FIELD_PATTERN.format(label=re.escape(label)), description, re.MULTILINE)
    return match.group(1) if match else None


def build_event(
    service: str,
    start: datetime,
    duration_minutes: int,
    customer: CustomerInfo,
) -> dict[str, Any]:
    """Calendar event body for a new booking."""
    lines = [f"Service: {service}", f"Phone: {normalize_phone(customer.phone)}"]
    if customer.email:
        lines.append(f"Email: {customer.email}")
    if customer.address:
        lines.append(f"Address: {customer.address}")
    if customer.notes:
        lines.append(f"Notes: {customer.notes}")
    return {
        "summary": f"{service}{SUMMARY_SEPARATOR}{customer.name}",
        "description": "\n".join(lines),
        "start": start,
        "end": start + timedelta(minutes=duration_minutes),
        "location": customer.address or "",
    }


def parse_event(event: dict[str, Any], default_location: str = "") -> Optional[Appointment]:
    """Read an appointment back from a calendar event.

    Returns None for events that cannot be alerted on: no id, no timed
    start, or no customer phone number.
    """
    event_id = event.get("id")
    start = event.get("start")
    if not event_id or start is None:
        logger.debug("Skipping calendar event %r without id or timed start", event_id)
        return None

    description = event.get("description") or ""
    raw_phone = _description_field(description, "Phone")
    phone = normalize_phone(raw_phone) if raw_phone else ""
    if not phone:
        logger.debug("Skipping calendar event %s without a phone number", event_id)
        return None

    summary = event.get("summary") or ""
    # Service names may contain the separator themselves ("Ceramic Coating - 1 Year").
    service_part, separator, name_part = summary.rpartition(SUMMARY_SEPARATOR)
    if not separator:
        service_part, name_part = summary, ""
    service = service_part.strip() or _description_field(description, "Service") or UNKNOWN_SERVICE
    customer_name = name_part.strip() or UNKNOWN_CUSTOMER

    location = (
        event.get("location")
        or _description_field(description, "Address")
        or default_location
    )

    return Appointment(
        id=event_id,
        customer_name=customer_name,
        customer_phone=phone,
        customer_email=_description_field(description, "Email"),
        service=service,
        start=start,
        end=event.get("end"),
        location=location,
    )
