"""Service catalog with durations, and the duration table used for slot math."""

import logging
from typing import Optional

from detail_scheduler.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "default"

SERVICE_CATALOG: dict[str, dict] = {
    "Full Detail": {
        "description": "Complete interior and exterior detail.",
        "duration_minutes": 240,
    },
    "Interior Only": {
        "description": "Vacuum, shampoo, leather and surface treatment inside the vehicle.",
        "duration_minutes": 180,
    },
    "Interior Detail": {
        "description": "Vacuum, shampoo, leather and surface treatment inside the vehicle.",
        "duration_minutes": 180,
    },
    "Exterior Only": {
        "description": "Hand wash, decontamination and sealant.",
        "duration_minutes": 90,
    },
    "Express Wash": {
        "description": "Quick exterior wash and dry.",
        "duration_minutes": 60,
    },
    "Premium Wash": {
        "description": "Exterior wash with tire shine and spray wax.",
        "duration_minutes": 60,
    },
    "Shampoo seats & or Carpets": {
        "description": "Hot-water extraction of seats and carpets.",
        "duration_minutes": 90,
    },
    "Motorcycle Detail": {
        "description": "Full motorcycle clean and protect.",
        "duration_minutes": 120,
    },
    "Maintenance Detail Program": {
        "description": "Recurring upkeep detail for program members.",
        "duration_minutes": 150,
    },
    "Paint Enhancement / Light Polish": {
        "description": "Single-stage machine polish.",
        "duration_minutes": 180,
    },
    "Ceramic Coating": {
        "description": "Paint correction and ceramic coating.",
        "duration_minutes": 480,
    },
    "Ceramic Coating - 1 Year": {
        "description": "One-year ceramic coating package.",
        "duration_minutes": 480,
    },
    "Ceramic Coating - 3 Year": {
        "description": "Three-year ceramic coating package.",
        "duration_minutes": 720,
    },
}

DEFAULT_DURATION_MINUTES = 120


def catalog_durations() -> dict[str, int]:
    """Duration table built from the catalog, including the default entry."""
    durations = {name: info["duration_minutes"] for name, info in SERVICE_CATALOG.items()}
    durations[DEFAULT_SERVICE] = DEFAULT_DURATION_MINUTES
    return durations


class ServiceDurationTable:
    """Service name -> duration in minutes with a mandatory default.

    Lookups are case-insensitive and never fail: unknown services get the
    default duration. Malformed entries are dropped when the table is built.
    """

    def __init__(self, durations: dict[str, object]) -> None:
        cleaned: dict[str, int] = {}
        for name, minutes in durations.items():
            if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
                logger.warning("Ignoring malformed duration for %r: %r", name, minutes)
                continue
            cleaned[name.strip().lower()] = minutes

        if DEFAULT_SERVICE not in cleaned:
            raise ConfigurationError(
                f"Service duration table needs a valid '{DEFAULT_SERVICE}' entry"
            )
        self._durations = cleaned
        self._display_names = {name.strip().lower(): name.strip() for name in durations}

    @classmethod
    def from_catalog(cls) -> "ServiceDurationTable":
        return cls(catalog_durations())

    @property
    def default_minutes(self) -> int:
        return self._durations[DEFAULT_SERVICE]

    def minutes_for(self, service: Optional[str]) -> int:
        """Duration for ``service``, falling back to the default entry."""
        if service:
            minutes = self._durations.get(service.strip().lower())
            if minutes is not None:
                return minutes
        logger.debug("No duration for service %r, using default", service)
        return self.default_minutes

    def knows(self, service: str) -> bool:
        key = service.strip().lower()
        return key != DEFAULT_SERVICE and key in self._durations

    def canonical_name(self, service: str) -> str:
        """Catalog spelling of ``service`` when known, else the input trimmed."""
        return self._display_names.get(service.strip().lower(), service.strip())

    def services(self) -> list[str]:
        """All named services, excluding the default entry."""
        return [
            self._display_names[key] for key in self._durations if key != DEFAULT_SERVICE
        ]
