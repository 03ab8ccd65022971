"""
Weather risk scoring for an appointment's working window.

Each hourly forecast sample gets its own severity from its chance of rain
and its precipitation type. The window's risk is the worst sample, never
an average: one severe hour makes the whole appointment severe.

When the forecast cannot be fetched the assessment is UNKNOWN. It is never
reported as safe.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from detail_scheduler.clients.base import ForecastProvider
from detail_scheduler.errors import UpstreamUnavailable
from detail_scheduler.schemas.weather_schema import (
    ForecastSample,
    RiskLevel,
    WeatherRiskAssessment,
    max_risk,
    raise_level,
)

logger = logging.getLogger(__name__)

Coordinates = tuple[float, float]

# (minimum chance of rain %, level), checked top-down
RAIN_THRESHOLDS: list[tuple[float, RiskLevel]] = [
    (80, RiskLevel.SEVERE),
    (60, RiskLevel.VERY_HIGH),
    (25, RiskLevel.HIGH),
    (15, RiskLevel.MODERATE),
    (5, RiskLevel.LOW),
]

RAINY_CHANCE_PERCENT = 50
HAZARD_MIN_CHANCE_PERCENT = 15

RAIN_KEYWORDS = ("rain", "shower", "drizzle", "storm", "thunder", "sleet", "snow", "hail")
HAZARD_KEYWORDS = ("thunder", "hail", "freezing", "sleet", "snow", "ice")

RECOMMENDATIONS: dict[RiskLevel, str] = {
    RiskLevel.NONE: "Weather looks clear for this appointment. No action needed.",
    RiskLevel.LOW: "A slight chance of rain. No action needed.",
    RiskLevel.MODERATE: (
        "A moderate chance of rain is forecasted. Service can go ahead, but exterior "
        "work may be affected."
    ),
    RiskLevel.HIGH: (
        "A high chance of rain is forecasted. Consider rescheduling for better results."
    ),
    RiskLevel.VERY_HIGH: (
        "A very high chance of rain is forecasted. We recommend rescheduling."
    ),
    RiskLevel.SEVERE: (
        "Severe weather is forecasted and will almost certainly prevent detailing work. "
        "We strongly recommend rescheduling."
    ),
    RiskLevel.UNKNOWN: (
        "Forecast unavailable. Weather risk could not be assessed; review manually."
    ),
}


def classify_chance(chance_of_rain_percent: float) -> RiskLevel:
    for threshold, level in RAIN_THRESHOLDS:
        if chance_of_rain_percent >= threshold:
            return level
    return RiskLevel.NONE


def classify_sample(chance_of_rain_percent: float, condition_text: str = "") -> RiskLevel:
    """Severity of one hourly sample.

    Hazardous precipitation (thunderstorms, hail, freezing rain, sleet, snow)
    raises the rain-chance level by one step once the chance is meaningful.
    """
    level = classify_chance(chance_of_rain_percent)
    condition = condition_text.lower()
    if (
        chance_of_rain_percent >= HAZARD_MIN_CHANCE_PERCENT
        and any(word in condition for word in HAZARD_KEYWORDS)
    ):
        level = raise_level(level)
    return level


def is_rainy(chance_of_rain_percent: float, condition_text: str = "") -> bool:
    condition = condition_text.lower()
    return chance_of_rain_percent >= RAINY_CHANCE_PERCENT or any(
        word in condition for word in RAIN_KEYWORDS
    )


class WeatherRiskEvaluator:
    """Maps a forecast window to a risk level and a recommendation."""

    def __init__(
        self,
        forecasts: ForecastProvider,
        default_coordinates: Coordinates,
        lookahead_hours: int = 4,
    ) -> None:
        self._forecasts = forecasts
        self._default_coordinates = default_coordinates
        self._lookahead = timedelta(hours=lookahead_hours)

    def resolve_coordinates(self, location: Union[str, Coordinates, None]) -> Coordinates:
        """Coordinates pass through; addresses resolve to the service-area centre."""
        if isinstance(location, tuple):
            return location
        return self._default_coordinates

    def window_for(
        self, appointment_start: datetime, duration_minutes: Optional[int] = None
    ) -> tuple[datetime, datetime]:
        if duration_minutes:
            return appointment_start, appointment_start + timedelta(minutes=duration_minutes)
        return appointment_start, appointment_start + self._lookahead

    def evaluate(
        self,
        location: Union[str, Coordinates, None],
        appointment_start: datetime,
        duration_minutes: Optional[int] = None,
    ) -> WeatherRiskAssessment:
        """Assess the weather risk of the appointment's working window."""
        latitude, longitude = self.resolve_coordinates(location)
        window_start, window_end = self.window_for(appointment_start, duration_minutes)

        try:
            raw = self._forecasts.get_forecast(latitude, longitude, window_start, window_end)
        except UpstreamUnavailable as exc:
            logger.warning(
                "Forecast unavailable for %s: %s", appointment_start.isoformat(), exc
            )
            return self._unknown(str(exc))
        except Exception as exc:
            logger.exception("Forecast provider failed for %s", appointment_start.isoformat())
            return self._unknown(f"forecast provider error: {exc}")

        # Hourly samples cover the hour they start; keep the one already
        # under way when the window opens.
        first_hour = window_start.replace(minute=0, second=0, microsecond=0)
        try:
            samples = [
                self._to_sample(item)
                for item in raw
                if first_hour <= item["timestamp"] < window_end
            ]
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "Malformed forecast sample for %s: %r", appointment_start.isoformat(), exc
            )
            return self._unknown("malformed forecast sample")
        samples.sort(key=lambda s: s.timestamp)

        if not samples:
            logger.warning(
                "Forecast returned no samples for %s..%s",
                window_start.isoformat(), window_end.isoformat(),
            )
            return self._unknown("no forecast samples in appointment window")

        level = max_risk([s.severity for s in samples])
        return WeatherRiskAssessment(
            risk_level=level,
            recommendation=RECOMMENDATIONS[level],
            forecast_samples=samples,
        )

    @staticmethod
    def _to_sample(item: dict[str, Any]) -> ForecastSample:
        chance = float(item["chance_of_rain_percent"])
        condition = item.get("condition_text") or ""
        return ForecastSample(
            timestamp=item["timestamp"],
            chance_of_rain_percent=chance,
            temperature=float(item["temperature_f"]),
            is_rainy=is_rainy(chance, condition),
            condition=condition,
            severity=classify_sample(chance, condition),
        )

    @staticmethod
    def _unknown(error: str) -> WeatherRiskAssessment:
        return WeatherRiskAssessment(
            risk_level=RiskLevel.UNKNOWN,
            recommendation=RECOMMENDATIONS[RiskLevel.UNKNOWN],
            error=error,
        )
