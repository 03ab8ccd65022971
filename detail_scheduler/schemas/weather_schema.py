"""Weather risk models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RiskLevel(str, Enum):
    """Discrete weather risk for an appointment window.

    ``UNKNOWN`` means the forecast could not be obtained. It has no rank
    and is never treated as safe or as an escalation.
    """
    NONE = "none"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very-high"
    SEVERE = "severe"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        if self is RiskLevel.UNKNOWN:
            raise ValueError("unknown risk has no rank")
        return _RISK_ORDER.index(self)

    @property
    def is_known(self) -> bool:
        return self is not RiskLevel.UNKNOWN

    @property
    def is_alertable(self) -> bool:
        return self in ALERT_LEVELS


_RISK_ORDER: list[RiskLevel] = [
    RiskLevel.NONE,
    RiskLevel.LOW,
    RiskLevel.MODERATE,
    RiskLevel.HIGH,
    RiskLevel.VERY_HIGH,
    RiskLevel.SEVERE,
]

ALERT_LEVELS: frozenset[RiskLevel] = frozenset(
    {RiskLevel.MODERATE, RiskLevel.HIGH, RiskLevel.VERY_HIGH, RiskLevel.SEVERE}
)


def max_risk(levels: list[RiskLevel]) -> RiskLevel:
    """Worst of the known levels; NONE for an empty list."""
    known = [level for level in levels if level.is_known]
    if not known:
        return RiskLevel.NONE
    return max(known, key=lambda level: level.rank)


def raise_level(level: RiskLevel, steps: int = 1) -> RiskLevel:
    """Move a known level up by ``steps``, capped at SEVERE."""
    index = min(level.rank + steps, len(_RISK_ORDER) - 1)
    return _RISK_ORDER[index]


class ForecastSample(BaseModel):
    """One hourly forecast point inside the appointment window."""
    timestamp: datetime
    chance_of_rain_percent: float
    temperature: float
    is_rainy: bool
    condition: str = ""
    severity: RiskLevel = RiskLevel.NONE


class WeatherRiskAssessment(BaseModel):
    """Result of evaluating one appointment window."""
    risk_level: RiskLevel
    recommendation: str
    forecast_samples: list[ForecastSample] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_unknown(self) -> bool:
        return self.risk_level is RiskLevel.UNKNOWN

    @property
    def needs_alert(self) -> bool:
        return self.risk_level.is_alertable

    @property
    def needs_reschedule(self) -> bool:
        return self.risk_level.is_known and self.risk_level.rank >= RiskLevel.HIGH.rank

    @property
    def mean_chance_of_rain(self) -> Optional[float]:
        if not self.forecast_samples:
            return None
        return sum(s.chance_of_rain_percent for s in self.forecast_samples) / len(
            self.forecast_samples
        )

    @property
    def mean_temperature(self) -> Optional[float]:
        if not self.forecast_samples:
            return None
        return sum(s.temperature for s in self.forecast_samples) / len(self.forecast_samples)
