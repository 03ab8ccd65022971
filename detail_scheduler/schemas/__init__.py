from detail_scheduler.schemas.booking_schema import (
    Appointment,
    AvailabilityResponse,
    BookingRequest,
    BookingResponse,
    CustomerInfo,
)
from detail_scheduler.schemas.weather_schema import (
    ForecastSample,
    RiskLevel,
    WeatherRiskAssessment,
)

__all__ = [
    "Appointment", "AvailabilityResponse", "BookingRequest", "BookingResponse",
    "CustomerInfo", "ForecastSample", "RiskLevel", "WeatherRiskAssessment",
]
