"""Hourly forecast client for the Open-Meteo API."""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

import httpx
import pytz

from detail_scheduler.config import WeatherConfig
from detail_scheduler.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

# WMO weather interpretation codes
WMO_CONDITIONS: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow fall",
    73: "Moderate snow fall",
    75: "Heavy snow fall",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}

HOURLY_FIELDS = "precipitation_probability,temperature_2m,weather_code"
_HOUR_FORMAT = "%Y-%m-%dT%H:%M"


def condition_for_code(code: Optional[int]) -> str:
    if code is None:
        return ""
    return WMO_CONDITIONS.get(int(code), f"Weather code {code}")


class OpenMeteoForecastClient:
    """Forecast provider returning hourly samples in Fahrenheit."""

    def __init__(
        self,
        config: WeatherConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._client = httpx.Client(timeout=config.timeout_sec, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "OpenMeteoForecastClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def get_forecast(
        self, latitude: float, longitude: float, time_min: datetime, time_max: datetime
    ) -> list[dict[str, Any]]:
        start_hour = time_min.astimezone(pytz.utc).replace(minute=0, second=0, microsecond=0)
        end_hour = time_max.astimezone(pytz.utc)
        if end_hour > end_hour.replace(minute=0, second=0, microsecond=0):
            end_hour = end_hour.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)

        params = {
            "latitude": latitude,
            "longitude": longitude,
            "hourly": HOURLY_FIELDS,
            "temperature_unit": "fahrenheit",
            "timezone": "UTC",
            "start_hour": start_hour.strftime(_HOUR_FORMAT),
            "end_hour": end_hour.strftime(_HOUR_FORMAT),
        }
        try:
            response = self._client.get(self._config.forecast_url, params=params)
        except httpx.HTTPError as exc:
            logger.error("Forecast request failed: %s", exc)
            raise UpstreamUnavailable("forecast", "request failed", exc) from exc

        if response.status_code != 200:
            logger.error("Forecast request returned status %d", response.status_code)
            raise UpstreamUnavailable("forecast", f"returned {response.status_code}")

        try:
            hourly = response.json()["hourly"]
            times = hourly["time"]
            chances = hourly["precipitation_probability"]
            temperatures = hourly["temperature_2m"]
            codes = hourly.get("weather_code") or [None] * len(times)
        except (ValueError, KeyError, TypeError) as exc:
            raise UpstreamUnavailable("forecast", "malformed response", exc) from exc

        samples = []
        for stamp, chance, temperature, code in zip(times, chances, temperatures, codes):
            if chance is None or temperature is None:
                continue
            samples.append({
                "timestamp": pytz.utc.localize(datetime.strptime(stamp, _HOUR_FORMAT)),
                "chance_of_rain_percent": float(chance),
                "temperature_f": float(temperature),
                "condition_text": condition_for_code(code),
            })
        logger.debug("Forecast returned %d hourly samples", len(samples))
        return samples
