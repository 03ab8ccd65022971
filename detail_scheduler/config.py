"""
Centralized configuration with environment variable overrides.

Business hours, upstream endpoints, timeouts and sweep pacing are all
configurable here. Nothing is hardcoded in scheduling or alerting logic.
"""

import logging
import os
from dataclasses import dataclass, field

import pytz
from dotenv import load_dotenv

from detail_scheduler.errors import ConfigurationError
from detail_scheduler.logging_context import RequestIdFilter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ConfigurationError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ConfigurationError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_int_list(env_var: str, default: str) -> tuple[int, ...]:
    """Parse a comma-separated list of integers, e.g. ``"5,6"``."""
    raw = os.getenv(env_var, default)
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except (ValueError, TypeError):
        raise ConfigurationError(
            f"Invalid integer list for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Business identity and booking-window rules."""

    name: str = os.getenv("BUSINESS_NAME", "Clean Machine Auto Detail")
    phone: str = os.getenv("BUSINESS_PHONE", "(918) 856-5304")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "America/Chicago")
    booking_url: str = os.getenv("BUSINESS_BOOKING_URL", "https://cleanmachine.app/schedule")
    booking_start_hour: int = _safe_int("BOOKING_START_HOUR", "9")
    booking_end_hour: int = _safe_int("BOOKING_END_HOUR", "15")
    lunch_hour: int = _safe_int("LUNCH_HOUR", "12")
    closing_hour: int = _safe_int("CLOSING_HOUR", "17")
    non_working_days: tuple[int, ...] = _safe_int_list("NON_WORKING_DAYS", "5,6")
    horizon_days: int = _safe_int("BOOKING_HORIZON_DAYS", "14")
    half_hour_max_minutes: int = _safe_int("HALF_HOUR_MAX_MINUTES", "90")
    reminder_hour: int = _safe_int("REMINDER_HOUR", "16")


@dataclass(frozen=True)
class CalendarConfig:
    """Google Calendar access settings."""

    calendar_id: str = os.getenv("GOOGLE_CALENDAR_ID", "primary")
    api_base: str = os.getenv("GOOGLE_CALENDAR_API", "https://www.googleapis.com/calendar/v3")
    token_url: str = os.getenv("GOOGLE_TOKEN_URL", "https://oauth2.googleapis.com/token")
    client_id: str = os.getenv("GOOGLE_CLIENT_ID", "")
    client_secret: str = os.getenv("GOOGLE_CLIENT_SECRET", "")
    refresh_token: str = os.getenv("GOOGLE_REFRESH_TOKEN", "")
    timeout_sec: float = _safe_float("CALENDAR_TIMEOUT", "10.0")


@dataclass(frozen=True)
class WeatherConfig:
    """Forecast provider and weather sweep settings."""

    forecast_url: str = os.getenv("FORECAST_API_URL", "https://api.open-meteo.com/v1/forecast")
    latitude: float = _safe_float("SERVICE_AREA_LATITUDE", "36.1236407")
    longitude: float = _safe_float("SERVICE_AREA_LONGITUDE", "-95.9359214")
    lookahead_hours: int = _safe_int("WEATHER_LOOKAHEAD_HOURS", "4")
    sweep_days: int = _safe_int("WEATHER_SWEEP_DAYS", "4")
    pacing_sec: float = _safe_float("WEATHER_PACING_SECONDS", "0.5")
    timeout_sec: float = _safe_float("FORECAST_TIMEOUT", "10.0")


@dataclass(frozen=True)
class NotificationConfig:
    """SMS (Twilio) and email (Resend) delivery settings."""

    twilio_account_sid: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    twilio_auth_token: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    twilio_from_number: str = os.getenv("TWILIO_PHONE_NUMBER", "")
    twilio_api_base: str = os.getenv("TWILIO_API_BASE", "https://api.twilio.com/2010-04-01")
    resend_api_key: str = os.getenv("RESEND_API_KEY", "")
    email_from: str = os.getenv(
        "EMAIL_FROM_ADDRESS", "Clean Machine Auto Detail <noreply@cleanmachine.app>"
    )
    timeout_sec: float = _safe_float("NOTIFICATION_TIMEOUT", "10.0")
    max_attempts: int = _safe_int("NOTIFICATION_MAX_ATTEMPTS", "3")


@dataclass(frozen=True)
class DatabaseConfig:
    """Storage for alert records and scheduled notifications."""

    url: str = os.getenv("DATABASE_URL", "sqlite:///detail_scheduler.db")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    weather: WeatherConfig = field(default_factory=WeatherConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    business = config.business
    for hour_name, hour_value in [
        ("BOOKING_START_HOUR", business.booking_start_hour),
        ("BOOKING_END_HOUR", business.booking_end_hour),
        ("LUNCH_HOUR", business.lunch_hour),
        ("CLOSING_HOUR", business.closing_hour),
        ("REMINDER_HOUR", business.reminder_hour),
    ]:
        if not 0 <= hour_value <= 23:
            raise ConfigurationError(f"{hour_name} must be between 0 and 23, got {hour_value}")

    if business.booking_start_hour >= business.booking_end_hour:
        raise ConfigurationError(
            "BOOKING_START_HOUR must be before BOOKING_END_HOUR, "
            f"got {business.booking_start_hour} >= {business.booking_end_hour}"
        )
    if business.booking_end_hour > business.closing_hour:
        raise ConfigurationError(
            f"BOOKING_END_HOUR must not be after CLOSING_HOUR, "
            f"got {business.booking_end_hour} > {business.closing_hour}"
        )
    if not business.booking_start_hour <= business.lunch_hour < business.booking_end_hour:
        raise ConfigurationError(
            "LUNCH_HOUR must fall inside the booking window, "
            f"got {business.lunch_hour} outside {business.booking_start_hour}-{business.booking_end_hour}"
        )
    if business.horizon_days < 1:
        raise ConfigurationError(
            f"BOOKING_HORIZON_DAYS must be >= 1, got {business.horizon_days}"
        )
    if business.half_hour_max_minutes < 0:
        raise ConfigurationError(
            f"HALF_HOUR_MAX_MINUTES must be >= 0, got {business.half_hour_max_minutes}"
        )
    if any(not 0 <= day <= 6 for day in business.non_working_days):
        raise ConfigurationError(
            f"NON_WORKING_DAYS must be weekdays 0-6, got {business.non_working_days}"
        )
    if business.timezone not in pytz.all_timezones_set:
        raise ConfigurationError(f"Unknown BUSINESS_TIMEZONE: {business.timezone!r}")

    weather = config.weather
    if not -90.0 <= weather.latitude <= 90.0:
        raise ConfigurationError(
            f"SERVICE_AREA_LATITUDE must be between -90 and 90, got {weather.latitude}"
        )
    if not -180.0 <= weather.longitude <= 180.0:
        raise ConfigurationError(
            f"SERVICE_AREA_LONGITUDE must be between -180 and 180, got {weather.longitude}"
        )
    if weather.lookahead_hours < 1:
        raise ConfigurationError(
            f"WEATHER_LOOKAHEAD_HOURS must be >= 1, got {weather.lookahead_hours}"
        )
    if weather.sweep_days < 1:
        raise ConfigurationError(f"WEATHER_SWEEP_DAYS must be >= 1, got {weather.sweep_days}")
    if weather.pacing_sec < 0:
        raise ConfigurationError(
            f"WEATHER_PACING_SECONDS must be >= 0, got {weather.pacing_sec}"
        )

    for timeout_name, timeout_value in [
        ("CALENDAR_TIMEOUT", config.calendar.timeout_sec),
        ("FORECAST_TIMEOUT", weather.timeout_sec),
        ("NOTIFICATION_TIMEOUT", config.notifications.timeout_sec),
    ]:
        if timeout_value <= 0:
            raise ConfigurationError(f"{timeout_name} must be > 0, got {timeout_value}")

    if config.notifications.max_attempts < 1:
        raise ConfigurationError(
            "NOTIFICATION_MAX_ATTEMPTS must be >= 1, "
            f"got {config.notifications.max_attempts}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s [%(request_id)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
