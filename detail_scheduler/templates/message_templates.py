"""Fixed SMS and email message construction for customer notifications."""

from datetime import datetime
from typing import Optional
from urllib.parse import urlencode

from detail_scheduler.schemas.booking_schema import Appointment
from detail_scheduler.schemas.weather_schema import RiskLevel

SEVERITY_TEXT: dict[RiskLevel, str] = {
    RiskLevel.SEVERE: "severe weather (80-100% chance of rain)",
    RiskLevel.VERY_HIGH: "very high chance of rain (60-80%)",
    RiskLevel.HIGH: "high chance of rain (25-60%)",
    RiskLevel.MODERATE: "moderate chance of rain (15-25%)",
}

ACTION_TEXT: dict[RiskLevel, str] = {
    RiskLevel.SEVERE: "We strongly recommend rescheduling to ensure quality service.",
    RiskLevel.VERY_HIGH: "We recommend rescheduling to ensure quality service.",
    RiskLevel.HIGH: "Consider rescheduling for better detailing results.",
    RiskLevel.MODERATE: (
        "We can still perform service, but exterior detailing might be affected."
    ),
}


def format_appointment_time(start: datetime, tz) -> str:
    """e.g. ``Tuesday, March 3, 2026 at 9:00 AM``."""
    local = start.astimezone(tz)
    hour = local.strftime("%I").lstrip("0")
    return f"{local:%A, %B} {local.day}, {local.year} at {hour}:{local:%M %p}"


def build_reschedule_link(base_url: str, appointment: Appointment) -> str:
    query = urlencode(
        {
            "phone": appointment.customer_phone,
            "name": appointment.customer_name,
            "service": appointment.service,
        }
    )
    return f"{base_url}?{query}"


def build_confirmation_sms(business_name: str, appointment: Appointment, when: str) -> str:
    lines = [
        f"Hi {appointment.customer_name}, your {appointment.service} with {business_name} "
        f"is confirmed for {when}.",
    ]
    if appointment.location:
        lines.append(f"Location: {appointment.location}")
    lines.append('Reply "RESCHEDULE" to change the time or "CANCEL" to cancel.')
    return "\n".join(lines)


def build_confirmation_email(
    business_name: str, appointment: Appointment, when: str
) -> tuple[str, str]:
    """Subject and HTML body for the booking confirmation email."""
    subject = f"Your {business_name} appointment is confirmed - {when}"
    body = (
        f"<p>Hi {appointment.customer_name},</p>"
        f"<p>Your <strong>{appointment.service}</strong> is booked for {when}.</p>"
        + (f"<p>Location: {appointment.location}</p>" if appointment.location else "")
        + f"<p>Thank you for choosing {business_name}.</p>"
    )
    return subject, body


def build_reminder_sms(
    business_name: str, business_phone: str, appointment: Appointment, when: str
) -> str:
    lines = [
        f"Hi {appointment.customer_name}, this is {business_name} reminding you of your "
        f"appointment tomorrow, {when}.",
        f"Service: {appointment.service}",
    ]
    if appointment.location:
        lines.append(f"Location: {appointment.location}")
    lines.extend([
        'To reschedule: Reply "RESCHEDULE" and we\'ll help you find a new time.',
        'To cancel: Reply "CANCEL" and we\'ll confirm your cancellation.',
        f"For other changes: Call us at {business_phone}",
    ])
    return "\n".join(lines)


def build_weather_alert_sms(
    business_name: str,
    business_phone: str,
    appointment: Appointment,
    when: str,
    risk_level: RiskLevel,
    reschedule_link: str,
    chance_of_rain: Optional[int] = None,
    temperature: Optional[int] = None,
) -> str:
    severity = SEVERITY_TEXT.get(risk_level, "potential inclement weather")
    action = ACTION_TEXT.get(risk_level, "Please consider your options.")
    lines = [
        f"Hi {appointment.customer_name}, {business_name} weather alert for {when}:",
        "",
        f"{severity} forecasted. {action}",
    ]
    if chance_of_rain is not None and temperature is not None:
        lines.append(f"Average forecast: {chance_of_rain}% chance of rain, {temperature}°F.")
    lines.extend([
        "",
        f"Reschedule easily: {reschedule_link}",
        "",
        "Or reply RESCHEDULE for help, or KEEP to continue.",
        f"Questions? Call {business_phone}",
    ])
    return "\n".join(lines)


def build_weather_alert_email(
    business_name: str,
    appointment: Appointment,
    when: str,
    risk_level: RiskLevel,
    reschedule_link: str,
) -> tuple[str, str]:
    """Subject and HTML body for the weather alert email."""
    severity = SEVERITY_TEXT.get(risk_level, "potential inclement weather")
    action = ACTION_TEXT.get(risk_level, "Please consider your options.")
    subject = f"Weather Alert for Your {business_name} Appointment - {when}"
    body = (
        f"<h2>Weather Update for Your Appointment</h2>"
        f"<p>Hi {appointment.customer_name},</p>"
        f"<p>{severity} is forecasted for your scheduled appointment time.</p>"
        f"<p><strong>Date:</strong> {when}<br>"
        f"<strong>Service:</strong> {appointment.service}<br>"
        f"<strong>Action:</strong> {action}</p>"
        f'<p><a href="{reschedule_link}">View Available Dates</a></p>'
    )
    return subject, body
