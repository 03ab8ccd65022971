"""
Recurring weather sweep over upcoming appointments.

One invocation walks every appointment in the sweep window, sequentially and
with a fixed pause between items, and sends at most one alert per
appointment per risk escalation. Alert records are written only after the
dispatcher confirms delivery. A failure on one appointment is logged and
counted and the sweep moves on.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

import pytz

from detail_scheduler.clients.base import CalendarStore, DeliveryResult, NotificationDispatcher
from detail_scheduler.errors import UpstreamUnavailable
from detail_scheduler.logging_context import SWEEP_PREFIX, get_request_logger, new_request_id
from detail_scheduler.schemas.booking_schema import Appointment
from detail_scheduler.schemas.weather_schema import WeatherRiskAssessment
from detail_scheduler.scheduling.appointments import parse_event
from detail_scheduler.scheduling.services import ServiceDurationTable
from detail_scheduler.scheduling.slot_generator import BookingRules
from detail_scheduler.templates.message_templates import (
    build_reschedule_link,
    build_weather_alert_email,
    build_weather_alert_sms,
    format_appointment_time,
)
from detail_scheduler.weather.alert_state import AlertState, AlertStateMachine, AlertTrigger
from detail_scheduler.weather.alert_store import AlertRecordStore
from detail_scheduler.weather.risk_evaluator import WeatherRiskEvaluator

logger = get_request_logger(__name__)


@dataclass
class SweepResult:
    """Counters for one sweep."""

    checked: int = 0
    alerts_sent: int = 0
    skipped_known: int = 0
    unknown: int = 0
    failed: int = 0
    manual_review: list[str] = field(default_factory=list)

    def as_trigger_response(self) -> dict[str, int]:
        return {"checked": self.checked, "alerts_sent": self.alerts_sent}


class AlertScheduler:
    """Evaluates upcoming appointments and dispatches weather alerts on escalation."""

    def __init__(
        self,
        calendar: CalendarStore,
        evaluator: WeatherRiskEvaluator,
        dispatcher: NotificationDispatcher,
        alert_store: AlertRecordStore,
        durations: ServiceDurationTable,
        rules: BookingRules,
        resource_id: str,
        business_name: str,
        business_phone: str,
        booking_url: str,
        sweep_days: int = 4,
        pacing_sec: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        default_location: str = "",
    ) -> None:
        self._calendar = calendar
        self._evaluator = evaluator
        self._dispatcher = dispatcher
        self._alerts = alert_store
        self._durations = durations
        self._rules = rules
        self._resource_id = resource_id
        self._business_name = business_name
        self._business_phone = business_phone
        self._booking_url = booking_url
        self._sweep_days = sweep_days
        self._pacing_sec = pacing_sec
        self._sleep = sleep
        self._default_location = default_location

    def run_weather_sweep(self) -> dict[str, int]:
        """Internal trigger: run one sweep and report ``{checked, alerts_sent}``."""
        return self.run_sweep().as_trigger_response()

    def run_sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Walk the upcoming appointments once.

        Raises:
            UpstreamUnavailable: The appointment list could not be read.
        """
        new_request_id(SWEEP_PREFIX)
        now = now or datetime.now(pytz.utc)
        result = SweepResult()

        self._alerts.purge_completed(now)
        appointments = self.upcoming_appointments(now)
        logger.info("Weather sweep over %d upcoming appointments", len(appointments))

        for index, appointment in enumerate(appointments):
            if index and self._pacing_sec:
                self._sleep(self._pacing_sec)
            result.checked += 1
            try:
                state = self.process(appointment, now).current_state
            except Exception:
                logger.exception("Weather check failed for appointment %s", appointment.id)
                result.failed += 1
                continue

            if state == AlertState.ALERT_DISPATCHED:
                result.alerts_sent += 1
            elif state == AlertState.ALREADY_ALERTED:
                result.skipped_known += 1
            elif state == AlertState.ASSESSED_UNKNOWN:
                result.unknown += 1
                result.manual_review.append(appointment.id)
            elif state == AlertState.UNASSESSED:
                result.failed += 1

        logger.info(
            "Weather sweep done: checked=%d alerts_sent=%d already_alerted=%d "
            "unknown=%d failed=%d",
            result.checked, result.alerts_sent, result.skipped_known,
            result.unknown, result.failed,
        )
        if result.manual_review:
            logger.warning("Appointments needing manual weather review: %s", result.manual_review)
        return result

    def upcoming_appointments(self, now: datetime) -> list[Appointment]:
        try:
            events = self._calendar.list_events(
                self._resource_id, now, now + timedelta(days=self._sweep_days)
            )
        except UpstreamUnavailable:
            logger.error("Weather sweep aborted: calendar unavailable")
            raise

        appointments = []
        for event in events:
            appointment = parse_event(event, self._default_location)
            if appointment is not None and appointment.start > now:
                appointments.append(appointment)
        appointments.sort(key=lambda a: a.start)
        return appointments

    # ------------------------------------------------------------------ #
    # Per-appointment pass
    # ------------------------------------------------------------------ #

    def process(self, appointment: Appointment, now: datetime) -> AlertStateMachine:
        """Assess one appointment and alert it if its risk escalated."""
        sm = AlertStateMachine(appointment.id)
        assessment = self._evaluator.evaluate(
            appointment.location or None, appointment.start, self._duration_for(appointment)
        )
        level = assessment.risk_level

        if assessment.is_unknown:
            logger.warning(
                "Weather unknown for appointment %s at %s (%s); flagged for manual review",
                appointment.id, appointment.start.isoformat(), assessment.error,
            )
            sm.transition(AlertTrigger.FORECAST_UNAVAILABLE)
            return sm

        if not assessment.needs_alert:
            sm.transition(AlertTrigger.RISK_BELOW_THRESHOLD)
            return sm

        sm.transition(AlertTrigger.RISK_FOUND)
        previous = self._alerts.highest_alerted_level(appointment.id)
        if previous is not None and previous.rank >= level.rank:
            logger.debug(
                "Appointment %s already alerted at %s (now %s)",
                appointment.id, previous.value, level.value,
            )
            sm.transition(AlertTrigger.LEVEL_ALREADY_SENT)
            return sm
        sm.transition(AlertTrigger.NEW_LEVEL)

        if self._dispatch(appointment, assessment):
            self._alerts.record(appointment.id, level, appointment.start, sent_at=now)
            sm.transition(AlertTrigger.DELIVERED)
            logger.info(
                "Weather alert (%s) sent for appointment %s", level.value, appointment.id
            )
        else:
            sm.transition(AlertTrigger.DELIVERY_FAILED)
            logger.warning(
                "Weather alert (%s) for appointment %s was not delivered; will retry next sweep",
                level.value, appointment.id,
            )
        logger.debug("Alert trace for %s: %s", appointment.id, sm.get_state_trace())
        return sm

    def _duration_for(self, appointment: Appointment) -> Optional[int]:
        if appointment.end is not None and appointment.end > appointment.start:
            return int((appointment.end - appointment.start).total_seconds() // 60)
        if self._durations.knows(appointment.service):
            return self._durations.minutes_for(appointment.service)
        return None

    def _dispatch(self, appointment: Appointment, assessment: WeatherRiskAssessment) -> bool:
        when = format_appointment_time(appointment.start, self._rules.tz)
        link = build_reschedule_link(self._booking_url, appointment)
        chance = assessment.mean_chance_of_rain
        temperature = assessment.mean_temperature

        sms = self._dispatcher.send_sms(
            appointment.customer_phone,
            build_weather_alert_sms(
                self._business_name,
                self._business_phone,
                appointment,
                when,
                assessment.risk_level,
                link,
                chance_of_rain=round(chance) if chance is not None else None,
                temperature=round(temperature) if temperature is not None else None,
            ),
        )
        email = DeliveryResult(delivered=False)
        if appointment.customer_email:
            subject, html = build_weather_alert_email(
                self._business_name, appointment, when, assessment.risk_level, link
            )
            email = self._dispatcher.send_email(appointment.customer_email, subject, html)

        if not sms.delivered:
            logger.warning("Weather alert SMS for %s failed: %s", appointment.id, sms.error)
        return sms.delivered or email.delivered
