"""
Durable, restart-safe notification queue for booking confirmations and reminders.

Every outgoing booking notification is persisted with a due time before any
send is attempted. ``run_due`` delivers whatever is due and marks it sent
only after the dispatcher confirms delivery, so a process restart never drops
a pending send and repeated runs never send the same task twice.
"""

import logging
from datetime import datetime, time, timedelta
from typing import Optional

import pytz
from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from detail_scheduler.clients.base import DeliveryResult, NotificationDispatcher
from detail_scheduler.database import Base
from detail_scheduler.schemas.booking_schema import Appointment
from detail_scheduler.scheduling.slot_generator import BookingRules
from detail_scheduler.templates.message_templates import (
    build_confirmation_email,
    build_confirmation_sms,
    build_reminder_sms,
    format_appointment_time,
)

logger = logging.getLogger(__name__)

KIND_CONFIRMATION = "confirmation"
KIND_REMINDER = "reminder"

STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"


class ScheduledNotification(Base):
    """A notification persisted with its due time until delivered."""

    __tablename__ = "scheduled_notifications"
    __table_args__ = (UniqueConstraint("appointment_id", "kind", name="uq_notification_kind"),)

    id = Column(Integer, primary_key=True)
    appointment_id = Column(String(255), nullable=False, index=True)
    kind = Column(String(32), nullable=False)
    due_at = Column(DateTime(timezone=True), nullable=False, index=True)

    phone = Column(String(32), nullable=False)
    sms_body = Column(Text, nullable=False)
    email = Column(String(255), nullable=True)
    email_subject = Column(String(255), nullable=True)
    email_body = Column(Text, nullable=True)

    # pending -> sent | failed
    status = Column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out; stored values are always UTC.
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


class NotificationQueue:
    """Persists confirmation and reminder sends and delivers them when due."""

    def __init__(
        self,
        session_factory: sessionmaker,
        dispatcher: NotificationDispatcher,
        rules: BookingRules,
        business_name: str,
        business_phone: str,
        max_attempts: int = 3,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._rules = rules
        self._business_name = business_name
        self._business_phone = business_phone
        self._max_attempts = max_attempts

    # ------------------------------------------------------------------ #
    # Enqueueing
    # ------------------------------------------------------------------ #

    def queue_confirmation(self, appointment: Appointment, now: Optional[datetime] = None) -> bool:
        """Persist a confirmation due immediately and try to deliver it.

        Returns True when the confirmation was delivered now. Otherwise it
        stays pending for the next ``run_due``.
        """
        now = now or datetime.now(pytz.utc)
        when = format_appointment_time(appointment.start, self._rules.tz)
        subject, html = build_confirmation_email(self._business_name, appointment, when)
        task_id = self._enqueue(
            appointment,
            kind=KIND_CONFIRMATION,
            due_at=now,
            sms_body=build_confirmation_sms(self._business_name, appointment, when),
            email_subject=subject,
            email_body=html,
        )
        if task_id is None:
            return False
        return self._deliver_task(task_id, now)

    def schedule_day_before_reminder(
        self, appointment: Appointment, now: Optional[datetime] = None
    ) -> datetime:
        """Persist a reminder due at the reminder hour on the previous local day.

        When that moment has already passed the reminder is due now.
        Returns the due time.
        """
        now = now or datetime.now(pytz.utc)
        local_start = appointment.start.astimezone(self._rules.tz)
        due_at = self._rules.localize(
            local_start.date() - timedelta(days=1), time(self._rules.reminder_hour)
        )
        if due_at < now:
            due_at = now

        when = format_appointment_time(appointment.start, self._rules.tz)
        self._enqueue(
            appointment,
            kind=KIND_REMINDER,
            due_at=due_at,
            sms_body=build_reminder_sms(
                self._business_name, self._business_phone, appointment, when
            ),
        )
        logger.info("Reminder for %s scheduled at %s", appointment.id, due_at.isoformat())
        return due_at

    def _enqueue(
        self,
        appointment: Appointment,
        kind: str,
        due_at: datetime,
        sms_body: str,
        email_subject: Optional[str] = None,
        email_body: Optional[str] = None,
    ) -> Optional[int]:
        task = ScheduledNotification(
            appointment_id=appointment.id,
            kind=kind,
            due_at=due_at.astimezone(pytz.utc),
            phone=appointment.customer_phone,
            sms_body=sms_body,
            email=appointment.customer_email if email_body else None,
            email_subject=email_subject,
            email_body=email_body,
            status=STATUS_PENDING,
            attempts=0,
        )
        with self._session_factory() as session:
            session.add(task)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.info("%s for %s already queued", kind, appointment.id)
                return None
            return task.id

    # ------------------------------------------------------------------ #
    # Delivery
    # ------------------------------------------------------------------ #

    def run_due(self, now: Optional[datetime] = None) -> int:
        """Deliver every pending task due at or before ``now``.

        Returns the number of tasks delivered in this run.
        """
        now = now or datetime.now(pytz.utc)
        with self._session_factory() as session:
            due_ids = list(
                session.scalars(
                    select(ScheduledNotification.id)
                    .where(ScheduledNotification.status == STATUS_PENDING)
                    .where(ScheduledNotification.due_at <= now.astimezone(pytz.utc))
                    .order_by(ScheduledNotification.due_at, ScheduledNotification.id)
                )
            )

        sent = 0
        for task_id in due_ids:
            try:
                if self._deliver_task(task_id, now):
                    sent += 1
            except Exception:
                logger.exception("Delivering notification task %s failed", task_id)
        logger.info("Notification run delivered %d of %d due tasks", sent, len(due_ids))
        return sent

    def _deliver_task(self, task_id: int, now: datetime) -> bool:
        with self._session_factory() as session:
            task = session.get(ScheduledNotification, task_id)
            if task is None or task.status != STATUS_PENDING:
                return False

            sms = self._dispatcher.send_sms(task.phone, task.sms_body)
            email = DeliveryResult(delivered=False)
            if task.email and task.email_subject and task.email_body:
                email = self._dispatcher.send_email(task.email, task.email_subject, task.email_body)

            task.attempts += 1
            if sms.delivered or email.delivered:
                task.status = STATUS_SENT
                task.sent_at = now.astimezone(pytz.utc)
                task.last_error = None
                logger.info("%s for %s delivered", task.kind, task.appointment_id)
            else:
                task.last_error = sms.error or email.error or "not delivered"
                if task.attempts >= self._max_attempts:
                    task.status = STATUS_FAILED
                    logger.error(
                        "%s for %s failed after %d attempts: %s",
                        task.kind, task.appointment_id, task.attempts, task.last_error,
                    )
                else:
                    logger.warning(
                        "%s for %s not delivered (attempt %d): %s",
                        task.kind, task.appointment_id, task.attempts, task.last_error,
                    )
            session.commit()
            return task.status == STATUS_SENT

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    def cancel(self, appointment_id: str) -> int:
        """Drop pending tasks for a cancelled appointment. Returns rows removed."""
        with self._session_factory() as session:
            tasks = session.scalars(
                select(ScheduledNotification)
                .where(ScheduledNotification.appointment_id == appointment_id)
                .where(ScheduledNotification.status == STATUS_PENDING)
            ).all()
            for task in tasks:
                session.delete(task)
            session.commit()
            return len(tasks)

    def tasks_for(self, appointment_id: str) -> list[ScheduledNotification]:
        with self._session_factory() as session:
            return list(
                session.scalars(
                    select(ScheduledNotification)
                    .where(ScheduledNotification.appointment_id == appointment_id)
                    .order_by(ScheduledNotification.id)
                )
            )

    @staticmethod
    def due_at_utc(task: ScheduledNotification) -> datetime:
        return _as_utc(task.due_at)
