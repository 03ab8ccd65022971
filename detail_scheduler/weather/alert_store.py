"""
Persistent record of weather alerts already sent.

One row per (appointment, risk level) that was actually delivered. The
sweep consults it before alerting so a customer is alerted once per level
and again only when the risk escalates.
"""

import logging
from datetime import datetime
from typing import Optional

import pytz
from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from detail_scheduler.database import Base
from detail_scheduler.schemas.weather_schema import RiskLevel, max_risk

logger = logging.getLogger(__name__)


class AlertRecord(Base):
    __tablename__ = "alert_records"
    __table_args__ = (UniqueConstraint("appointment_id", "risk_level", name="uq_alert_level"),)

    id = Column(Integer, primary_key=True)
    appointment_id = Column(String(255), nullable=False, index=True)
    risk_level = Column(String(16), nullable=False)
    appointment_start = Column(DateTime(timezone=True), nullable=False, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=False)


class AlertRecordStore:
    """Reads and writes delivered-alert records."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def highest_alerted_level(self, appointment_id: str) -> Optional[RiskLevel]:
        """Highest level already alerted for the appointment, or None."""
        levels = [RiskLevel(r.risk_level) for r in self.records_for(appointment_id)]
        if not levels:
            return None
        return max_risk(levels)

    def record(
        self,
        appointment_id: str,
        risk_level: RiskLevel,
        appointment_start: datetime,
        sent_at: Optional[datetime] = None,
    ) -> bool:
        """Store a delivered alert. Returns False if it was already recorded."""
        if not risk_level.is_known:
            raise ValueError("cannot record an alert for an unknown risk level")
        row = AlertRecord(
            appointment_id=appointment_id,
            risk_level=risk_level.value,
            appointment_start=appointment_start.astimezone(pytz.utc),
            sent_at=(sent_at or datetime.now(pytz.utc)).astimezone(pytz.utc),
        )
        with self._session_factory() as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.debug("Alert %s/%s already recorded", appointment_id, risk_level.value)
                return False
        return True

    def records_for(self, appointment_id: str) -> list[AlertRecord]:
        with self._session_factory() as session:
            return list(
                session.scalars(
                    select(AlertRecord)
                    .where(AlertRecord.appointment_id == appointment_id)
                    .order_by(AlertRecord.id)
                )
            )

    def purge(self, appointment_id: str) -> int:
        """Forget every alert for a cancelled or rescheduled appointment."""
        with self._session_factory() as session:
            result = session.execute(
                delete(AlertRecord).where(AlertRecord.appointment_id == appointment_id)
            )
            session.commit()
            return result.rowcount or 0

    def purge_completed(self, before: datetime) -> int:
        """Drop records for appointments that started before ``before``."""
        with self._session_factory() as session:
            result = session.execute(
                delete(AlertRecord).where(
                    AlertRecord.appointment_start < before.astimezone(pytz.utc)
                )
            )
            session.commit()
            removed = result.rowcount or 0
        if removed:
            logger.info("Purged %d alert records for past appointments", removed)
        return removed
