"""
Explicit construction of the application object graph.

Every client is built here once and handed to the components that need it.
Nothing in the package reaches for a module-level client.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.orm import sessionmaker

from detail_scheduler.clients.base import (
    CalendarStore,
    CustomerProfileStore,
    ForecastProvider,
    NotificationDispatcher,
)
from detail_scheduler.clients.calendar_client import GoogleCalendarClient
from detail_scheduler.clients.customer_store import InMemoryCustomerProfileStore
from detail_scheduler.clients.forecast_client import OpenMeteoForecastClient
from detail_scheduler.clients.notification_client import TwilioResendDispatcher
from detail_scheduler.config import AppConfig
from detail_scheduler.database import create_db_engine, create_session_factory
from detail_scheduler.scheduling.booking_coordinator import BookingCoordinator
from detail_scheduler.scheduling.reminders import NotificationQueue
from detail_scheduler.scheduling.services import ServiceDurationTable
from detail_scheduler.scheduling.slot_generator import BookingRules, SlotGenerator
from detail_scheduler.weather.alert_scheduler import AlertScheduler
from detail_scheduler.weather.alert_store import AlertRecordStore
from detail_scheduler.weather.risk_evaluator import WeatherRiskEvaluator

logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """The wired components plus whatever must be closed on shutdown."""

    config: AppConfig
    durations: ServiceDurationTable
    slot_generator: SlotGenerator
    booking: BookingCoordinator
    notifications: NotificationQueue
    alert_scheduler: AlertScheduler
    closeables: list[Any] = field(default_factory=list)

    def close(self) -> None:
        for resource in self.closeables:
            resource.close()
        self.closeables.clear()


def build_container(
    config: AppConfig,
    calendar: Optional[CalendarStore] = None,
    forecasts: Optional[ForecastProvider] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    profiles: Optional[CustomerProfileStore] = None,
    session_factory: Optional[sessionmaker] = None,
    durations: Optional[ServiceDurationTable] = None,
) -> AppContainer:
    """Wire the application from ``config``.

    Any collaborator passed in is used as-is; the rest are built from config.
    """
    closeables: list[Any] = []
    if calendar is None:
        calendar = GoogleCalendarClient(config.calendar)
        closeables.append(calendar)
    if forecasts is None:
        forecasts = OpenMeteoForecastClient(config.weather)
        closeables.append(forecasts)
    if dispatcher is None:
        dispatcher = TwilioResendDispatcher(config.notifications)
        closeables.append(dispatcher)
    if profiles is None:
        profiles = InMemoryCustomerProfileStore()
    if session_factory is None:
        engine = create_db_engine(config.database.url)
        session_factory = create_session_factory(engine)
        closeables.append(_EngineCloser(engine))

    durations = durations or ServiceDurationTable.from_catalog()
    rules = BookingRules.from_config(config.business)
    resource_id = config.calendar.calendar_id
    business = config.business

    slot_generator = SlotGenerator(calendar, durations, rules, resource_id)
    notifications = NotificationQueue(
        session_factory,
        dispatcher,
        rules,
        business_name=business.name,
        business_phone=business.phone,
        max_attempts=config.notifications.max_attempts,
    )
    booking = BookingCoordinator(
        calendar,
        slot_generator,
        resource_id,
        notifications=notifications,
        profiles=profiles,
    )
    evaluator = WeatherRiskEvaluator(
        forecasts,
        default_coordinates=(config.weather.latitude, config.weather.longitude),
        lookahead_hours=config.weather.lookahead_hours,
    )
    alert_scheduler = AlertScheduler(
        calendar,
        evaluator,
        dispatcher,
        AlertRecordStore(session_factory),
        durations,
        rules,
        resource_id,
        business_name=business.name,
        business_phone=business.phone,
        booking_url=business.booking_url,
        sweep_days=config.weather.sweep_days,
        pacing_sec=config.weather.pacing_sec,
    )

    logger.info("Application wired for calendar '%s'", resource_id)
    return AppContainer(
        config=config,
        durations=durations,
        slot_generator=slot_generator,
        booking=booking,
        notifications=notifications,
        alert_scheduler=alert_scheduler,
        closeables=closeables,
    )


class _EngineCloser:
    def __init__(self, engine) -> None:
        self._engine = engine

    def close(self) -> None:
        self._engine.dispose()
