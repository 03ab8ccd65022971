from detail_scheduler.clients.base import (
    CalendarStore,
    CustomerProfileStore,
    DeliveryResult,
    ForecastProvider,
    NotificationDispatcher,
)
from detail_scheduler.clients.calendar_client import GoogleCalendarClient
from detail_scheduler.clients.customer_store import InMemoryCustomerProfileStore
from detail_scheduler.clients.forecast_client import OpenMeteoForecastClient
from detail_scheduler.clients.notification_client import TwilioResendDispatcher

__all__ = [
    "CalendarStore", "CustomerProfileStore", "DeliveryResult", "ForecastProvider",
    "NotificationDispatcher", "GoogleCalendarClient", "InMemoryCustomerProfileStore",
    "OpenMeteoForecastClient", "TwilioResendDispatcher",
]
