from detail_scheduler.scheduling.booking_coordinator import BookingCoordinator
from detail_scheduler.scheduling.interval_index import BusyInterval, IntervalIndex
from detail_scheduler.scheduling.reminders import NotificationQueue
from detail_scheduler.scheduling.services import ServiceDurationTable
from detail_scheduler.scheduling.slot_generator import BookingRules, CandidateSlot, SlotGenerator

__all__ = [
    "BookingCoordinator", "BusyInterval", "IntervalIndex", "NotificationQueue",
    "ServiceDurationTable", "BookingRules", "CandidateSlot", "SlotGenerator",
]
