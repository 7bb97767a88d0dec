from .enums import AvailabilityType, SlotStatus, SessionType, LeaseState
from .common import parse_iso_datetime, parse_date, parse_hhmm, localize
from .calendar import CalendarEvent, calendar_event_from_api
from .slot import Slot, SlotClassification, NOT_AVAILABLE
from .config import AvailabilitySettings
from .api import MutationResult, AvailabilityResult, BookingResult

__all__ = [
    "AvailabilityType",
    "SlotStatus",
    "SessionType",
    "LeaseState",
    "parse_iso_datetime",
    "parse_date",
    "parse_hhmm",
    "localize",
    "CalendarEvent",
    "calendar_event_from_api",
    "Slot",
    "SlotClassification",
    "NOT_AVAILABLE",
    "AvailabilitySettings",
    "MutationResult",
    "AvailabilityResult",
    "BookingResult",
]
