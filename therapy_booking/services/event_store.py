# File: therapy_booking/services/event_store.py
"""
Abstract event store.
The calendar provider is the system of record for availability; the engine
only reads events from it and inserts or deletes marker events.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from therapy_booking.models import CalendarEvent


class EventStoreError(Exception):
    """A read or write against the event store failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.reason = reason


class EventNotFoundError(EventStoreError):
    """The event to delete does not exist (or was already deleted)."""


class EventStore(ABC):
    """Base class for calendar backends."""

    @abstractmethod
    def list_events(self, time_min: datetime, time_max: datetime) -> List[CalendarEvent]:
        """Events intersecting [time_min, time_max), in start order, one page only."""
        ...

    @abstractmethod
    def insert_event(self, event: CalendarEvent) -> str:
        """Create the event and return its id."""
        ...

    @abstractmethod
    def delete_event(self, event_id: str) -> None:
        """Delete by id. Raises EventNotFoundError when it does not exist."""
        ...

    def find_events_by_metadata(
        self,
        key: str,
        value: str,
        time_min: datetime,
        time_max: datetime
    ) -> List[CalendarEvent]:
        """
        Events in the window whose private metadata has key == value.
        Backends with server-side filtering override this.
        """
        return [
            event for event in self.list_events(time_min, time_max)
            if event.private_metadata.get(key) == value
        ]
