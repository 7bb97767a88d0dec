# File: therapy_booking/services/memory_store.py

import itertools
import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from therapy_booking.models import CalendarEvent
from therapy_booking.services.event_store import EventNotFoundError, EventStore
from therapy_booking.utils.logger import setup_logger

logger = setup_logger(__name__)


class InMemoryEventStore(EventStore):
    """
    Process-local event store.

    Used for local development and tests. Mirrors the Google backend's
    visible behaviour: start-ordered listing capped at `max_results`, and
    not-found errors on delete.
    """

    def __init__(self, events: Optional[Iterable[CalendarEvent]] = None, max_results: int = 1000):
        self.max_results = max_results
        self._events: Dict[str, CalendarEvent] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        for event in events or []:
            self.insert_event(event)

    def list_events(self, time_min: datetime, time_max: datetime) -> List[CalendarEvent]:
        with self._lock:
            matching = [e for e in self._events.values() if e.overlaps(time_min, time_max)]
        matching.sort(key=lambda e: e.start)
        return matching[:self.max_results]

    def insert_event(self, event: CalendarEvent) -> str:
        with self._lock:
            event_id = event.event_id or f"evt_{next(self._ids)}"
            if event_id in self._events:
                event_id = f"{event_id}_{next(self._ids)}"
            self._events[event_id] = replace(event, event_id=event_id)
        logger.debug(f"Stored event {event_id}: {event.summary}")
        return event_id

    def delete_event(self, event_id: str) -> None:
        with self._lock:
            if self._events.pop(event_id, None) is None:
                raise EventNotFoundError(f"Event not found: {event_id}", status_code=404, reason="notFound")
        logger.debug(f"Deleted event {event_id}")

    def all_events(self) -> List[CalendarEvent]:
        """Every stored event in start order."""
        with self._lock:
            return sorted(self._events.values(), key=lambda e: e.start)

    def __len__(self) -> int:
        return len(self._events)
