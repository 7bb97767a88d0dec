# File: therapy_booking/processors/slot_resolver.py
"""
Resolves the status of a single half-hour slot from the events overlapping it.
"""

import datetime
from typing import Iterable, Optional

from therapy_booking.models import (
    AvailabilitySettings,
    CalendarEvent,
    NOT_AVAILABLE,
    SlotClassification,
    SlotStatus,
    localize,
    parse_date,
    parse_hhmm,
)
from therapy_booking.processors.event_classifier import EventClassifier

# Higher wins when several events overlap the same instant
STATUS_PRIORITY = {
    SlotStatus.BOOKED: 5,
    SlotStatus.VACATION: 4,
    SlotStatus.BLOCKED: 3,
    SlotStatus.AVAILABLE: 2,
    SlotStatus.MODIFIED: 1,
}


class SlotResolver:
    """Picks one classification per slot using STATUS_PRIORITY."""

    def __init__(
        self,
        settings: Optional[AvailabilitySettings] = None,
        classifier: Optional[EventClassifier] = None
    ):
        self.settings = settings or AvailabilitySettings.from_config()
        self.classifier = classifier or EventClassifier(self.settings)

    def resolve_instant(
        self,
        events: Iterable[CalendarEvent],
        instant: datetime.datetime
    ) -> SlotClassification:
        """
        Resolve the status at an aware instant.

        Ties between equal priorities keep the first event in store order.
        """
        best: Optional[SlotClassification] = None
        best_rank = 0

        for event in events:
            if not event.contains(instant):
                continue
            classification = self.classifier.classify(event)
            if classification is None:
                continue
            rank = STATUS_PRIORITY.get(classification.event_type, 0)
            if rank > best_rank:
                best, best_rank = classification, rank

        return best if best is not None else NOT_AVAILABLE

    def resolve(
        self,
        events: Iterable[CalendarEvent],
        date,
        time
    ) -> SlotClassification:
        """
        Resolve the status of the slot starting at date + time.

        Args:
            events: Candidate events (any order)
            date: date or 'YYYY-MM-DD'
            time: time or 'HH:MM', wall clock in the practice timezone

        Returns:
            The winning classification, or NOT_AVAILABLE when nothing overlaps
        """
        instant = localize(parse_date(date), parse_hhmm(time), self.settings.tz)
        return self.resolve_instant(events, instant)


def resolve(
    events: Iterable[CalendarEvent],
    date,
    time,
    settings: Optional[AvailabilitySettings] = None
) -> SlotClassification:
    """Module-level shortcut for one-off resolution."""
    return SlotResolver(settings).resolve(events, date, time)
