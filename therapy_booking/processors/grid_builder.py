# File: therapy_booking/processors/grid_builder.py
"""
Availability grid builder.
Generates every half-hour slot in a window of days, resolves each one against
the calendar events and keeps the slots carrying an explicit signal.
"""

import datetime
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from therapy_booking.models import (
    AvailabilitySettings,
    AvailabilityType,
    CalendarEvent,
    Slot,
    SlotStatus,
    localize,
)
from therapy_booking.models.common import format_hhmm
from therapy_booking.processors.slot_resolver import SlotResolver
from therapy_booking.utils.logger import setup_logger

logger = setup_logger(__name__)

# Slots with any other status are dropped from the grid, not emitted as unavailable
GRID_STATUSES = (SlotStatus.AVAILABLE, SlotStatus.BOOKED)


class GridBuilder:
    """Builds the sorted, deduplicated availability grid."""

    def __init__(
        self,
        settings: Optional[AvailabilitySettings] = None,
        resolver: Optional[SlotResolver] = None
    ):
        self.settings = settings or AvailabilitySettings.from_config()
        self.resolver = resolver or SlotResolver(self.settings)

    def today(self) -> datetime.date:
        """Current date in the practice timezone."""
        return datetime.datetime.now(self.settings.tz).date()

    def slot_times(self) -> List[datetime.time]:
        """Wall-clock slot boundaries of one day: 00:00, 00:30, ... 23:30."""
        step = self.settings.slot_minutes
        return [
            datetime.time((i * step) // 60, (i * step) % 60)
            for i in range(self.settings.slots_per_day)
        ]

    def bucket_by_day(
        self,
        events: Iterable[CalendarEvent],
        days: List[datetime.date]
    ) -> Dict[datetime.date, List[CalendarEvent]]:
        """
        Group events under every local day they overlap.
        Store order is preserved inside each bucket.
        """
        tz = self.settings.tz
        buckets: Dict[datetime.date, List[CalendarEvent]] = defaultdict(list)
        if not days:
            return buckets

        for event in events:
            if event.end <= event.start:
                continue
            first_day = event.start.astimezone(tz).date()
            last_day = (event.end - datetime.timedelta(microseconds=1)).astimezone(tz).date()
            day = max(first_day, days[0])
            while day <= min(last_day, days[-1]):
                buckets[day].append(event)
                day += datetime.timedelta(days=1)

        return buckets

    def build_grid(
        self,
        events: Iterable[CalendarEvent],
        days_ahead: Optional[int] = None,
        start_date: Optional[datetime.date] = None
    ) -> List[Slot]:
        """
        Build the availability grid.

        Args:
            events: Snapshot of calendar events covering the window
            days_ahead: Number of days to generate (default: settings.days_ahead)
            start_date: First day (default: today in the practice timezone)

        Returns:
            Slots whose status is available or booked, sorted by (date, time)
        """
        days_ahead = self.settings.days_ahead if days_ahead is None else days_ahead
        start_date = start_date or self.today()
        if days_ahead <= 0:
            return []

        events = list(events)
        days = [start_date + datetime.timedelta(days=i) for i in range(days_ahead)]
        buckets = self.bucket_by_day(events, days)
        step = datetime.timedelta(minutes=self.settings.slot_minutes)
        tz = self.settings.tz

        grid: Dict[tuple, Slot] = {}
        for day in days:
            day_events = buckets.get(day)
            if not day_events:
                continue
            for slot_time in self.slot_times():
                start = localize(day, slot_time, tz)
                if tz.normalize(start).time() != slot_time:
                    # Wall time skipped by a spring-forward transition
                    continue
                classification = self.resolver.resolve_instant(day_events, start)
                if classification.event_type not in GRID_STATUSES:
                    continue
                slot = Slot.from_classification(
                    day, format_hhmm(slot_time), start, start + step, classification
                )
                grid.setdefault(slot.key, slot)

        slots = sorted(grid.values(), key=lambda s: s.key)
        logger.debug(
            f"Built grid for {days_ahead} days from {start_date}: "
            f"{len(slots)} slots from {len(events)} events"
        )
        return slots


def get_extra_slots(
    events: Iterable[CalendarEvent],
    settings: Optional[AvailabilitySettings] = None
) -> List[Slot]:
    """
    List EXTRA_SLOT markers as slots starting at each marker's start time.
    Extra slots are kept out of the main grid.
    """
    settings = settings or AvailabilitySettings.from_config()
    tz = settings.tz
    extra: List[Slot] = []

    for event in events:
        if event.availability_type is not AvailabilityType.EXTRA_SLOT or event.all_day:
            continue
        local_start = event.start.astimezone(tz)
        extra.append(Slot(
            date=local_start.date(),
            time=format_hhmm(local_start.time()),
            status=SlotStatus.EXTRA,
            available=True,
            reason=event.private_metadata.get('reason') or "Extra slot",
            start=event.start,
            end=event.end,
            source_event_id=event.event_id,
        ))

    return sorted(extra, key=lambda s: s.key)
