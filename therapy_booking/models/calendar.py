# File: therapy_booking/models/calendar.py

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytz

from .common import parse_gc_time
from .enums import AvailabilityType


@dataclass
class CalendarEvent:
    """An event as returned by the event store. Never mutated by the engine."""
    summary: str
    start: datetime
    end: datetime
    event_id: Optional[str] = None
    description: Optional[str] = None
    attendees: List[Dict[str, Any]] = field(default_factory=list)
    private_metadata: Dict[str, str] = field(default_factory=dict)
    all_day: bool = False
    recurrence: List[str] = field(default_factory=list)
    color_id: Optional[str] = None

    def __post_init__(self):
        """Validate event data."""
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError(f"Event times must be timezone-aware: {self.summary}")
        # Zero-length events exist in shared calendars; they simply never overlap a slot
        if self.end < self.start:
            raise ValueError(f"Event end time must not precede start time: {self.summary}")

    @property
    def availability_type(self) -> Optional[AvailabilityType]:
        return AvailabilityType.parse(self.private_metadata.get('availabilityType'))

    @property
    def is_therapy_session(self) -> bool:
        return str(self.private_metadata.get('therapySession', '')).lower() == 'true'

    def duration_minutes(self) -> int:
        """Calculate event duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def contains(self, instant: datetime) -> bool:
        """Half-open containment: start <= instant < end."""
        return self.start <= instant < self.end

    def overlaps(self, window_start: datetime, window_end: datetime) -> bool:
        """Check if this event intersects [window_start, window_end)."""
        return self.start < window_end and self.end > window_start

    def to_api_body(self, timezone_name: str) -> Dict[str, Any]:
        """Build the Google Calendar insert payload for this event."""
        if self.all_day:
            start = {'date': self.start.date().isoformat()}
            end = {'date': self.end.date().isoformat()}
        else:
            start = {'dateTime': self.start.isoformat(), 'timeZone': timezone_name}
            end = {'dateTime': self.end.isoformat(), 'timeZone': timezone_name}

        body: Dict[str, Any] = {
            'summary': self.summary,
            'start': start,
            'end': end,
            'extendedProperties': {'private': dict(self.private_metadata)},
        }
        if self.description:
            body['description'] = self.description
        if self.color_id:
            body['colorId'] = self.color_id
        if self.attendees:
            body['attendees'] = [dict(a) for a in self.attendees]
        if self.recurrence:
            body['recurrence'] = list(self.recurrence)
        return body


def calendar_event_from_api(data: dict, tz: pytz.BaseTzInfo) -> CalendarEvent:
    """
    Create CalendarEvent from a Google Calendar API event resource.

    Raises:
        ValueError: if start or end cannot be parsed
    """
    start, all_day = parse_gc_time(data.get('start', {}), tz)
    end, _ = parse_gc_time(data.get('end', {}), tz)
    if start is None or end is None:
        raise ValueError(f"Missing start or end for event {data.get('id')}")

    private = (data.get('extendedProperties') or {}).get('private') or {}

    return CalendarEvent(
        summary=data.get('summary') or '',
        start=start,
        end=end,
        event_id=data.get('id'),
        description=data.get('description'),
        attendees=list(data.get('attendees') or []),
        private_metadata={str(k): str(v) for k, v in private.items()},
        all_day=all_day,
        recurrence=list(data.get('recurrence') or []),
        color_id=data.get('colorId'),
    )
