# File: therapy_booking/models/slot.py

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional

from .enums import SlotStatus


@dataclass(frozen=True)
class SlotClassification:
    """Outcome of classifying one event, or of resolving one slot."""
    available: bool
    reason: str
    event_type: SlotStatus
    event_id: Optional[str] = None


NOT_AVAILABLE = SlotClassification(
    available=False,
    reason="Not available",
    event_type=SlotStatus.UNAVAILABLE,
)


@dataclass
class Slot:
    """A 30-minute grid cell with its resolved status. Computed per request."""
    date: date
    time: str  # "HH:MM"
    status: SlotStatus
    available: bool
    reason: str
    start: datetime
    end: datetime
    source_event_id: Optional[str] = None
    can_accommodate_therapy: Optional[bool] = None
    can_accommodate_consultation: Optional[bool] = None

    def __post_init__(self):
        if isinstance(self.status, str):
            self.status = SlotStatus(self.status)

    @property
    def key(self) -> tuple:
        """Identity of the grid cell."""
        return (self.date, self.time)

    @property
    def day_of_week(self) -> str:
        return self.date.strftime("%A")

    @classmethod
    def from_classification(
        cls,
        day: date,
        time: str,
        start: datetime,
        end: datetime,
        classification: SlotClassification
    ) -> 'Slot':
        return cls(
            date=day,
            time=time,
            status=classification.event_type,
            available=classification.available,
            reason=classification.reason,
            start=start,
            end=end,
            source_event_id=classification.event_id,
        )

    def with_accommodation(self, therapy: bool, consultation: bool) -> 'Slot':
        """Return a copy tagged with accommodation flags."""
        return replace(
            self,
            can_accommodate_therapy=therapy,
            can_accommodate_consultation=consultation,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON responses."""
        data = {
            'date': self.date.isoformat(),
            'time': self.time,
            'dayOfWeek': self.day_of_week,
            'available': self.available,
            'status': self.status.value,
            'reason': self.reason,
            'eventId': self.source_event_id,
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
        }
        if self.can_accommodate_therapy is not None:
            data['canAccommodateTherapy'] = self.can_accommodate_therapy
        if self.can_accommodate_consultation is not None:
            data['canAccommodateConsultation'] = self.can_accommodate_consultation
        return data
