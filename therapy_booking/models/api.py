# File: therapy_booking/models/api.py
"""
Result objects returned across the engine boundary.
Operations report failure through these instead of raising.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .slot import Slot


@dataclass
class MutationResult:
    """Outcome of a create/delete operation on a marker event."""
    success: bool
    event_id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> 'MutationResult':
        return cls(success=False, error=error)

    def to_dict(self) -> dict:
        data = {'success': self.success}
        if self.event_id:
            data['eventId'] = self.event_id
        if self.message:
            data['message'] = self.message
        if self.error:
            data['error'] = self.error
        return data


@dataclass
class AvailabilityResult:
    """Outcome of a read. Failed reads carry an empty slot list."""
    success: bool
    slots: List[Slot] = field(default_factory=list)
    error: Optional[str] = None

    def is_success(self) -> bool:
        return self.success and self.error is None


@dataclass
class BookingResult:
    """Outcome of writing a therapy session event."""
    success: bool
    event_id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    already_existed: bool = False

    def __str__(self) -> str:
        if self.success:
            return f"Booked {self.event_id}: {self.message or ''}".strip()
        return f"Booking failed: {self.error}"
