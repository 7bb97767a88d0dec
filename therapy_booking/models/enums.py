# File: therapy_booking/models/enums.py

from enum import Enum
from typing import Optional


class AvailabilityType(Enum):
    """Values of the `availabilityType` private property on marker events."""
    AVAILABLE_SLOT = "AVAILABLE_SLOT"
    BLOCKED_SLOT = "BLOCKED_SLOT"
    VACATION = "VACATION"
    MODIFIED_DAY = "MODIFIED_DAY"
    EXTRA_SLOT = "EXTRA_SLOT"

    @classmethod
    def parse(cls, value) -> Optional["AvailabilityType"]:
        """Lenient lookup; foreign or missing values map to None."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class SlotStatus(Enum):
    """Resolved status of a half-hour slot."""
    AVAILABLE = "available"
    BLOCKED = "blocked"
    VACATION = "vacation"
    BOOKED = "booked"
    MODIFIED = "modified"
    EXTRA = "extra"
    UNAVAILABLE = "unavailable"  # No explicit signal


class SessionType(Enum):
    """Session kinds a patient can book."""
    THERAPY = "therapy"
    CONSULTATION = "consultation"


class LeaseState(Enum):
    """Lifecycle of a slot reservation during booking."""
    FREE = "free"
    LEASED = "leased"
    BOOKED = "booked"
