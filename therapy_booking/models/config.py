# File: therapy_booking/models/config.py
"""
Data models for availability engine configuration.
"""

from dataclasses import dataclass, field
from datetime import time
from typing import Dict

import pytz

from .common import parse_hhmm
from .enums import SessionType


@dataclass
class AvailabilitySettings:
    """Snapshot of the settings the slot processors depend on."""
    timezone: str = "Europe/Lisbon"
    slot_minutes: int = 30
    days_ahead: int = 90
    working_day_start: time = time(9, 0)
    working_day_end: time = time(17, 0)
    session_heuristics: bool = False
    session_summary_marker: str = "Therapy Session"
    blocked_prefix: str = "Dr. K - BLOCKED: "
    session_durations: Dict[str, int] = field(default_factory=lambda: {
        SessionType.THERAPY.value: 50,
        SessionType.CONSULTATION.value: 30,
    })

    def __post_init__(self):
        """Convert strings and validate."""
        if isinstance(self.working_day_start, str):
            self.working_day_start = parse_hhmm(self.working_day_start)
        if isinstance(self.working_day_end, str):
            self.working_day_end = parse_hhmm(self.working_day_end)
        if self.slot_minutes <= 0 or (24 * 60) % self.slot_minutes:
            raise ValueError(f"Slot length must divide a day evenly: {self.slot_minutes}")
        if self.working_day_end <= self.working_day_start:
            raise ValueError("Working day must end after it starts")
        pytz.timezone(self.timezone)  # raises UnknownTimeZoneError early

    @property
    def tz(self) -> pytz.BaseTzInfo:
        return pytz.timezone(self.timezone)

    @property
    def slots_per_day(self) -> int:
        return (24 * 60) // self.slot_minutes

    def duration_for(self, session_type: SessionType) -> int:
        return self.session_durations[session_type.value]

    @classmethod
    def from_config(cls) -> 'AvailabilitySettings':
        """Build settings from the environment-backed Config class."""
        from therapy_booking.core.config_manager import Config

        return cls(
            timezone=Config.TARGET_TIMEZONE,
            slot_minutes=Config.SLOT_MINUTES,
            days_ahead=Config.DAYS_AHEAD,
            working_day_start=Config.WORKING_DAY_START,
            working_day_end=Config.WORKING_DAY_END,
            session_heuristics=Config.SESSION_HEURISTICS,
            session_summary_marker=Config.SESSION_SUMMARY_MARKER,
            blocked_prefix=Config.marker_prefix("BLOCKED"),
            session_durations=dict(Config.SESSION_DURATIONS),
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'AvailabilitySettings':
        """Create settings from a dictionary (e.g., loaded from JSON)."""
        defaults = cls()
        return cls(
            timezone=data.get('timezone', defaults.timezone),
            slot_minutes=int(data.get('slot_minutes', defaults.slot_minutes)),
            days_ahead=int(data.get('days_ahead', defaults.days_ahead)),
            working_day_start=data.get('working_day_start', defaults.working_day_start),
            working_day_end=data.get('working_day_end', defaults.working_day_end),
            session_heuristics=bool(data.get('session_heuristics', defaults.session_heuristics)),
            session_summary_marker=data.get('session_summary_marker', defaults.session_summary_marker),
            blocked_prefix=data.get('blocked_prefix', defaults.blocked_prefix),
            session_durations=dict(data.get('session_durations', defaults.session_durations)),
        )
