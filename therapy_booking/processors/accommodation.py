# File: therapy_booking/processors/accommodation.py
"""
Duration accommodation filtering.

A slot can host a session when it starts a run of consecutive *available*
grid cells long enough to cover the session. Booked cells never count.
"""

import math
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Set

from therapy_booking.models import AvailabilitySettings, SessionType, Slot, SlotStatus
from therapy_booking.models.common import hhmm_from_minutes, minutes_of_day

THERAPY_MINUTES = 50
CONSULTATION_MINUTES = 30


def slots_needed(duration_minutes: int, slot_minutes: int = 30) -> int:
    """Number of grid cells a session of the given length occupies."""
    if duration_minutes <= 0:
        raise ValueError(f"Session duration must be positive: {duration_minutes}")
    return math.ceil(duration_minutes / slot_minutes)


def is_open(slot: Slot) -> bool:
    """A cell that can be counted toward a run."""
    return slot.available and slot.status is SlotStatus.AVAILABLE


def group_by_date(slots: List[Slot]) -> Dict[date, List[Slot]]:
    """Group slots per date, each day sorted by time."""
    by_date: Dict[date, List[Slot]] = defaultdict(list)
    for slot in slots:
        by_date[slot.date].append(slot)
    for day_slots in by_date.values():
        day_slots.sort(key=lambda s: s.time)
    return dict(sorted(by_date.items()))


def _open_times(day_slots: List[Slot]) -> Set[str]:
    return {s.time for s in day_slots if is_open(s)}


def can_accommodate(
    day_slots: List[Slot],
    slot: Slot,
    duration_minutes: int,
    slot_minutes: int = 30,
    _open: Optional[Set[str]] = None
) -> bool:
    """
    Check if a session of the given length can start at `slot`.

    Args:
        day_slots: All grid slots of the slot's day
        slot: Candidate start slot
        duration_minutes: Session length
        slot_minutes: Grid cell length

    Returns:
        True when every needed cell exists on the same day and is available
    """
    open_times = _open if _open is not None else _open_times(day_slots)
    start = minutes_of_day(slot.time)

    for k in range(slots_needed(duration_minutes, slot_minutes)):
        check = start + k * slot_minutes
        # Runs never continue past midnight
        if check >= 24 * 60:
            return False
        if hhmm_from_minutes(check) not in open_times:
            return False
    return True


def filter_for_duration(
    grid: List[Slot],
    duration_minutes: int,
    slot_minutes: int = 30
) -> List[Slot]:
    """
    Keep the slots that can start a session of the given length.

    Returns:
        Matching slots in (date, time) order
    """
    result: List[Slot] = []
    for day_slots in group_by_date(grid).values():
        open_times = _open_times(day_slots)
        for slot in day_slots:
            if is_open(slot) and can_accommodate(day_slots, slot, duration_minutes, slot_minutes, open_times):
                result.append(slot)
    return result


def apply_intelligent_filtering(
    grid: List[Slot],
    therapy_minutes: int = THERAPY_MINUTES,
    consultation_minutes: int = CONSULTATION_MINUTES,
    slot_minutes: int = 30
) -> List[Slot]:
    """
    Tag slots with both accommodation flags and drop those fitting neither.
    This is the patient-facing view; admin views use the raw grid.

    Returns:
        Tagged copies of the qualifying slots, in (date, time) order
    """
    filtered: List[Slot] = []

    for day_slots in group_by_date(grid).values():
        open_times = _open_times(day_slots)
        for slot in day_slots:
            therapy = can_accommodate(day_slots, slot, therapy_minutes, slot_minutes, open_times)
            consultation = can_accommodate(day_slots, slot, consultation_minutes, slot_minutes, open_times)
            if therapy or consultation:
                filtered.append(slot.with_accommodation(therapy, consultation))

    return filtered


def filter_for_session_type(
    grid: List[Slot],
    session_type: SessionType,
    settings: Optional[AvailabilitySettings] = None
) -> List[Slot]:
    """Keep the slots able to host the given kind of session."""
    settings = settings or AvailabilitySettings.from_config()
    return filter_for_duration(grid, settings.duration_for(session_type), settings.slot_minutes)


def group_slots_by_date(slots: List[Slot]) -> List[dict]:
    """
    Shape slots for date-picker consumers.

    Returns:
        [{'date', 'dayOfWeek', 'slots': [{'time', 'start', 'end'}, ...]}, ...]
    """
    return [
        {
            'date': day.isoformat(),
            'dayOfWeek': day.strftime("%A"),
            'slots': [
                {'time': s.time, 'start': s.start.isoformat(), 'end': s.end.isoformat()}
                for s in day_slots
            ],
        }
        for day, day_slots in group_by_date(slots).items()
    ]
