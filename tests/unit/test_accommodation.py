# File: tests/unit/test_accommodation.py
"""
Unit tests for duration accommodation filtering.
"""

from datetime import date, time, timedelta

import pytest

from therapy_booking.models import SessionType, Slot, SlotStatus, localize
from therapy_booking.processors.accommodation import (
    apply_intelligent_filtering,
    can_accommodate,
    filter_for_duration,
    filter_for_session_type,
    group_slots_by_date,
    slots_needed,
)
from therapy_booking.processors.grid_builder import GridBuilder

MONDAY = date(2025, 3, 10)


@pytest.fixture
def make_slot(settings):
    """Factory fixture for grid slots on MONDAY."""
    def _create(hhmm: str, status: SlotStatus = SlotStatus.AVAILABLE, day: date = MONDAY) -> Slot:
        hours, minutes = map(int, hhmm.split(":"))
        start = localize(day, time(hours, minutes), settings.tz)
        return Slot(
            date=day,
            time=hhmm,
            status=status,
            available=status is SlotStatus.AVAILABLE,
            reason=status.value,
            start=start,
            end=start + timedelta(minutes=30),
        )

    return _create


def times(slots):
    return [s.time for s in slots]


class TestSlotsNeeded:
    """Tests for slots_needed."""

    @pytest.mark.parametrize("duration, expected", [(30, 1), (50, 2), (60, 2), (61, 3), (1, 1)])
    def test_rounds_up(self, duration, expected):
        assert slots_needed(duration) == expected

    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            slots_needed(0)


class TestFilterForDuration:
    """Consecutive-slot checks."""

    def test_three_open_slots(self, make_slot):
        grid = [make_slot("09:00"), make_slot("09:30"), make_slot("10:00")]

        assert times(filter_for_duration(grid, 50)) == ["09:00", "09:30"]
        assert times(filter_for_duration(grid, 30)) == ["09:00", "09:30", "10:00"]

    def test_booked_cell_breaks_run(self, make_slot):
        grid = [make_slot("09:00"), make_slot("09:30"), make_slot("10:00", SlotStatus.BOOKED)]
        assert times(filter_for_duration(grid, 50)) == ["09:00"]

    def test_booked_cell_never_a_candidate(self, make_slot):
        grid = [make_slot("09:00", SlotStatus.BOOKED), make_slot("09:30", SlotStatus.BOOKED)]
        assert filter_for_duration(grid, 30) == []

    def test_gap_breaks_run(self, make_slot):
        grid = [make_slot("09:00"), make_slot("10:00"), make_slot("10:30")]
        assert times(filter_for_duration(grid, 50)) == ["10:00"]

    def test_runs_do_not_cross_days(self, make_slot):
        grid = [make_slot("23:30"), make_slot("00:00", day=MONDAY + timedelta(days=1))]
        assert filter_for_duration(grid, 50) == []

    def test_unordered_input(self, make_slot):
        grid = [make_slot("10:00"), make_slot("09:00"), make_slot("09:30")]
        assert times(filter_for_duration(grid, 60)) == ["09:00", "09:30"]

    def test_can_accommodate_single(self, make_slot):
        day_slots = [make_slot("14:00"), make_slot("14:30")]
        assert can_accommodate(day_slots, day_slots[0], 50)
        assert not can_accommodate(day_slots, day_slots[1], 50)


class TestIntelligentFiltering:
    """Patient-mode tagging."""

    def test_tags_both_flags(self, make_slot):
        grid = [make_slot("09:00"), make_slot("09:30")]
        tagged = apply_intelligent_filtering(grid)

        assert times(tagged) == ["09:00", "09:30"]
        assert tagged[0].can_accommodate_therapy is True
        assert tagged[0].can_accommodate_consultation is True
        assert tagged[1].can_accommodate_therapy is False
        assert tagged[1].can_accommodate_consultation is True

    def test_drops_booked(self, make_slot):
        grid = [make_slot("09:00", SlotStatus.BOOKED), make_slot("09:30")]
        assert times(apply_intelligent_filtering(grid)) == ["09:30"]

    def test_input_left_untouched(self, make_slot):
        grid = [make_slot("09:00")]
        apply_intelligent_filtering(grid)
        assert grid[0].can_accommodate_therapy is None

    def test_filter_for_session_type(self, make_slot, settings):
        grid = [make_slot("09:00"), make_slot("09:30")]
        assert times(filter_for_session_type(grid, SessionType.THERAPY, settings)) == ["09:00"]
        assert times(filter_for_session_type(grid, SessionType.CONSULTATION, settings)) == ["09:00", "09:30"]


class TestGroupSlotsByDate:
    """Date-picker shaping."""

    def test_grouping(self, make_slot):
        tuesday = MONDAY + timedelta(days=1)
        grouped = group_slots_by_date([make_slot("10:00", day=tuesday), make_slot("09:00"), make_slot("09:30")])

        assert [g['date'] for g in grouped] == ["2025-03-10", "2025-03-11"]
        assert grouped[0]['dayOfWeek'] == "Monday"
        assert [s['time'] for s in grouped[0]['slots']] == ["09:00", "09:30"]


def test_end_to_end_scenario(make_event, settings):
    """Two availability markers followed by a 50-minute session."""
    events = [
        make_event("09:00", "09:30", "AVAILABLE_SLOT"),
        make_event("09:30", "10:00", "AVAILABLE_SLOT"),
        make_event("10:00", "10:50", metadata={'therapySession': 'true'}),
    ]
    grid = GridBuilder(settings).build_grid(events, days_ahead=1, start_date=MONDAY)

    # 10:30 starts inside the session, so it is booked as well
    assert [(s.time, s.status) for s in grid] == [
        ("09:00", SlotStatus.AVAILABLE),
        ("09:30", SlotStatus.AVAILABLE),
        ("10:00", SlotStatus.BOOKED),
        ("10:30", SlotStatus.BOOKED),
    ]
    assert times(filter_for_duration(grid, 30)) == ["09:00", "09:30"]
    assert times(filter_for_duration(grid, 50)) == ["09:00"]
