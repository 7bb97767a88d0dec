# File: tests/conftest.py
"""
Pytest configuration and shared fixtures.
Provides reusable settings, events and mocks for all tests.
"""

import os
import sys
from datetime import date, datetime, time, timedelta
from pathlib import Path
from unittest.mock import Mock

import pytest
import pytz

# Keep test runs from writing daily log files
os.environ.setdefault("LOG_DIR", "")

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from therapy_booking.core.availability_manager import AvailabilityManager
from therapy_booking.core.booking_guard import SlotLeaseRegistry
from therapy_booking.core.consistency import BackoffPolicy
from therapy_booking.models import AvailabilitySettings, CalendarEvent, localize
from therapy_booking.services.memory_store import InMemoryEventStore

LISBON = pytz.timezone("Europe/Lisbon")

# A Monday in winter time (Lisbon == UTC)
MONDAY = date(2025, 3, 10)
# "Now" for manager tests: one week before MONDAY
FIXED_NOW = datetime(2025, 3, 3, 8, 0, tzinfo=pytz.utc)


# ==================== Configuration Fixtures ====================

@pytest.fixture
def settings():
    """Default practice settings, independent of the environment."""
    return AvailabilitySettings(timezone="Europe/Lisbon")


@pytest.fixture
def heuristic_settings():
    """Settings with summary/attendee session guessing enabled."""
    return AvailabilitySettings(timezone="Europe/Lisbon", session_heuristics=True)


# ==================== Calendar Event Fixtures ====================

@pytest.fixture
def make_event():
    """Factory fixture for events on MONDAY (or another day) in Lisbon time."""
    def _create(
        start: str,
        end: str,
        availability_type: str = None,
        day: date = MONDAY,
        event_id: str = None,
        summary: str = "",
        metadata: dict = None,
        attendees: list = None,
        all_day: bool = False
    ) -> CalendarEvent:
        private = dict(metadata or {})
        if availability_type:
            private['availabilityType'] = availability_type
        start_h, start_m = map(int, start.split(':'))
        end_h, end_m = map(int, end.split(':'))
        start_dt = localize(day, time(start_h, start_m), LISBON)
        end_dt = localize(day, time(end_h, end_m), LISBON)
        if end_dt <= start_dt and (end_h, end_m) == (0, 0):
            end_dt = localize(day + timedelta(days=1), time(0, 0), LISBON)
        return CalendarEvent(
            summary=summary or (availability_type or "Event"),
            start=start_dt,
            end=end_dt,
            event_id=event_id,
            private_metadata=private,
            attendees=list(attendees or []),
            all_day=all_day,
        )

    return _create


@pytest.fixture
def available_morning(make_event):
    """AVAILABLE_SLOT 09:00-12:00 on MONDAY."""
    return make_event("09:00", "12:00", "AVAILABLE_SLOT", event_id="avail_1")


@pytest.fixture
def booked_session(make_event):
    """A 50-minute therapy session at 10:00 on MONDAY."""
    return make_event(
        "10:00", "10:50",
        event_id="session_1",
        summary="Therapy Session - Ana",
        metadata={'therapySession': 'true', 'sessionType': 'therapy'},
    )


# ==================== Store and Manager Fixtures ====================

@pytest.fixture
def memory_store():
    """Empty in-memory event store."""
    return InMemoryEventStore()


@pytest.fixture
def fast_backoff():
    """Backoff policy with no real delays."""
    return BackoffPolicy(max_attempts=3, initial_delay=0.0, multiplier=1.0, max_delay=0.0, jitter=0.0)


@pytest.fixture
def manager(memory_store, settings, fast_backoff):
    """AvailabilityManager over the in-memory store with a frozen clock."""
    return AvailabilityManager(
        memory_store,
        settings=settings,
        lease_registry=SlotLeaseRegistry(ttl_seconds=60),
        backoff=fast_backoff,
        now=lambda: FIXED_NOW,
        sleep=lambda seconds: None,
    )


# ==================== Mock Service Fixtures ====================

@pytest.fixture
def mock_calendar_service():
    """Mock Google Calendar service."""
    mock = Mock()
    mock.events().list().execute.return_value = {'items': []}
    mock.events().insert().execute.return_value = {'id': 'new_event_id'}
    mock.events().delete().execute.return_value = None
    return mock


# ==================== Pytest Markers ====================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
