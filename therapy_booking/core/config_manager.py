# File: therapy_booking/core/config_manager.py
"""
Centralized configuration management for the availability engine.
Loads settings from environment variables (.env supported).
"""

import os
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv

from therapy_booking.models.enums import SessionType

# Load environment variables
load_dotenv()


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration singleton."""

    # Base directory
    BASE_DIR = Path(__file__).parent.parent.parent  # Go up 3 levels from therapy_booking/core/

    # Files
    TOKEN_FILE = Path(os.getenv("GOOGLE_TOKEN_FILE", str(BASE_DIR / "token.json")))
    CREDENTIALS_FILE = Path(os.getenv("GOOGLE_CREDENTIALS_FILE", str(BASE_DIR / "credentials.json")))

    # Google Services
    CALENDAR_ID = os.getenv("CALENDAR_ID", "primary")
    GOOGLE_SCOPES = [
        'https://www.googleapis.com/auth/calendar',
    ]
    MAX_RESULTS = int(os.getenv("CALENDAR_MAX_RESULTS", "1000"))

    # Practice settings
    TARGET_TIMEZONE = os.getenv("TIMEZONE", "Europe/Lisbon")
    DAYS_AHEAD = int(os.getenv("AVAILABILITY_DAYS_AHEAD", "90"))
    SLOT_MINUTES = 30
    WORKING_DAY_START = os.getenv("WORKING_DAY_START", "09:00")
    WORKING_DAY_END = os.getenv("WORKING_DAY_END", "17:00")

    SESSION_DURATIONS: Dict[str, int] = {
        SessionType.THERAPY.value: 50,
        SessionType.CONSULTATION.value: 30,
    }

    # Summary/attendee guessing for events without the therapySession flag
    SESSION_HEURISTICS = _env_flag("SESSION_HEURISTICS", False)
    SESSION_SUMMARY_MARKER = "Therapy Session"

    # Marker event presentation
    PRACTITIONER_LABEL = os.getenv("PRACTITIONER_LABEL", "Dr. K")
    CREATED_BY = "admin"
    MARKER_COLORS: Dict[str, str] = {
        'AVAILABLE_SLOT': '10',  # Green
        'BLOCKED_SLOT': '11',    # Red
        'VACATION': '11',
        'EXTRA_SLOT': '10',
        'MODIFIED_DAY': '5',     # Yellow
        'SESSION': '9',
    }

    # Booking guard
    LEASE_TTL_SECONDS = int(os.getenv("LEASE_TTL_SECONDS", "120"))

    # Consistency wait
    CONSISTENCY_MAX_ATTEMPTS = int(os.getenv("CONSISTENCY_MAX_ATTEMPTS", "5"))
    CONSISTENCY_INITIAL_DELAY = float(os.getenv("CONSISTENCY_INITIAL_DELAY", "1.0"))
    CONSISTENCY_BACKOFF_MULTIPLIER = 2.0
    CONSISTENCY_MAX_DELAY = 10.0
    CONSISTENCY_JITTER = 0.1

    @classmethod
    def marker_prefix(cls, kind: str) -> str:
        """Summary prefix for marker events, e.g. 'Dr. K - BLOCKED: '."""
        return f"{cls.PRACTITIONER_LABEL} - {kind}: "

    @classmethod
    def validate(cls) -> bool:
        """Validate that all required configuration is present."""
        errors: List[str] = []

        if not cls.CREDENTIALS_FILE.exists() and not cls.TOKEN_FILE.exists():
            errors.append(f"Neither credentials.json nor token.json found under {cls.BASE_DIR}")

        try:
            import pytz
            pytz.timezone(cls.TARGET_TIMEZONE)
        except Exception:
            errors.append(f"Unknown timezone: {cls.TARGET_TIMEZONE}")

        if cls.DAYS_AHEAD <= 0:
            errors.append("AVAILABILITY_DAYS_AHEAD must be positive")

        if errors:
            for error in errors:
                print(f"Configuration Error: {error}")
            return False

        return True
