# File: therapy_booking/models/common.py

import datetime
from typing import Optional, Tuple

import pytz


def parse_iso_datetime(date_str: Optional[str]) -> Optional[datetime.datetime]:
    """Robustly parse ISO date strings with 'Z' or offsets."""
    if not date_str:
        return None
    try:
        # fromisoformat only accepts 'Z' from Python 3.11 on
        return datetime.datetime.fromisoformat(date_str.replace('Z', '+00:00'))
    except ValueError:
        return None


def parse_date(value) -> datetime.date:
    """Accept a date, a datetime or a YYYY-MM-DD string."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return datetime.datetime.strptime(str(value), "%Y-%m-%d").date()


def parse_hhmm(value) -> datetime.time:
    """Accept a time or an 'HH:MM' string."""
    if isinstance(value, datetime.time):
        return value
    return datetime.datetime.strptime(str(value), "%H:%M").time()


def format_hhmm(value: datetime.time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def minutes_of_day(time_str: str) -> int:
    """'09:30' -> 570"""
    hours, minutes = time_str.split(':')
    return int(hours) * 60 + int(minutes)


def hhmm_from_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def localize(day: datetime.date, time: datetime.time, tz: pytz.BaseTzInfo) -> datetime.datetime:
    """
    Attach the configured timezone to a wall-clock date and time.

    Non-existent times (spring-forward gap) resolve to the standard-time
    offset instead of raising.
    """
    naive = datetime.datetime.combine(day, time)
    return tz.localize(naive, is_dst=False)


def day_bounds(day: datetime.date, tz: pytz.BaseTzInfo) -> Tuple[datetime.datetime, datetime.datetime]:
    """Return [local midnight, next local midnight) for the given day."""
    start = localize(day, datetime.time.min, tz)
    end = localize(day + datetime.timedelta(days=1), datetime.time.min, tz)
    return start, end


def parse_gc_time(payload: dict, tz: pytz.BaseTzInfo) -> Tuple[Optional[datetime.datetime], bool]:
    """
    Parse a Google Calendar start/end object.

    Returns:
        (aware datetime or None, is_all_day)
    """
    if not payload:
        return None, False

    if payload.get('dateTime'):
        parsed = parse_iso_datetime(payload['dateTime'])
        if parsed is not None and parsed.tzinfo is None:
            event_tz = pytz.timezone(payload['timeZone']) if payload.get('timeZone') else tz
            parsed = event_tz.localize(parsed)
        return parsed, False

    if payload.get('date'):
        try:
            day = datetime.datetime.strptime(payload['date'], "%Y-%m-%d").date()
        except ValueError:
            return None, True
        # All-day events start at local midnight in the practice timezone
        return localize(day, datetime.time.min, tz), True

    return None, False
