# File: therapy_booking/core/availability_manager.py
"""
Availability management for the practice calendar.

Reads derive the availability grid from a fresh snapshot of calendar events on
every call. Writes insert or delete marker events; nothing else holds state.
All operations report failure through result objects instead of raising.
"""

import datetime
import time
import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Optional

import pytz

from therapy_booking.core.booking_guard import SlotLeaseRegistry
from therapy_booking.core.config_manager import Config
from therapy_booking.core.consistency import BackoffPolicy, wait_for
from therapy_booking.models import (
    AvailabilityResult,
    AvailabilitySettings,
    AvailabilityType,
    BookingResult,
    CalendarEvent,
    MutationResult,
    SessionType,
    SlotStatus,
    localize,
    parse_date,
    parse_hhmm,
)
from therapy_booking.models.common import day_bounds, format_hhmm, hhmm_from_minutes, minutes_of_day
from therapy_booking.processors.accommodation import (
    apply_intelligent_filtering,
    filter_for_session_type,
    slots_needed,
)
from therapy_booking.processors.grid_builder import GridBuilder, get_extra_slots
from therapy_booking.services.event_store import EventNotFoundError, EventStore, EventStoreError
from therapy_booking.utils.logger import setup_logger

logger = setup_logger(__name__)

# Window searched when locating a marker to delete
MARKER_SEARCH_WINDOW = datetime.timedelta(hours=1)
BOOKING_WINDOW_DAYS = 28


class AvailabilityManager:
    """
    Entry point for availability reads and admin mutations.

    Coordinates the event store, the grid builder and the booking guard.
    """

    def __init__(
        self,
        store: EventStore,
        settings: Optional[AvailabilitySettings] = None,
        lease_registry: Optional[SlotLeaseRegistry] = None,
        backoff: Optional[BackoffPolicy] = None,
        now: Optional[Callable[[], datetime.datetime]] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            store: Event store holding the practice calendar
            settings: Slot processing settings (default: from Config)
            lease_registry: Booking lease table (default: a fresh registry)
            backoff: Consistency wait policy (default: from Config)
            now: Clock returning an aware datetime, injectable for tests
            sleep: Sleep function used while waiting for consistency
        """
        self.store = store
        self.settings = settings or AvailabilitySettings.from_config()
        self.grid_builder = GridBuilder(self.settings)
        self.resolver = self.grid_builder.resolver
        self.leases = lease_registry or SlotLeaseRegistry()
        self.backoff = backoff or BackoffPolicy()
        self._now = now or (lambda: datetime.datetime.now(pytz.utc))
        self._sleep = sleep

    # ==================== Helpers ====================

    @property
    def tz(self) -> pytz.BaseTzInfo:
        return self.settings.tz

    def today(self) -> datetime.date:
        return self._now().astimezone(self.tz).date()

    def _slot_start(self, date, time) -> datetime.datetime:
        return localize(parse_date(date), parse_hhmm(time), self.tz)

    def _window(self, start_date: datetime.date, days: int):
        time_min, _ = day_bounds(start_date, self.tz)
        time_max, _ = day_bounds(start_date + datetime.timedelta(days=days), self.tz)
        return time_min, time_max

    # ==================== Reads ====================

    def get_availability(
        self,
        days_ahead: Optional[int] = None,
        start_date: Optional[datetime.date] = None
    ) -> AvailabilityResult:
        """
        Build the raw availability grid (admin view).

        Args:
            days_ahead: Days to cover (default: settings.days_ahead)
            start_date: First day (default: today in the practice timezone)

        Returns:
            AvailabilityResult; a failed read carries an empty grid
        """
        days_ahead = self.settings.days_ahead if days_ahead is None else days_ahead
        start_date = start_date or self.today()
        time_min, time_max = self._window(start_date, days_ahead)

        try:
            events = self.store.list_events(time_min, time_max)
        except EventStoreError as e:
            logger.error(f"Failed to get availability from calendar: {e}", exc_info=True)
            return AvailabilityResult(success=False, slots=[], error=str(e))

        slots = self.grid_builder.build_grid(events, days_ahead, start_date)
        logger.info(f"Availability grid: {len(slots)} slots over {days_ahead} days from {len(events)} events")
        return AvailabilityResult(success=True, slots=slots)

    def _slots_in_range(
        self,
        start_date,
        end_date,
        session_minutes: int
    ) -> AvailabilityResult:
        """Available grid slots between two dates, inclusive, with session-length ends."""
        first = parse_date(start_date)
        last = parse_date(end_date)
        if last < first:
            return AvailabilityResult(success=False, error=f"End date {last} is before start date {first}")

        result = self.get_availability(days_ahead=(last - first).days + 1, start_date=first)
        if not result.success:
            return result

        length = datetime.timedelta(minutes=session_minutes)
        slots = [
            replace(slot, end=slot.start + length)
            for slot in result.slots
            if slot.available and slot.status is SlotStatus.AVAILABLE
        ]
        return AvailabilityResult(success=True, slots=slots)

    def get_available_time_slots(
        self,
        start_date,
        end_date,
        intelligent_filtering: bool = True
    ) -> AvailabilityResult:
        """
        Available slots between two dates (inclusive).

        Args:
            start_date: First date (date or 'YYYY-MM-DD')
            end_date: Last date (date or 'YYYY-MM-DD')
            intelligent_filtering: Patient mode; keep only slots that fit a
                therapy session or a consultation and tag them. Admin mode
                (False) returns every available slot.
        """
        therapy = self.settings.duration_for(SessionType.THERAPY)
        consultation = self.settings.duration_for(SessionType.CONSULTATION)
        try:
            result = self._slots_in_range(start_date, end_date, therapy)
        except ValueError as e:
            return AvailabilityResult(success=False, error=str(e))
        if not result.success:
            return result

        if not intelligent_filtering:
            logger.info(f"Found {len(result.slots)} raw available slots (admin mode)")
            return result

        slots = apply_intelligent_filtering(
            result.slots, therapy, consultation, self.settings.slot_minutes
        )
        logger.info(f"Found {len(result.slots)} raw slots, filtered to {len(slots)} bookable slots (patient mode)")
        return AvailabilityResult(success=True, slots=slots)

    def get_bookable_slots(
        self,
        session_type: SessionType,
        start_date=None,
        end_date=None
    ) -> AvailabilityResult:
        """
        Slots that can start a session of the given type.
        Defaults to the next four weeks.
        """
        duration = self.settings.duration_for(session_type)
        try:
            first = parse_date(start_date) if start_date else self.today()
            last = parse_date(end_date) if end_date else first + datetime.timedelta(days=BOOKING_WINDOW_DAYS)
            result = self._slots_in_range(first, last, duration)
        except ValueError as e:
            return AvailabilityResult(success=False, error=str(e))
        if not result.success:
            return result

        slots = filter_for_session_type(result.slots, session_type, self.settings)
        logger.info(f"Filtered to {len(slots)} bookable slots for {session_type.value}")
        return AvailabilityResult(success=True, slots=slots)

    def get_extra_slots(self, days_ahead: Optional[int] = None) -> AvailabilityResult:
        """EXTRA_SLOT markers in the upcoming window."""
        days_ahead = self.settings.days_ahead if days_ahead is None else days_ahead
        time_min, time_max = self._window(self.today(), days_ahead)
        try:
            events = self.store.list_events(time_min, time_max)
        except EventStoreError as e:
            logger.error(f"Failed to list extra slots: {e}", exc_info=True)
            return AvailabilityResult(success=False, error=str(e))
        return AvailabilityResult(success=True, slots=get_extra_slots(events, self.settings))

    # ==================== Marker writes ====================

    def _marker(
        self,
        availability_type: AvailabilityType,
        summary: str,
        description: str,
        start: datetime.datetime,
        end: datetime.datetime,
        reason: str,
        extra: Optional[Dict[str, str]] = None,
        all_day: bool = False,
        recurrence: Optional[List[str]] = None
    ) -> CalendarEvent:
        metadata = {
            'availabilityType': availability_type.value,
            'reason': reason,
            'createdBy': Config.CREATED_BY,
        }
        metadata.update(extra or {})
        return CalendarEvent(
            summary=summary,
            description=description,
            start=start,
            end=end,
            private_metadata=metadata,
            all_day=all_day,
            recurrence=recurrence or [],
            color_id=Config.MARKER_COLORS.get(availability_type.value),
        )

    def _insert(self, event: CalendarEvent, message: str, operation: str) -> MutationResult:
        try:
            event_id = self.store.insert_event(event)
        except EventStoreError as e:
            logger.error(f"Failed to {operation}: {e}", exc_info=True)
            return MutationResult.failed(str(e))
        logger.info(message)
        return MutationResult(success=True, event_id=event_id, message=message)

    def add_availability_slot(
        self,
        date,
        start_time,
        duration_hours: float = 0.5,
        reason: str = "Available for booking"
    ) -> MutationResult:
        """Mark time as available for booking."""
        try:
            start = self._slot_start(date, start_time)
        except ValueError as e:
            return MutationResult.failed(str(e))
        if duration_hours <= 0:
            return MutationResult.failed("Duration must be positive")

        label = format_hhmm(start.timetz())
        event = self._marker(
            AvailabilityType.AVAILABLE_SLOT,
            summary=f"AVAILABLE: {label}",
            description=f"Available slot: {reason}",
            start=start,
            end=start + datetime.timedelta(hours=duration_hours),
            reason=reason,
            extra={'slotDuration': str(duration_hours)},
        )
        return self._insert(
            event,
            f"Available slot created for {start.date()} at {label}",
            "add availability slot",
        )

    def block_time_slot(
        self,
        date,
        start_time,
        duration_hours: float = 1,
        reason: str = "Blocked",
        recurring: bool = False
    ) -> MutationResult:
        """Block a time range, optionally repeating weekly."""
        try:
            start = self._slot_start(date, start_time)
        except ValueError as e:
            return MutationResult.failed(str(e))
        if duration_hours <= 0:
            return MutationResult.failed("Duration must be positive")

        event = self._marker(
            AvailabilityType.BLOCKED_SLOT,
            summary=f"{self.settings.blocked_prefix}{reason}",
            description=f"Time slot blocked: {reason}",
            start=start,
            end=start + datetime.timedelta(hours=duration_hours),
            reason=reason,
            recurrence=['RRULE:FREQ=WEEKLY'] if recurring else None,
        )
        return self._insert(
            event,
            f"Time slot blocked: {start.date()} {format_hhmm(start.timetz())} - {reason}",
            "block time slot",
        )

    def block_entire_day(self, date, reason: str = "Day blocked") -> MutationResult:
        """Block the working hours of one day."""
        try:
            day = parse_date(date)
        except ValueError as e:
            return MutationResult.failed(str(e))

        event = self._marker(
            AvailabilityType.BLOCKED_SLOT,
            summary=f"{Config.marker_prefix('DAY BLOCKED')}{reason}",
            description=f"Entire working day blocked: {reason}",
            start=localize(day, self.settings.working_day_start, self.tz),
            end=localize(day, self.settings.working_day_end, self.tz),
            reason=reason,
            extra={'blockType': 'FULL_DAY'},
        )
        return self._insert(event, f"Full day blocked: {day} - {reason}", "block full day")

    def block_vacation(self, start_date, end_date, reason: str = "Vacation") -> MutationResult:
        """Block whole days from start_date through end_date (inclusive)."""
        try:
            first = parse_date(start_date)
            last = parse_date(end_date)
        except ValueError as e:
            return MutationResult.failed(str(e))
        if last < first:
            return MutationResult.failed(f"Vacation end {last} is before start {first}")

        event = self._marker(
            AvailabilityType.VACATION,
            summary=f"{Config.marker_prefix('VACATION')}{reason}",
            description=f"Vacation period: {reason}",
            start=localize(first, datetime.time.min, self.tz),
            end=localize(last + datetime.timedelta(days=1), datetime.time.min, self.tz),
            reason=reason,
            all_day=True,
        )
        return self._insert(event, f"Vacation blocked: {first} to {last} - {reason}", "block vacation")

    def add_extra_time_slot(self, date, time, reason: str = "Extra availability") -> MutationResult:
        """Add one hour of availability outside normal working hours."""
        try:
            start = self._slot_start(date, time)
        except ValueError as e:
            return MutationResult.failed(str(e))

        event = self._marker(
            AvailabilityType.EXTRA_SLOT,
            summary=f"{Config.marker_prefix('EXTRA SLOT')}{reason}",
            description=f"Additional availability: {reason}",
            start=start,
            end=start + datetime.timedelta(hours=1),
            reason=reason,
        )
        return self._insert(
            event,
            f"Extra slot added: {start.date()} {format_hhmm(start.timetz())} - {reason}",
            "add extra slot",
        )

    def modify_working_day(
        self,
        date,
        start_time,
        end_time,
        reason: str = "Modified hours"
    ) -> MutationResult:
        """Record changed working hours for one day."""
        try:
            start = self._slot_start(date, start_time)
            end = self._slot_start(date, end_time)
        except ValueError as e:
            return MutationResult.failed(str(e))
        if end <= start:
            return MutationResult.failed("Modified working hours must end after they start")

        new_start = format_hhmm(start.timetz())
        new_end = format_hhmm(end.timetz())
        event = self._marker(
            AvailabilityType.MODIFIED_DAY,
            summary=f"{Config.marker_prefix('MODIFIED HOURS')}{new_start}-{new_end}",
            description=f"Working hours modified: {reason}",
            start=start,
            end=end,
            reason=reason,
            extra={
                'originalStart': format_hhmm(self.settings.working_day_start),
                'originalEnd': format_hhmm(self.settings.working_day_end),
                'newStart': new_start,
                'newEnd': new_end,
            },
        )
        return self._insert(
            event,
            f"Working hours modified: {start.date()} {new_start}-{new_end}",
            "modify working day",
        )

    # ==================== Marker deletes ====================

    def _remove_marker(self, availability_type: AvailabilityType, date, time, label: str) -> MutationResult:
        """
        Delete the marker of the given type found at date/time.
        A missing marker counts as success.
        """
        try:
            start = self._slot_start(date, time)
        except ValueError as e:
            return MutationResult.failed(str(e))
        where = f"{start.date()} at {format_hhmm(start.timetz())}"

        try:
            candidates = self.store.find_events_by_metadata(
                'availabilityType', availability_type.value, start, start + MARKER_SEARCH_WINDOW
            )
        except EventStoreError as e:
            logger.error(f"Failed to look up {label} for {where}: {e}", exc_info=True)
            return MutationResult.failed(str(e))

        if not candidates:
            logger.info(f"No {label} found for {where}")
            return MutationResult(success=True, message=f"No {label} found for {where} (already not available)")

        # Prefer the marker covering the requested instant
        target = next((e for e in candidates if e.contains(start)), candidates[0])

        try:
            self.store.delete_event(target.event_id)
        except EventNotFoundError:
            logger.info(f"{label} {target.event_id} was already deleted")
            return MutationResult(success=True, message=f"No {label} found for {where} (already not available)")
        except EventStoreError as e:
            logger.error(f"Failed to delete {label} {target.event_id}: {e}", exc_info=True)
            return MutationResult.failed(str(e))

        logger.info(f"Removed {label} for {where}")
        return MutationResult(success=True, event_id=target.event_id, message=f"Removed {label} for {where}")

    def remove_availability_slot(self, date, time) -> MutationResult:
        """Delete the availability marker at date/time."""
        return self._remove_marker(AvailabilityType.AVAILABLE_SLOT, date, time, "availability slot")

    def unblock_time_slot(self, date, time) -> MutationResult:
        """Delete the blocking marker at date/time."""
        return self._remove_marker(AvailabilityType.BLOCKED_SLOT, date, time, "blocking event")

    # ==================== Admin actions ====================

    def apply_admin_action(self, action: str, **payload) -> MutationResult:
        """
        Dispatch an admin calendar action.

        Payload keys: date, time, hours, reason, recurring, startDate, endDate,
        newStartTime, newEndTime.
        """
        reason = payload.get('reason') or None

        def hours(default: float) -> float:
            value = payload.get('hours')
            return default if value in (None, '') else float(value)

        handlers: Dict[str, Callable[[], MutationResult]] = {
            'make_available': lambda: self.add_availability_slot(
                payload['date'], payload['time'],
                hours(0.5), reason or "Available for booking"),
            'make_unavailable': lambda: self.remove_availability_slot(payload['date'], payload['time']),
            'block_slot': lambda: self.block_time_slot(
                payload['date'], payload['time'],
                hours(1), reason or "Blocked", bool(payload.get('recurring'))),
            'unblock_slot': lambda: self.unblock_time_slot(payload['date'], payload['time']),
            'block_day': lambda: self.block_entire_day(payload['date'], reason or "Day blocked"),
            'block_vacation': lambda: self.block_vacation(
                payload['startDate'], payload['endDate'], reason or "Vacation"),
            'add_extra_slot': lambda: self.add_extra_time_slot(
                payload['date'], payload['time'], reason or "Extra availability"),
            'modify_working_day': lambda: self.modify_working_day(
                payload['date'], payload['newStartTime'], payload['newEndTime'], reason or "Modified hours"),
        }

        handler = handlers.get(action)
        if handler is None:
            logger.warning(f"Unknown admin action: {action}")
            return MutationResult.failed(f"Unknown action: {action}")

        try:
            return handler()
        except KeyError as e:
            return MutationResult.failed(f"Missing field for {action}: {e.args[0]}")
        except (ValueError, TypeError) as e:
            logger.warning(f"Invalid payload for {action}: {e}")
            return MutationResult.failed(f"Invalid value for {action}: {e}")

    # ==================== Booking ====================

    def _find_booking(self, booking_token: str, day: datetime.date) -> Optional[CalendarEvent]:
        time_min, time_max = day_bounds(day, self.tz)
        matches = self.store.find_events_by_metadata('bookingToken', booking_token, time_min, time_max)
        return matches[0] if matches else None

    def book_session(
        self,
        date,
        time,
        session_type: SessionType,
        patient_email: str,
        patient_name: str = "",
        booking_token: Optional[str] = None
    ) -> BookingResult:
        """
        Write a session event after re-checking the slot against the calendar.

        Steps: idempotency lookup by booking token, lease the cells, re-read
        the day and verify every cell is still available, insert, confirm.
        """
        token = booking_token or uuid.uuid4().hex
        try:
            day = parse_date(date)
            start = self._slot_start(day, time)
        except ValueError as e:
            return BookingResult(success=False, error=str(e))

        if start <= self._now():
            return BookingResult(success=False, error="Cannot book a slot in the past")
        if self.tz.normalize(start).time() != start.time():
            return BookingResult(success=False, error=f"{day} {time} does not exist in {self.settings.timezone}")

        duration = self.settings.duration_for(session_type)
        step = self.settings.slot_minutes
        first_minute = minutes_of_day(format_hhmm(start.timetz()))
        if first_minute % step != 0:
            return BookingResult(success=False, error=f"Sessions must start on a {step}-minute boundary")
        needed = slots_needed(duration, step)
        if first_minute + needed * step > 24 * 60:
            return BookingResult(success=False, error="Session would run past midnight")
        cell_times = [hhmm_from_minutes(first_minute + k * step) for k in range(needed)]

        try:
            existing = self._find_booking(token, day)
        except EventStoreError as e:
            logger.error(f"Booking lookup failed for {token}: {e}", exc_info=True)
            return BookingResult(success=False, error=str(e))
        if existing is not None:
            logger.info(f"Booking {token} already written as {existing.event_id}")
            return BookingResult(success=True, event_id=existing.event_id,
                                 message="Booking already exists", already_existed=True)

        leases = self.leases.acquire([(day, t) for t in cell_times], token)
        if leases is None:
            return BookingResult(success=False, error="Slot is being booked by someone else")

        try:
            time_min, time_max = day_bounds(day, self.tz)
            events = self.store.list_events(time_min, time_max)
            for cell in cell_times:
                status = self.resolver.resolve(events, day, cell)
                if status.event_type is not SlotStatus.AVAILABLE:
                    self.leases.release(leases)
                    return BookingResult(success=False, error=f"Slot {day} {cell} is no longer available ({status.reason})")

            end = start + datetime.timedelta(minutes=duration)
            clash = next(
                (e for e in events if self.resolver.classifier.is_session(e) and e.overlaps(start, end)),
                None,
            )
            if clash is not None:
                self.leases.release(leases)
                return BookingResult(success=False, error=f"Slot {day} {cell_times[0]} overlaps session {clash.event_id}")

            event = CalendarEvent(
                summary=f"{self.settings.session_summary_marker} - {patient_name}".strip(" -"),
                description=f"{session_type.value.title()} session ({duration} min)",
                start=start,
                end=end,
                attendees=[{'email': patient_email, 'displayName': patient_name}] if patient_email else [],
                private_metadata={
                    'therapySession': 'true',
                    'sessionType': session_type.value,
                    'bookingToken': token,
                    'createdBy': 'booking',
                },
                color_id=Config.MARKER_COLORS['SESSION'],
            )
            event_id = self.store.insert_event(event)
        except EventStoreError as e:
            self.leases.release(leases)
            logger.error(f"Booking {token} failed: {e}", exc_info=True)
            return BookingResult(success=False, error=str(e))

        self.leases.confirm(leases)
        logger.info(f"Booked {session_type.value} session {day} {cell_times[0]} as {event_id}")
        return BookingResult(success=True, event_id=event_id, message=f"Session booked for {day} at {cell_times[0]}")

    def wait_for_booking(self, booking_token: str, date) -> Optional[CalendarEvent]:
        """
        Poll with backoff until the booking event is visible in the store.

        Returns None when the event never shows up or the date is malformed.
        """
        try:
            day = parse_date(date)
        except ValueError as e:
            logger.error(f"Cannot wait for booking {booking_token}: {e}")
            return None
        return wait_for(
            lambda: self._find_booking(booking_token, day),
            policy=self.backoff,
            sleep=self._sleep,
            description=f"booking {booking_token}",
        )
