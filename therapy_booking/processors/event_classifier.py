# File: therapy_booking/processors/event_classifier.py
"""
Event classification module.
Maps a single calendar event to the slot status it signals, using the
private extended properties written by the availability tools.
"""

from typing import Optional

from therapy_booking.models import (
    AvailabilitySettings,
    AvailabilityType,
    CalendarEvent,
    SlotClassification,
    SlotStatus,
)

AVAILABLE_REASON = "Available for booking"
BLOCKED_REASON = "Blocked"
VACATION_REASON = "Vacation"
MODIFIED_REASON = "Modified working hours"
SESSION_REASON = "Patient Session"


class EventClassifier:
    """
    Classifies events by their `availabilityType` metadata.

    Foreign events (meetings, personal appointments) fall through to None so
    they never count as availability signals.
    """

    def __init__(self, settings: Optional[AvailabilitySettings] = None):
        self.settings = settings or AvailabilitySettings.from_config()

    def classify(self, event: CalendarEvent) -> Optional[SlotClassification]:
        """
        Classify one event.

        Args:
            event: Calendar event to inspect

        Returns:
            SlotClassification, or None when the event carries no signal
        """
        metadata = event.private_metadata or {}
        availability_type = AvailabilityType.parse(metadata.get('availabilityType'))

        if availability_type is AvailabilityType.AVAILABLE_SLOT:
            return SlotClassification(
                available=True,
                reason=metadata.get('reason') or AVAILABLE_REASON,
                event_type=SlotStatus.AVAILABLE,
                event_id=event.event_id,
            )

        if availability_type is AvailabilityType.BLOCKED_SLOT:
            return SlotClassification(
                available=False,
                reason=self._blocked_reason(event),
                event_type=SlotStatus.BLOCKED,
                event_id=event.event_id,
            )

        if availability_type is AvailabilityType.VACATION:
            return SlotClassification(
                available=False,
                reason=VACATION_REASON,
                event_type=SlotStatus.VACATION,
                event_id=event.event_id,
            )

        if availability_type is AvailabilityType.MODIFIED_DAY:
            return SlotClassification(
                available=True,
                reason=MODIFIED_REASON,
                event_type=SlotStatus.MODIFIED,
                event_id=event.event_id,
            )

        # EXTRA_SLOT and anything unrecognised: only a patient session is a signal
        if self.is_session(event):
            return SlotClassification(
                available=False,
                reason=SESSION_REASON,
                event_type=SlotStatus.BOOKED,
                event_id=event.event_id,
            )

        return None

    def is_session(self, event: CalendarEvent) -> bool:
        """Explicit therapySession flag, or the legacy heuristics when enabled."""
        if event.is_therapy_session:
            return True
        if not self.settings.session_heuristics:
            return False

        if self.settings.session_summary_marker and self.settings.session_summary_marker in (event.summary or ''):
            return True
        return any(
            '@' in (attendee.get('email') or '')
            for attendee in event.attendees
            if not attendee.get('organizer') and not attendee.get('self')
        )

    def _blocked_reason(self, event: CalendarEvent) -> str:
        text = (event.private_metadata or {}).get('reason') or event.summary or ''
        prefix = self.settings.blocked_prefix
        if prefix and text.startswith(prefix):
            text = text[len(prefix):]
        return text.strip() or BLOCKED_REASON


def classify(event: CalendarEvent, settings: Optional[AvailabilitySettings] = None) -> Optional[SlotClassification]:
    """Module-level shortcut for one-off classification."""
    return EventClassifier(settings).classify(event)
