# File: therapy_booking/services/service_factory.py

from typing import Optional
from googleapiclient.discovery import Resource

from therapy_booking.auth.google_auth import get_calendar_service
from therapy_booking.core.availability_manager import AvailabilityManager
from therapy_booking.core.config_manager import Config
from therapy_booking.models import AvailabilitySettings
from therapy_booking.services.calendar_service import GoogleCalendarService
from therapy_booking.services.event_store import EventStore
from therapy_booking.utils.logger import setup_logger

logger = setup_logger(__name__)


class ServiceFactory:
    """Factory for creating service instances."""

    @staticmethod
    def create_event_store(calendar_service: Resource) -> GoogleCalendarService:
        """
        Wrap an authenticated calendar resource in an event store.

        Args:
            calendar_service: Authenticated calendar API resource

        Returns:
            GoogleCalendarService bound to the configured calendar
        """
        return GoogleCalendarService(
            calendar_service,
            calendar_id=Config.CALENDAR_ID,
            timezone=Config.TARGET_TIMEZONE,
            max_results=Config.MAX_RESULTS
        )

    @staticmethod
    def create_availability_manager(
        store: Optional[EventStore] = None,
        settings: Optional[AvailabilitySettings] = None
    ) -> AvailabilityManager:
        """
        Create an availability manager.

        Without a store, authenticates against Google Calendar.

        Raises:
            ConnectionError: If authentication fails
        """
        if store is None:
            logger.info("Authenticating with Google Calendar")
            calendar_service = get_calendar_service()
            if calendar_service is None:
                raise ConnectionError(
                    "Google authentication failed. Run 'python scripts/setup.py' first."
                )
            store = ServiceFactory.create_event_store(calendar_service)

        return AvailabilityManager(store, settings=settings)
