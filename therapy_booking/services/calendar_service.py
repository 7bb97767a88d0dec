# File: therapy_booking/services/calendar_service.py

import datetime
import json
from typing import Any, Callable, Dict, List, Optional

import pytz
from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from therapy_booking.core.config_manager import Config
from therapy_booking.models import CalendarEvent, calendar_event_from_api
from therapy_booking.services.event_store import EventNotFoundError, EventStore, EventStoreError
from therapy_booking.utils.logger import setup_logger

logger = setup_logger(__name__)

NOT_FOUND_STATUSES = (404, 410)


class GoogleCalendarService(EventStore):
    """Event store backed by the Google Calendar v3 API."""

    def __init__(
        self,
        calendar_service: Resource,
        calendar_id: str = Config.CALENDAR_ID,
        timezone: str = Config.TARGET_TIMEZONE,
        max_results: int = Config.MAX_RESULTS
    ):
        """
        Initialize calendar service.

        Args:
            calendar_service: Authenticated Google Calendar API resource
            calendar_id: Calendar to read and write ('primary' by default)
            timezone: Practice timezone, used for all-day events and inserts
            max_results: Page size for listing; no further pages are fetched
        """
        self.service = calendar_service
        self.calendar_id = calendar_id
        self.timezone = timezone
        self.tz = pytz.timezone(timezone)
        self.max_results = max_results

    def list_events(
        self,
        time_min: datetime.datetime,
        time_max: datetime.datetime
    ) -> List[CalendarEvent]:
        """
        Fetch events in the window and convert them to CalendarEvent objects.

        Raises:
            EventStoreError: if the API call fails
        """
        logger.debug(f"Listing events {time_min.isoformat()} -> {time_max.isoformat()}")
        result = self._execute(
            lambda: self.service.events().list(
                calendarId=self.calendar_id,
                timeMin=time_min.isoformat(),
                timeMax=time_max.isoformat(),
                maxResults=self.max_results,
                singleEvents=True,
                orderBy='startTime'
            ).execute(),
            "list events"
        )
        items = result.get('items', [])
        if len(items) >= self.max_results:
            logger.warning(f"Event listing hit the page size of {self.max_results}; later events are ignored")
        return self._convert(items)

    def find_events_by_metadata(
        self,
        key: str,
        value: str,
        time_min: datetime.datetime,
        time_max: datetime.datetime
    ) -> List[CalendarEvent]:
        """Use the privateExtendedProperty filter so matching happens server-side."""
        result = self._execute(
            lambda: self.service.events().list(
                calendarId=self.calendar_id,
                timeMin=time_min.isoformat(),
                timeMax=time_max.isoformat(),
                maxResults=self.max_results,
                singleEvents=True,
                privateExtendedProperty=f'{key}={value}'
            ).execute(),
            f"find events by {key}"
        )
        return self._convert(result.get('items', []))

    def insert_event(self, event: CalendarEvent) -> str:
        body = event.to_api_body(self.timezone)
        created = self._execute(
            lambda: self.service.events().insert(
                calendarId=self.calendar_id,
                body=body
            ).execute(),
            "insert event"
        )
        event_id = created.get('id')
        logger.info(f"Created event {event_id}: {event.summary}")
        return event_id

    def delete_event(self, event_id: str) -> None:
        self._execute(
            lambda: self.service.events().delete(
                calendarId=self.calendar_id,
                eventId=event_id
            ).execute(),
            "delete event"
        )
        logger.info(f"Deleted event {event_id}")

    def _convert(self, items: List[Dict[str, Any]]) -> List[CalendarEvent]:
        typed_events: List[CalendarEvent] = []
        for item in items:
            try:
                typed_events.append(calendar_event_from_api(item, self.tz))
            except (ValueError, TypeError, KeyError) as e:
                logger.warning(f"Could not parse event data for {item.get('summary')}: {e}")
        return typed_events

    def _execute(self, api_call: Callable[[], Any], operation_name: str) -> Any:
        """Run one API call, translating HttpError into EventStoreError."""
        try:
            return api_call()
        except HttpError as e:
            details = self._parse_http_error(e)
            message = f"{operation_name} failed: HTTP {details['status_code']} {details['message']}"
            if details['status_code'] in NOT_FOUND_STATUSES:
                raise EventNotFoundError(message, details['status_code'], details['reason']) from e
            logger.error(message)
            raise EventStoreError(message, details['status_code'], details['reason']) from e
        except (ConnectionError, TimeoutError, OSError) as e:
            logger.error(f"{operation_name} failed: {e}", exc_info=True)
            raise EventStoreError(f"{operation_name} failed: {e}") from e

    @staticmethod
    def _parse_http_error(error: HttpError) -> Dict[str, Any]:
        """Extract status code, reason and message from an HttpError."""
        status_code: Optional[int] = getattr(getattr(error, 'resp', None), 'status', None)
        error_content: Dict[str, Any] = {}
        try:
            error_content = json.loads(error.content.decode("utf-8"))
        except (json.JSONDecodeError, AttributeError, UnicodeDecodeError):
            pass

        error_info = error_content.get("error", {}) if isinstance(error_content, dict) else {}
        errors = error_info.get("errors") or [{}]
        return {
            "status_code": int(status_code) if status_code is not None else None,
            "reason": errors[0].get("reason", "unknown"),
            "message": error_info.get("message", str(error)),
        }
