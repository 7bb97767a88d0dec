# File: tests/unit/test_calendar_service.py
"""
Unit tests for the Google Calendar event store and the in-memory store.
"""

import json
from datetime import date, time, timedelta

import httplib2
import pytest
import pytz
from googleapiclient.errors import HttpError

from therapy_booking.models import CalendarEvent, localize
from therapy_booking.services.calendar_service import GoogleCalendarService
from therapy_booking.services.event_store import EventNotFoundError, EventStoreError
from therapy_booking.services.memory_store import InMemoryEventStore

LISBON = pytz.timezone("Europe/Lisbon")
MONDAY = date(2025, 3, 10)
WINDOW = (localize(MONDAY, time.min, LISBON), localize(MONDAY + timedelta(days=1), time.min, LISBON))


def http_error(status, reason="backendError", message="Something failed"):
    """Build an HttpError the way googleapiclient raises it."""
    resp = httplib2.Response({'status': str(status)})
    content = json.dumps({'error': {'message': message, 'errors': [{'reason': reason}]}}).encode('utf-8')
    return HttpError(resp, content)


@pytest.fixture
def service(mock_calendar_service):
    return GoogleCalendarService(mock_calendar_service, calendar_id="primary", timezone="Europe/Lisbon", max_results=50)


def marker(start_hour=9, **kwargs):
    start = localize(MONDAY, time(start_hour, 0), LISBON)
    return CalendarEvent(summary="AVAILABLE: 09:00", start=start, end=start + timedelta(minutes=30), **kwargs)


class TestGoogleCalendarService:
    """Tests for GoogleCalendarService with a mocked API resource."""

    def test_list_events_converts_items(self, service, mock_calendar_service):
        mock_calendar_service.events().list().execute.return_value = {'items': [
            {
                'id': 'e1',
                'summary': 'AVAILABLE: 09:00',
                'start': {'dateTime': '2025-03-10T09:00:00Z'},
                'end': {'dateTime': '2025-03-10T09:30:00Z'},
                'extendedProperties': {'private': {'availabilityType': 'AVAILABLE_SLOT'}},
            },
            {'id': 'broken', 'summary': 'No times'},
        ]}

        events = service.list_events(*WINDOW)

        assert [e.event_id for e in events] == ['e1']
        kwargs = mock_calendar_service.events().list.call_args.kwargs
        assert kwargs['singleEvents'] is True
        assert kwargs['orderBy'] == 'startTime'
        assert kwargs['maxResults'] == 50
        assert kwargs['timeMin'] == WINDOW[0].isoformat()

    def test_list_events_all_day(self, service, mock_calendar_service):
        mock_calendar_service.events().list().execute.return_value = {'items': [{
            'id': 'v1',
            'summary': 'Dr. K - VACATION: Summer',
            'start': {'date': '2025-08-01'},
            'end': {'date': '2025-08-15'},
            'extendedProperties': {'private': {'availabilityType': 'VACATION'}},
        }]}

        event = service.list_events(*WINDOW)[0]

        assert event.all_day is True
        assert event.start == localize(date(2025, 8, 1), time.min, LISBON)

    def test_find_events_by_metadata_filters_server_side(self, service, mock_calendar_service):
        service.find_events_by_metadata('bookingToken', 'tok-1', *WINDOW)
        kwargs = mock_calendar_service.events().list.call_args.kwargs
        assert kwargs['privateExtendedProperty'] == 'bookingToken=tok-1'

    def test_insert_event(self, service, mock_calendar_service):
        event_id = service.insert_event(marker(private_metadata={'availabilityType': 'AVAILABLE_SLOT'}))

        assert event_id == 'new_event_id'
        body = mock_calendar_service.events().insert.call_args.kwargs['body']
        assert body['start']['timeZone'] == 'Europe/Lisbon'
        assert body['extendedProperties']['private'] == {'availabilityType': 'AVAILABLE_SLOT'}

    def test_delete_event(self, service, mock_calendar_service):
        service.delete_event('e1')
        kwargs = mock_calendar_service.events().delete.call_args.kwargs
        assert kwargs == {'calendarId': 'primary', 'eventId': 'e1'}

    @pytest.mark.parametrize("status", [404, 410])
    def test_delete_missing_raises_not_found(self, service, mock_calendar_service, status):
        mock_calendar_service.events().delete().execute.side_effect = http_error(status, "notFound", "Not Found")

        with pytest.raises(EventNotFoundError) as excinfo:
            service.delete_event('gone')
        assert excinfo.value.status_code == status
        assert excinfo.value.reason == "notFound"

    def test_server_error_raises_store_error(self, service, mock_calendar_service):
        mock_calendar_service.events().list().execute.side_effect = http_error(503)

        with pytest.raises(EventStoreError) as excinfo:
            service.list_events(*WINDOW)
        assert not isinstance(excinfo.value, EventNotFoundError)
        assert excinfo.value.status_code == 503

    def test_network_error_raises_store_error(self, service, mock_calendar_service):
        mock_calendar_service.events().insert().execute.side_effect = ConnectionError("reset")
        with pytest.raises(EventStoreError):
            service.insert_event(marker())

    def test_parse_http_error_without_json(self):
        error = HttpError(httplib2.Response({'status': '500'}), b'not json')
        details = GoogleCalendarService._parse_http_error(error)
        assert details['status_code'] == 500
        assert details['reason'] == 'unknown'


class TestInMemoryEventStore:
    """Tests for InMemoryEventStore."""

    def test_insert_assigns_ids(self):
        store = InMemoryEventStore()
        first = store.insert_event(marker())
        second = store.insert_event(marker())

        assert first != second
        assert len(store) == 2

    def test_insert_keeps_given_id(self):
        store = InMemoryEventStore([marker(event_id='fixed')])
        assert store.all_events()[0].event_id == 'fixed'

    def test_list_events_window_and_order(self):
        store = InMemoryEventStore([marker(11), marker(9), marker(23)])
        window_end = localize(MONDAY, time(12, 0), LISBON)

        events = store.list_events(WINDOW[0], window_end)
        assert [e.start.hour for e in events] == [9, 11]

    def test_list_events_capped(self):
        store = InMemoryEventStore([marker(h) for h in range(8, 12)], max_results=2)
        assert len(store.list_events(*WINDOW)) == 2

    def test_delete_missing(self):
        with pytest.raises(EventNotFoundError):
            InMemoryEventStore().delete_event('nope')

    def test_find_events_by_metadata(self):
        store = InMemoryEventStore([
            marker(9, private_metadata={'bookingToken': 'a'}),
            marker(10, private_metadata={'bookingToken': 'b'}),
        ])
        found = store.find_events_by_metadata('bookingToken', 'b', *WINDOW)
        assert [e.start.hour for e in found] == [10]
