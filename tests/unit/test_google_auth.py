# File: tests/unit/test_google_auth.py
"""
Unit tests for practice calendar credentials.
"""

from unittest.mock import Mock, patch

import httplib2
import pytest
from googleapiclient.errors import HttpError

from therapy_booking.auth import google_auth
from therapy_booking.core.config_manager import Config


@pytest.fixture
def token_file(tmp_path):
    path = tmp_path / "token.json"
    with patch.object(Config, 'TOKEN_FILE', path):
        yield path


def stored_creds(valid=True, expired=False, refresh_token="refresh"):
    creds = Mock(valid=valid, expired=expired, refresh_token=refresh_token)
    creds.to_json.return_value = '{"token": "abc"}'
    return creds


class TestGetCalendarService:
    """Token loading and resource construction."""

    def test_missing_token(self, token_file):
        with patch.object(google_auth, 'build') as build:
            assert google_auth.get_calendar_service() is None
        build.assert_not_called()

    def test_valid_token_builds_resource(self, token_file):
        token_file.write_text("{}")
        creds = stored_creds()
        with patch.object(google_auth.Credentials, 'from_authorized_user_file', return_value=creds), \
                patch.object(google_auth, 'build', return_value="resource") as build:
            assert google_auth.get_calendar_service() == "resource"
        build.assert_called_once_with("calendar", "v3", credentials=creds)

    def test_expired_token_is_refreshed_and_saved(self, token_file):
        token_file.write_text("{}")
        creds = stored_creds(valid=False, expired=True)
        with patch.object(google_auth.Credentials, 'from_authorized_user_file', return_value=creds), \
                patch.object(google_auth, 'build', return_value="resource"):
            assert google_auth.get_calendar_service() == "resource"
        creds.refresh.assert_called_once()
        assert token_file.read_text() == '{"token": "abc"}'

    def test_rejected_refresh_removes_token(self, token_file):
        token_file.write_text("{}")
        creds = stored_creds(valid=False, expired=True)
        creds.refresh.side_effect = Exception("invalid_grant")
        with patch.object(google_auth.Credentials, 'from_authorized_user_file', return_value=creds):
            assert google_auth.get_calendar_service() is None
        assert not token_file.exists()

    def test_token_without_refresh(self, token_file):
        token_file.write_text("{}")
        creds = stored_creds(valid=False, expired=True, refresh_token=None)
        with patch.object(google_auth.Credentials, 'from_authorized_user_file', return_value=creds):
            assert google_auth.get_calendar_service() is None
        assert token_file.exists()


class TestCreateInitialToken:
    """Interactive consent flow."""

    def test_missing_client_file(self, tmp_path, token_file):
        with patch.object(Config, 'CREDENTIALS_FILE', tmp_path / "credentials.json"):
            assert google_auth.create_initial_token() is False

    def test_flow_stores_token(self, tmp_path, token_file):
        client_file = tmp_path / "credentials.json"
        client_file.write_text("{}")
        flow = Mock()
        flow.run_local_server.return_value = stored_creds()
        with patch.object(Config, 'CREDENTIALS_FILE', client_file), \
                patch.object(google_auth.InstalledAppFlow, 'from_client_secrets_file', return_value=flow):
            assert google_auth.create_initial_token() is True
        assert token_file.read_text() == '{"token": "abc"}'


class TestCheckCalendarAccess:
    """Calendar reachability check run during setup."""

    def test_accessible_calendar(self):
        service = Mock()
        service.calendars().get().execute.return_value = {'summary': 'Practice', 'timeZone': 'Europe/Lisbon'}

        with patch.object(Config, 'TARGET_TIMEZONE', 'Europe/Lisbon'):
            assert google_auth.check_calendar_access(service, "practice@example.com") is True
        assert service.calendars().get.call_args.kwargs == {'calendarId': 'practice@example.com'}

    def test_timezone_mismatch_still_accessible(self):
        service = Mock()
        service.calendars().get().execute.return_value = {'summary': 'Practice', 'timeZone': 'UTC'}

        with patch.object(Config, 'TARGET_TIMEZONE', 'Europe/Lisbon'):
            assert google_auth.check_calendar_access(service, "primary") is True

    def test_inaccessible_calendar(self):
        service = Mock()
        service.calendars().get().execute.side_effect = HttpError(httplib2.Response({'status': '404'}), b'{}')
        assert google_auth.check_calendar_access(service, "missing") is False
