# File: therapy_booking/auth/google_auth.py
"""
Practice calendar credentials.

The engine writes marker and session events, so it needs the full calendar
scope. The token is created once by 'scripts/setup.py' and refreshed in place
afterwards.
"""

from typing import Optional
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build, Resource
from googleapiclient.errors import HttpError

from therapy_booking.core.config_manager import Config
from therapy_booking.utils.logger import setup_logger

logger = setup_logger(__name__)


def _save_token(creds: Credentials) -> None:
    with open(Config.TOKEN_FILE, "w") as token_file:
        token_file.write(creds.to_json())


def _authenticate() -> Optional[Credentials]:
    """
    Load the practice token, refreshing it when expired.

    A token that can no longer be refreshed is removed so the next setup run
    starts a fresh consent flow.
    """
    if not Config.TOKEN_FILE.exists():
        logger.warning(f"No practice calendar token at {Config.TOKEN_FILE}")
        return None

    creds = Credentials.from_authorized_user_file(str(Config.TOKEN_FILE), Config.GOOGLE_SCOPES)
    if creds.valid:
        return creds

    if not (creds.expired and creds.refresh_token):
        logger.warning("Practice calendar token is invalid and cannot be refreshed")
        return None

    logger.info("Refreshing practice calendar token")
    try:
        creds.refresh(Request())
    except Exception as e:
        logger.error(f"Token refresh rejected: {e}", exc_info=True)
        Config.TOKEN_FILE.unlink(missing_ok=True)
        return None

    _save_token(creds)
    return creds


def create_initial_token() -> bool:
    """
    Ask the practitioner to grant calendar access in the browser.
    Called by 'scripts/setup.py'.

    Returns:
        True once a token has been stored
    """
    if not Config.CREDENTIALS_FILE.exists():
        logger.error(f"OAuth client file missing: {Config.CREDENTIALS_FILE}")
        return False

    logger.info("Requesting calendar access for the practice account")
    try:
        flow = InstalledAppFlow.from_client_secrets_file(str(Config.CREDENTIALS_FILE), Config.GOOGLE_SCOPES)
        creds = flow.run_local_server(port=0)
        _save_token(creds)
    except Exception as e:
        logger.error(f"Calendar consent flow failed: {e}", exc_info=True)
        return False

    logger.info(f"Practice calendar token stored at {Config.TOKEN_FILE}")
    return True


def get_calendar_service() -> Optional[Resource]:
    """
    Build a Calendar v3 resource for the practice account.

    Returns:
        Calendar resource, or None when no usable token exists
    """
    creds = _authenticate()
    if not creds:
        logger.error("Run 'python scripts/setup.py' to connect the practice calendar")
        return None

    try:
        return build("calendar", "v3", credentials=creds)
    except HttpError as err:
        logger.error(f"Could not build calendar resource: {err}", exc_info=True)
        return None


def check_calendar_access(calendar_service: Resource, calendar_id: str = None) -> bool:
    """
    Confirm the configured calendar is readable and report its timezone.

    A calendar whose timezone differs from TIMEZONE still works, but markers
    will show shifted times in the Google Calendar UI.
    """
    calendar_id = calendar_id or Config.CALENDAR_ID
    try:
        calendar = calendar_service.calendars().get(calendarId=calendar_id).execute()
    except HttpError as err:
        logger.error(f"Calendar '{calendar_id}' is not accessible: {err}")
        return False

    calendar_tz = calendar.get('timeZone')
    if calendar_tz and calendar_tz != Config.TARGET_TIMEZONE:
        logger.warning(
            f"Calendar '{calendar.get('summary', calendar_id)}' uses {calendar_tz}, "
            f"slots are computed in {Config.TARGET_TIMEZONE}"
        )
    else:
        logger.info(f"Calendar '{calendar.get('summary', calendar_id)}' is accessible")
    return True
