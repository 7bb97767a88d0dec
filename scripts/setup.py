"""
One-time setup: authenticate with Google Calendar and check configuration.
Run this once before 'python scripts/availability.py'.
"""

import sys
from pathlib import Path

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from therapy_booking.auth.google_auth import check_calendar_access, create_initial_token, get_calendar_service
from therapy_booking.core.config_manager import Config
from therapy_booking.utils.logger import setup_logger

logger = setup_logger(__name__)


def main() -> None:
    """Main setup wizard."""
    print("Setting up the practice availability engine...")
    print("=" * 60)

    # Step 1: Google Authentication
    print("\nStep 1: Google Calendar Authentication")
    if not Config.TOKEN_FILE.exists():
        if not create_initial_token():
            print("Google authentication failed.")
            sys.exit(1)
    else:
        print("Existing token.json found")

    # Step 2: Check the token actually works
    print("\nStep 2: Calendar Access Check")
    calendar_service = get_calendar_service()
    if calendar_service is None or not check_calendar_access(calendar_service):
        print("Could not open the calendar with the saved token.")
        print("Delete token.json and run this script again.")
        sys.exit(1)
    print(f"Calendar '{Config.CALENDAR_ID}' is reachable")

    # Final verification
    print("\nStep 3: Verification")
    if Config.validate():
        logger.info("Setup completed successfully")
        print("=" * 60)
        print("Setup complete!")
        print("=" * 60)
        print("\nYou can now run: python scripts/availability.py")
        print(f"\nTimezone: {Config.TARGET_TIMEZONE} (set TIMEZONE in .env to change)")
    else:
        print("=" * 60)
        print("Setup completed with some warnings")
        print("=" * 60)
        print("\nPlease check the logs and fix any missing configuration")


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        print("\nSetup cancelled.")
        sys.exit(1)
