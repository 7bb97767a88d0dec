"""
Availability report entry point.
Prints the bookable slots for the coming weeks.
Make sure you have run 'python scripts/setup.py' at least once.

Usage:
    python scripts/availability.py [therapy|consultation|all] [days]
"""

import sys
import time
import datetime
from pathlib import Path

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from therapy_booking.core.config_manager import Config
from therapy_booking.models import SessionType
from therapy_booking.processors.accommodation import group_slots_by_date
from therapy_booking.services.service_factory import ServiceFactory
from therapy_booking.utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_DAYS = 14


def print_slots(days: list) -> None:
    """Print grouped slots, one line per day."""
    if not days:
        print("No bookable slots in this period.")
        return
    for day in days:
        times = ", ".join(slot['time'] for slot in day['slots'])
        print(f"{day['date']} {day['dayOfWeek']:<9}  {times}")


def main(argv=None) -> int:
    """
    Main execution function.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    argv = sys.argv[1:] if argv is None else argv
    mode = argv[0] if argv else "all"
    days = int(argv[1]) if len(argv) > 1 else DEFAULT_DAYS
    start_time = time.time()

    try:
        if not Config.validate():
            logger.error("Configuration validation failed")
            logger.error("Please run 'python scripts/setup.py' to configure the application")
            return 1

        manager = ServiceFactory.create_availability_manager()
        first = manager.today()
        last = first + datetime.timedelta(days=days)

        if mode == "all":
            result = manager.get_available_time_slots(first, last, intelligent_filtering=True)
        else:
            result = manager.get_bookable_slots(SessionType(mode), first, last)

        if not result.success:
            logger.error(f"Could not read availability: {result.error}")
            return 1

        print_slots(group_slots_by_date(result.slots))
        return 0

    except ValueError as e:
        logger.error(f"Invalid arguments: {e}")
        print(__doc__)
        return 1

    except ConnectionError as e:
        logger.error("Authentication failed", exc_info=True)
        logger.error(str(e))
        return 1

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1

    finally:
        elapsed = time.time() - start_time
        logger.info(f"Total execution time: {elapsed:.2f} seconds")


if __name__ == "__main__":
    sys.exit(main())
