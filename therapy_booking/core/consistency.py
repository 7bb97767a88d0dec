# File: therapy_booking/core/consistency.py
"""
Bounded waiting for eventually-consistent reads.

A freshly inserted calendar event may not show up in listings right away.
Callers that must observe their own write poll through `wait_for`.
"""

import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from therapy_booking.core.config_manager import Config
from therapy_booking.services.event_store import EventStoreError
from therapy_booking.utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar("T")


@dataclass
class BackoffPolicy:
    """Attempts and delays for a consistency wait."""
    max_attempts: int = Config.CONSISTENCY_MAX_ATTEMPTS
    initial_delay: float = Config.CONSISTENCY_INITIAL_DELAY
    multiplier: float = Config.CONSISTENCY_BACKOFF_MULTIPLIER
    max_delay: float = Config.CONSISTENCY_MAX_DELAY
    jitter: float = Config.CONSISTENCY_JITTER

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Delays cannot be negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1 (1 gives a fixed delay)")

    def delay_for(self, attempt: int) -> float:
        """
        Delay after the given (0-indexed) failed attempt, with random jitter.
        """
        base = min(self.initial_delay * (self.multiplier ** attempt), self.max_delay)
        spread = base * self.jitter * (2 * random.random() - 1)
        return max(0.0, base + spread)


def wait_for(
    probe: Callable[[], Optional[T]],
    policy: Optional[BackoffPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "event"
) -> Optional[T]:
    """
    Re-run `probe` until it returns a value other than None.

    Store errors raised by the probe count as a miss and are retried.

    Args:
        probe: Returns the awaited value, or None while it is not visible yet
        policy: Attempts and delays (default: Config values)
        sleep: Sleep function, injectable for tests
        description: What is awaited, for logging

    Returns:
        The first non-None probe result, or None once attempts run out
    """
    policy = policy or BackoffPolicy()

    for attempt in range(policy.max_attempts):
        try:
            value = probe()
        except EventStoreError as e:
            logger.warning(f"Probe for {description} failed on attempt {attempt + 1}: {e}")
            value = None

        if value is not None:
            if attempt:
                logger.info(f"{description} visible after {attempt + 1} attempts")
            return value

        if attempt < policy.max_attempts - 1:
            delay = policy.delay_for(attempt)
            logger.debug(f"{description} not visible yet, retrying in {delay:.2f}s")
            sleep(delay)

    logger.warning(f"Gave up waiting for {description} after {policy.max_attempts} attempts")
    return None
