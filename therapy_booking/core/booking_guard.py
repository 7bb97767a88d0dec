# File: therapy_booking/core/booking_guard.py
"""
Slot leases for booking.

Writing a session event is a compare-and-set: the cells are leased first,
then re-checked against a fresh read of the calendar, then written. A lease
moves FREE -> LEASED -> BOOKED and expires after a TTL, so a crashed booking
never holds a slot for long. Booked leases also outlive the write by one TTL
to cover the store's listing lag.

The registry is process-local; it serializes writers within one process only.
"""

import threading
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from therapy_booking.core.config_manager import Config
from therapy_booking.models import LeaseState
from therapy_booking.utils.logger import setup_logger

logger = setup_logger(__name__)

SlotKey = Tuple[date, str]


@dataclass
class SlotLease:
    """Reservation of one grid cell by one booking attempt."""
    key: SlotKey
    holder: str
    state: LeaseState
    expires_at: float

    def is_active(self, now: float) -> bool:
        return self.state is not LeaseState.FREE and now < self.expires_at


class SlotLeaseRegistry:
    """Lock-protected table of active leases."""

    def __init__(
        self,
        ttl_seconds: float = Config.LEASE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._leases: Dict[SlotKey, SlotLease] = {}
        self._lock = threading.Lock()

    def _purge(self, now: float) -> None:
        expired = [key for key, lease in self._leases.items() if not lease.is_active(now)]
        for key in expired:
            del self._leases[key]

    def state_of(self, key: SlotKey) -> LeaseState:
        with self._lock:
            now = self._clock()
            lease = self._leases.get(key)
            if lease is None or not lease.is_active(now):
                return LeaseState.FREE
            return lease.state

    def acquire(self, keys: Iterable[SlotKey], holder: str) -> Optional[List[SlotLease]]:
        """
        Lease every key for `holder`, or none of them.

        Returns:
            The new leases, or None if any key is held by someone else
        """
        keys = list(keys)
        with self._lock:
            now = self._clock()
            self._purge(now)

            for key in keys:
                current = self._leases.get(key)
                if current is not None and (current.holder != holder or current.state is LeaseState.BOOKED):
                    logger.info(f"Slot {key[0]} {key[1]} is {current.state.value} by another booking")
                    return None

            leases = [
                SlotLease(key=key, holder=holder, state=LeaseState.LEASED, expires_at=now + self.ttl_seconds)
                for key in keys
            ]
            for lease in leases:
                self._leases[lease.key] = lease
            return leases

    def confirm(self, leases: Iterable[SlotLease]) -> None:
        """Mark leased cells as booked."""
        with self._lock:
            now = self._clock()
            for lease in leases:
                current = self._leases.get(lease.key)
                if current is None or current.holder != lease.holder:
                    logger.warning(f"Lease on {lease.key} lost before confirmation")
                    continue
                current.state = LeaseState.BOOKED
                current.expires_at = now + self.ttl_seconds
                lease.state = LeaseState.BOOKED

    def release(self, leases: Iterable[SlotLease]) -> None:
        """Drop leases that were never confirmed."""
        with self._lock:
            for lease in leases:
                current = self._leases.get(lease.key)
                if current is not None and current.holder == lease.holder and current.state is LeaseState.LEASED:
                    del self._leases[lease.key]
                    lease.state = LeaseState.FREE

    def __len__(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._leases)
