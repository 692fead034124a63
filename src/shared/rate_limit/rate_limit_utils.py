"""
Rate limiting utilities for the contact endpoint.

Fixed-window counters keyed by source identity (client IP). The counters
live behind a RateStore so the in-memory store can be swapped for a shared
one (e.g. Redis) without touching the limiter.
"""

import logging
import math
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, ContextManager, Dict, Iterator, NamedTuple, Optional

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(minutes=15)
DEFAULT_CAPACITY = 5


class AdmissionRecord(NamedTuple):
    """Submission count for one identity in its current window."""
    window_start: datetime
    count: int


class RateStore(ABC):
    """
    Storage for admission records.

    `lock(identity)` must make a get/set sequence for that identity atomic
    with respect to other callers using the same identity. Locks for
    different identities must be independent.
    """

    @abstractmethod
    def get(self, identity: str) -> Optional[AdmissionRecord]:
        """Return the record for identity, or None if there is none."""
        pass

    @abstractmethod
    def set(self, identity: str, record: AdmissionRecord) -> None:
        """Store the record for identity."""
        pass

    @abstractmethod
    def lock(self, identity: str) -> ContextManager[None]:
        """Context manager serializing updates for one identity."""
        pass

    def prune(self, is_expired: Callable[[AdmissionRecord], bool]) -> int:
        """
        Drop expired records and return how many were removed.

        Stores whose keys expire on their own (e.g. Redis with TTLs) can
        keep this default.
        """
        return 0


class InMemoryRateStore(RateStore):
    """Process-local RateStore with one lock per identity."""

    def __init__(self):
        self._records: Dict[str, AdmissionRecord] = {}
        self._locks: Dict[str, Lock] = {}
        # Callers holding or waiting on each identity's lock
        self._users: Dict[str, int] = {}
        # Guards _locks and _users; never held while waiting on an identity lock
        self._locks_guard = Lock()

    def get(self, identity: str) -> Optional[AdmissionRecord]:
        return self._records.get(identity)

    def set(self, identity: str, record: AdmissionRecord) -> None:
        self._records[identity] = record

    @contextmanager
    def lock(self, identity: str) -> Iterator[None]:
        with self._locks_guard:
            identity_lock = self._locks.get(identity)
            if identity_lock is None:
                identity_lock = self._locks[identity] = Lock()
            self._users[identity] = self._users.get(identity, 0) + 1
        try:
            with identity_lock:
                yield
        finally:
            with self._locks_guard:
                self._users[identity] -= 1
                if self._users[identity] == 0:
                    del self._users[identity]

    def prune(self, is_expired: Callable[[AdmissionRecord], bool]) -> int:
        """Drop expired records, and their locks, for identities nobody is using."""
        removed = 0
        with self._locks_guard:
            for identity, record in list(self._records.items()):
                if identity in self._users or not is_expired(record):
                    continue
                del self._records[identity]
                self._locks.pop(identity, None)
                removed += 1
            for identity in list(self._locks):
                if identity not in self._records and identity not in self._users:
                    del self._locks[identity]
        return removed

    def __len__(self) -> int:
        return len(self._records)


class AdmissionLimiter:
    """
    Caps submissions per source identity within a fixed window.

    The first call for an identity (or the first after its window has
    elapsed) opens a new window with count 1. Later calls are admitted
    while the count is below capacity; once it reaches capacity, calls are
    denied and the count stays where it is.

    Once per window the limiter sweeps records whose window has elapsed
    out of the store.
    """

    def __init__(
        self,
        store: Optional[RateStore] = None,
        window: timedelta = DEFAULT_WINDOW,
        capacity: int = DEFAULT_CAPACITY
    ):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        if window <= timedelta(0):
            raise ValueError(f"window must be positive, got {window}")
        self.store = store if store is not None else InMemoryRateStore()
        self.window = window
        self.capacity = capacity
        self._next_sweep: Optional[datetime] = None
        self._sweep_lock = Lock()

    def _window_elapsed(self, record: AdmissionRecord, now: datetime) -> bool:
        return now > record.window_start + self.window

    def admit(self, identity: str, now: datetime) -> bool:
        """
        Record a submission attempt and decide whether it may proceed.

        Args:
            identity: Source identity (client IP)
            now: Current time

        Returns:
            True if the attempt is within the limit, False if rate limited
        """
        allowed = self._admit(identity, now)
        self._maybe_sweep(now)
        return allowed

    def _admit(self, identity: str, now: datetime) -> bool:
        with self.store.lock(identity):
            record = self.store.get(identity)
            if record is None or self._window_elapsed(record, now):
                self.store.set(identity, AdmissionRecord(window_start=now, count=1))
                return True

            if record.count >= self.capacity:
                return False

            self.store.set(identity, record._replace(count=record.count + 1))
            return True

    def _maybe_sweep(self, now: datetime) -> None:
        # Non-blocking: a sweep already in progress is never waited on
        if not self._sweep_lock.acquire(blocking=False):
            return
        try:
            if self._next_sweep is None:
                self._next_sweep = now + self.window
            elif now >= self._next_sweep:
                self.sweep(now)
                self._next_sweep = now + self.window
        finally:
            self._sweep_lock.release()

    def sweep(self, now: datetime) -> int:
        """Remove records whose window has elapsed; returns how many went."""
        removed = self.store.prune(lambda record: self._window_elapsed(record, now))
        if removed:
            logger.debug(f"Rate limit sweep removed {removed} expired records")
        return removed

    def retry_after(self, identity: str, now: datetime) -> int:
        """Seconds until the identity's current window resets (at least 1)."""
        record = self.store.get(identity)
        if record is None or self._window_elapsed(record, now):
            return 1
        remaining = (record.window_start + self.window - now).total_seconds()
        return max(int(math.ceil(remaining)), 1)


def get_client_ip(request, trust_proxy: bool = False) -> str:
    """
    Get client IP address from request.

    X-Forwarded-For is only honoured when the service runs behind a proxy
    that sets it; otherwise clients could pick their own identity.
    """
    if trust_proxy:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
