"""Time-bounded cache for raw graph dumps."""
import logging
import threading
import time
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class StalenessPolicy(Protocol):
    def is_stale(self, fetched_at: float, now: float) -> bool: ...


class TTLPolicy:
    """Entries older than ``ttl`` seconds are stale."""

    def __init__(self, ttl: float):
        self.ttl = ttl

    def is_stale(self, fetched_at: float, now: float) -> bool:
        return now - fetched_at >= self.ttl


class NeverStale:
    def is_stale(self, fetched_at: float, now: float) -> bool:
        return False


class AlwaysStale:
    def is_stale(self, fetched_at: float, now: float) -> bool:
        return True


class SnapshotCache:
    """Caches the last dump returned by ``fetch`` until the policy expires it."""

    def __init__(
        self,
        fetch: Callable[[], str],
        policy: StalenessPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self._policy = policy or TTLPolicy(5.0)
        self._clock = clock
        self._lock = threading.Lock()
        self._dump: str | None = None
        self._fetched_at = 0.0
        self.fetch_count = 0

    def get(self) -> str:
        with self._lock:
            if self._dump is not None and not self._policy.is_stale(self._fetched_at, self._clock()):
                logger.debug("Using cached graph dump")
                return self._dump
            logger.debug("Refreshing graph dump")
            self._dump = self._fetch()
            self._fetched_at = self._clock()
            self.fetch_count += 1
            return self._dump

    def invalidate(self):
        with self._lock:
            self._dump = None
