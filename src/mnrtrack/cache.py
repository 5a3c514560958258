"""Time-to-live cache for decoded real-time data."""

import logging
import threading
import time
from typing import Any, Callable, Dict, NamedTuple, Optional

logger = logging.getLogger(__name__)

# Cache keys
GTFSRT_KEY = "GTFS-RT"
DELAYS_KEY = "GTFS-RT-DELAYS"


def station_key(stop_id: str) -> str:
    """Cache key for a station's TrainTime page."""
    return f"TT-{stop_id}"


class CacheEntry(NamedTuple):
    value: Any
    stored_at: float
    expires_at: float


class FeedCache:
    """
    Holds the most recent decoded feed per key.

    Entries expire a fixed time after they were written. Entries are
    replaced whole, never updated in place, so readers always see a
    complete value. Concurrent misses on the same key are not coalesced:
    each caller refreshes.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._store: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if now >= entry.expires_at:
                del self._store[key]
                logger.debug(f"Cache entry {key} expired")
                return None
            return entry

    def put(self, key: str, value: Any, ttl: float) -> CacheEntry:
        now = self._clock()
        entry = CacheEntry(value=value, stored_at=now, expires_at=now + ttl)
        with self._lock:
            self._store[key] = entry
        return entry

    def get_or_load(self, key: str, loader: Callable[[], Any], ttl: float) -> Any:
        """
        Return the cached value for key, calling loader on a miss.

        Errors from loader propagate and nothing is cached.
        """
        entry = self.get(key)
        if entry is not None:
            logger.debug(f"Using cached data for {key}")
            return entry.value
        value = loader()
        self.put(key, value, ttl)
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything when key is None."""
        with self._lock:
            if key is None:
                self._store.clear()
            else:
                self._store.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
