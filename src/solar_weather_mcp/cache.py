import logging
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from solar_weather_mcp.models import Coordinates
from solar_weather_mcp.orchestrator import SourceSelection

logger = logging.getLogger("solar_weather.cache")


class ReadingCache:
    """In-memory TTL cache of source selections keyed by coordinates.

    Owned and injected by the caller; nothing is shared at module level.
    Expired entries are purged on every put, and once max_entries is reached
    the oldest entry is evicted.
    """

    def __init__(
        self,
        ttl_seconds: float = 600.0,
        precision: int = 4,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.precision = precision
        self.max_entries = max_entries
        self._clock = clock
        # insertion order doubles as age order
        self._entries: "OrderedDict[Tuple[float, float], Tuple[float, SourceSelection]]" = OrderedDict()

    def _key(self, coords: Coordinates) -> Tuple[float, float]:
        return (round(coords.latitude, self.precision), round(coords.longitude, self.precision))

    def _expired(self, stored_at: float, now: float) -> bool:
        return now - stored_at >= self.ttl_seconds

    def get(self, coords: Coordinates) -> Optional[SourceSelection]:
        key = self._key(coords)
        entry = self._entries.get(key)
        if entry is None:
            return None

        stored_at, selection = entry
        if self._expired(stored_at, self._clock()):
            del self._entries[key]
            logger.debug(f"Cache entry for {key} expired")
            return None

        logger.debug(f"Cache hit for {key}")
        return selection

    def put(self, coords: Coordinates, selection: SourceSelection) -> None:
        now = self._clock()
        self.purge_expired(now)

        key = self._key(coords)
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Cache full, evicted {evicted}")
        self._entries[key] = (now, selection)

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Drop every expired entry, returning how many were removed"""
        now = self._clock() if now is None else now
        expired = [key for key, (stored_at, _) in self._entries.items() if self._expired(stored_at, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
