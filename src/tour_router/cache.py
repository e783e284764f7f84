"""In-memory cache of routed geometries.

Repeating an identical routing request (same service, profile and points)
is answered from here instead of the routing service.
"""

import hashlib
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock

from tour_router.models import Waypoint


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> str:
        total = self.hits + self.misses
        if total == 0:
            return "0.0%"
        return f"{(self.hits / total * 100):.1f}%"


def make_route_cache_key(service_url: str, profile: str, points: list[Waypoint]) -> str:
    """Create a cache key for a routing request.

    Coordinates are rounded to 6 decimals (~0.1 m), finer than any click.
    """
    coords = ";".join(f"{p.lat:.6f},{p.lng:.6f}" for p in points)
    return hashlib.md5(f"{service_url}|{profile}|{coords}".encode()).hexdigest()


class RouteCache:
    """Thread-safe LRU of route geometries, with an optional time-to-live.

    Routing runs on worker threads, so every access holds the lock.
    """

    def __init__(self, max_size: int = 50, ttl_seconds: float | None = None):
        self.max_size = max_size
        self.ttl = ttl_seconds
        self._entries: OrderedDict[str, tuple[tuple[Waypoint, ...], float]] = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expired(self, stored_at: float) -> bool:
        return self.ttl is not None and time.time() - stored_at >= self.ttl

    def get(self, key: str) -> list[Waypoint] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._expired(entry[1]):
                del self._entries[key]
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return list(entry[0])

    def put(self, key: str, route: list[Waypoint]) -> None:
        with self._lock:
            self._entries[key] = (tuple(route), time.time())
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def clear(self) -> int:
        """Drop every entry and reset the counters. Returns the number dropped."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._hits = self._misses = 0
            return count

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entries),
                max_size=self.max_size,
            )
