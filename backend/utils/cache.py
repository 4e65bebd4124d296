"""
In-memory TTL + LRU cache with byte-size accounting.

Entries expire after their TTL and are evicted least-recently-used first
when an insert would push the total serialized size past capacity. A
background task sweeps expired entries on a fixed interval so cold entries
do not linger until the next read.

Capacity is a soft limit: eviction only removes *other* entries, so a
single value larger than capacity is still admitted.

None of the methods below await anything; each mutation finishes before
control returns to the event loop.
"""

import asyncio
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 3_600_000          # 1 hour
DEFAULT_CAPACITY_BYTES = 104_857_600  # 100MB
DEFAULT_SWEEP_INTERVAL_MS = 60_000


class CacheSerializationError(Exception):
    """A cache value could not be serialized to compute its size."""

    def __init__(self, key: str, cause: BaseException):
        super().__init__(f"Cannot serialize cache value for key '{key}': {cause}")
        self.key = key
        self.cause = cause


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class CacheEntry:
    """
    Single cache entry. Times are milliseconds on the store's clock.

    The value is kept in its serialized form so callers never share a
    mutable object with the cache.
    """
    key: str
    payload: str
    size_bytes: int
    created_at: float
    expires_at: float
    last_accessed_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass
class CacheStats:
    """Snapshot of cache counters."""
    entries: int
    size_bytes: int
    capacity_bytes: int
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


def serialize(value: Any) -> str:
    """Compact JSON encoding used for storage and size accounting."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class CacheStore:
    """
    Bounded TTL/LRU cache for JSON-serializable payloads.

    Args:
        capacity_bytes: Soft upper bound on the sum of entry sizes
        default_ttl_ms: TTL used when set() is not given one
        sweep_interval_ms: Interval of the background expiry sweep
        clock: Returns the current time in milliseconds (injected by tests)
    """

    def __init__(
        self,
        capacity_bytes: int = DEFAULT_CAPACITY_BYTES,
        default_ttl_ms: float = DEFAULT_TTL_MS,
        *,
        sweep_interval_ms: float = DEFAULT_SWEEP_INTERVAL_MS,
        clock: Callable[[], float] = _monotonic_ms,
    ):
        if capacity_bytes <= 0:
            raise ValueError(f"capacity_bytes must be positive: {capacity_bytes}")
        if default_ttl_ms <= 0:
            raise ValueError(f"default_ttl_ms must be positive: {default_ttl_ms}")
        if sweep_interval_ms <= 0:
            raise ValueError(f"sweep_interval_ms must be positive: {sweep_interval_ms}")

        self.capacity_bytes = capacity_bytes
        self.default_ttl_ms = default_ttl_ms
        self.sweep_interval_ms = sweep_interval_ms
        self._clock = clock

        # Ordered least-recently-used first
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._size_bytes = 0

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

        self._sweep_task: Optional[asyncio.Task] = None

    # ==================== Reads ====================

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on miss or expiry."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            logger.debug(f"Cache miss: {key}")
            return None

        now = self._clock()
        if entry.is_expired(now):
            self._remove(key)
            self._expirations += 1
            self._misses += 1
            logger.debug(f"Cache entry expired: {key}")
            return None

        entry.last_accessed_at = now
        self._entries.move_to_end(key)
        self._hits += 1
        logger.debug(f"Cache hit: {key}")
        return json.loads(entry.payload)

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry without touching recency or expiring it."""
        return self._entries.get(key)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def size_bytes(self) -> int:
        return self._size_bytes

    # ==================== Writes ====================

    def set(self, key: str, value: Any, ttl_ms: Optional[float] = None) -> None:
        """
        Insert or replace an entry.

        Raises:
            CacheSerializationError: value is not JSON serializable; any
                existing entry for key is left as it was
        """
        try:
            payload = serialize(value)
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(key, e) from e
        size = len(payload.encode("utf-8"))

        ttl = self.default_ttl_ms if ttl_ms is None else ttl_ms
        if ttl <= 0:
            raise ValueError(f"ttl_ms must be positive: {ttl}")

        if key in self._entries:
            self._remove(key)

        while self._entries and self._size_bytes + size > self.capacity_bytes:
            lru_key, _ = next(iter(self._entries.items()))
            self._remove(lru_key)
            self._evictions += 1
            logger.debug(f"Evicted least recently used entry: {lru_key}")

        if size > self.capacity_bytes:
            logger.warning(
                f"Cache entry {key} ({size} bytes) exceeds capacity "
                f"({self.capacity_bytes} bytes); storing anyway"
            )

        now = self._clock()
        self._entries[key] = CacheEntry(
            key=key,
            payload=payload,
            size_bytes=size,
            created_at=now,
            expires_at=now + ttl,
            last_accessed_at=now,
        )
        self._size_bytes += size

    def delete(self, key: str) -> bool:
        """Remove an entry. Returns True if it existed."""
        if key not in self._entries:
            return False
        self._remove(key)
        return True

    def clear(self) -> None:
        """Remove all entries."""
        count = len(self._entries)
        self._entries.clear()
        self._size_bytes = 0
        if count:
            logger.info(f"Cleared {count} cache entries")

    def sweep_expired(self) -> int:
        """Remove every entry whose expiry time has passed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            self._remove(key)
        self._expirations += len(expired)
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key)
        self._size_bytes -= entry.size_bytes

    # ==================== Stats ====================

    def stats(self) -> CacheStats:
        return CacheStats(
            entries=len(self._entries),
            size_bytes=self._size_bytes,
            capacity_bytes=self.capacity_bytes,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            expirations=self._expirations,
        )

    def keys(self) -> Dict[str, int]:
        """Live keys mapped to their sizes, least recently used first."""
        return {key: entry.size_bytes for key, entry in self._entries.items()}

    # ==================== Background sweep ====================

    async def start(self) -> None:
        """Start the periodic expiry sweep."""
        if self._sweep_task and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Cache sweep started (interval={self.sweep_interval_ms:.0f}ms)")

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if not self._sweep_task:
            return
        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            logger.info("Cache sweep stopped")
        self._sweep_task = None

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_ms / 1000)
            try:
                self.sweep_expired()
            except Exception as e:
                logger.error(f"Cache sweep failed: {e}", exc_info=True)
