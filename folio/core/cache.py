"""Process-local TTL cache with lazy eviction."""

import logging
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the clock reading at which it was stored."""

    value: T
    stored_at: float


class TTLCache(Generic[T]):
    """
    In-memory key/value cache whose entries expire after ``ttl`` seconds.

    Expired entries are removed when they are read; there is no background
    sweep. The clock is injectable so tests can move time forward.
    """

    def __init__(
        self,
        ttl: float,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._name = name
        self._entries: dict[Hashable, CacheEntry[T]] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: Hashable) -> T | None:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at > self._ttl:
            del self._entries[key]
            logger.debug("%s: entry expired for key=%s", self._name, key)
            return None
        logger.debug("%s: hit for key=%s", self._name, key)
        return entry.value

    def set(self, key: Hashable, value: T) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def invalidate(self, key: Hashable) -> bool:
        """Drop a single entry. Returns True if something was removed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
