"""
In-memory response cache owned by a client instance.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional

from .logging import get_logger


@dataclass(frozen=True)
class CacheEntry:
    """A cached response payload and the clock reading when it was stored."""
    value: Any
    stored_at: float


class CacheStore:
    """Mapping from request URL to the last successful GET response.

    Entries are never expired proactively. Callers decide freshness with
    ``is_fresh``; stale entries stay until overwritten or invalidated.
    Not thread-safe: a store belongs to one event loop.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self.logger = get_logger("apic.cache")

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for ``key`` regardless of its age."""
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> CacheEntry:
        """Insert or overwrite ``key``, stamped with the current time."""
        entry = CacheEntry(value=value, stored_at=self.now())
        self._entries[key] = entry
        self.logger.debug("Cached response", key=key)
        return entry

    def invalidate(self, key: Optional[str] = None) -> int:
        """Remove one entry, or every entry when no key is given.

        Returns the number of entries removed.
        """
        if key is None:
            count = len(self._entries)
            self._entries.clear()
            self.logger.info("Cache cleared", entries=count)
            return count

        if self._entries.pop(key, None) is None:
            return 0
        self.logger.info("Cache entry invalidated", key=key)
        return 1

    def is_fresh(self, entry: CacheEntry, ttl: float) -> bool:
        """True while the entry is younger than ``ttl`` seconds."""
        return self.now() - entry.stored_at < ttl

    @property
    def entries(self) -> Dict[str, CacheEntry]:
        """The live mapping, for inspection."""
        return self._entries

    def snapshot(self) -> Dict[str, CacheEntry]:
        return dict(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)
