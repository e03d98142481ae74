"""Memoization of validation outcomes keyed by the raw form text.

The cache is purely an optimization: dropping any entry only costs a
recomputation. Eviction picks the entry with the lowest
``access_count * 1000 + last_access_ms`` score, which favours evicting
rarely used, stale entries; a linear scan is fine at the default capacity.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from candleguard.models import FormInput, ValidationOutcome

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_SIZE = 100


@dataclass
class CacheEntry:
    outcome: ValidationOutcome
    inserted_at: float
    last_access_ms: float
    access_count: int = 1

    @property
    def score(self) -> float:
        return self.access_count * 1000 + self.last_access_ms


def cache_key(fields: FormInput) -> str:
    """Key of a form: its five raw field texts joined with ``|``."""
    return "|".join(fields.values())


class ValidationCache:
    """Bounded, time-expiring cache of validation outcomes."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache.

        Args:
            ttl_seconds: Age after which an entry is treated as absent.
            max_size: Maximum number of entries.
            clock: Wall-clock time source in seconds.
        """
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, fields: FormInput) -> Optional[ValidationOutcome]:
        """Look up the outcome cached for a form.

        Returns:
            The cached outcome, or None if absent or expired.
        """
        key = cache_key(fields)
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        now = self._clock()
        if now - entry.inserted_at > self.ttl_seconds:
            del self._entries[key]
            self._misses += 1
            logger.debug("Cache entry expired: %s", key)
            return None

        entry.access_count += 1
        entry.last_access_ms = now * 1000
        self._hits += 1
        return entry.outcome

    def set(self, fields: FormInput, outcome: ValidationOutcome) -> None:
        """Store the outcome for a form, evicting one entry if full."""
        key = cache_key(fields)
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict()

        now = self._clock()
        self._entries[key] = CacheEntry(
            outcome=outcome, inserted_at=now, last_access_ms=now * 1000
        )

    def _evict(self) -> None:
        if not self._entries:
            return
        victim = min(self._entries, key=lambda k: self._entries[k].score)
        del self._entries[victim]
        logger.debug("Evicted cache entry: %s", victim)

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fields: object) -> bool:
        return isinstance(fields, FormInput) and cache_key(fields) in self._entries

    def stats(self) -> dict:
        """Cache statistics.

        Returns:
            Dictionary with size, max_size, hits, misses and hit_rate (percent).
        """
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": (self._hits / lookups * 100) if lookups else 0.0,
        }
