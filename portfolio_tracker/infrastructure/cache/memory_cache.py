"""
In-memory TTL cache shared by the market data clients.

Keys are namespaced per subsystem ("price:", "pe:", "earnings:") so each
client can invalidate its own entries without touching the others.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from portfolio_tracker.core.exceptions import InvalidTTLError

logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# Lets callers tell a cached None apart from "not cached"
MISSING: Any = _Missing()


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    sets: int
    deletes: int
    keys: int
    hit_rate: float
    total_requests: int


class MemoryCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, CacheEntry] = {}
        self._clock = clock
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry

    # ------------------------------------------------------------------
    # STANDARD OPERATIONS
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._live_entry(key)
        if entry is None:
            self._misses += 1
            return default
        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, (int, float)) or ttl_seconds <= 0:
            raise InvalidTTLError(f"TTL must be a positive number, got {ttl_seconds!r}")
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            expires_at=self._clock() + ttl_seconds,
        )
        self._sets += 1

    def delete(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._deletes += 1
        return True

    def delete_prefix(self, prefix: str) -> int:
        """Drop every key in a namespace, e.g. "price:"."""
        removed = 0
        for key in [k for k in self._entries if k.startswith(prefix)]:
            if self.delete(key):
                removed += 1
        if removed:
            logger.debug("Cache: invalidated %d keys with prefix %s", removed, prefix)
        return removed

    def clear(self) -> None:
        self._entries.clear()
        self._reset_counters()

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def keys(self) -> List[str]:
        return [key for key in list(self._entries) if self._live_entry(key) is not None]

    def get_ttl(self, key: str) -> Optional[float]:
        """Seconds until expiry, or None when the key is absent."""
        entry = self._live_entry(key)
        if entry is None:
            return None
        return entry.expires_at - self._clock()

    def purge_expired(self) -> int:
        """Sweep expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    # ------------------------------------------------------------------
    # MONITORING
    # ------------------------------------------------------------------

    def stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            sets=self._sets,
            deletes=self._deletes,
            keys=len(self.keys()),
            hit_rate=(self._hits / total) * 100 if total else 0.0,
            total_requests=total,
        )

    def __len__(self) -> int:
        return len(self.keys())
