"""
Courier - Shared Cache Utilities
================================

Bounded, time-expiring caches used as latency hints.

DESIGN:
    Nothing authoritative lives here. Threads, blocks and pending
    selections are persisted; these caches only save Discord round trips
    (channel objects, guild membership) or remember short cooldowns.

Author: Courier Maintainers
"""

import time
from datetime import datetime, timedelta
from typing import Any, Dict, Generic, Hashable, Optional, Tuple, TypeVar

from src.core.constants import CACHE_TTL, CHANNEL_CACHE_SIZE, MEMBERSHIP_CACHE_SIZE

K = TypeVar("K")
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """
    A simple TTL-based cache with automatic expiration.

    Safe for single-threaded async use (no awaits inside methods).
    """

    def __init__(self, ttl: timedelta, max_size: int = 100):
        """
        Initialize the TTL cache.

        Args:
            ttl: Time-to-live for cached items.
            max_size: Maximum number of items; the oldest entry is evicted first.
        """
        self._ttl = ttl
        self._max_size = max_size
        self._cache: Dict[K, Tuple[V, datetime]] = {}

    def get(self, key: K) -> Optional[V]:
        """
        Get an item if it exists and hasn't expired.

        Returns:
            The cached value or None if not found/expired.
        """
        entry = self._cache.get(key)
        if entry is None:
            return None

        value, cached_at = entry
        if datetime.now() - cached_at > self._ttl:
            self._cache.pop(key, None)
            return None

        return value

    def set(self, key: K, value: V) -> None:
        """Set an item, evicting the oldest entry when full."""
        if len(self._cache) >= self._max_size and key not in self._cache:
            self._evict_oldest()

        self._cache[key] = (value, datetime.now())

    def delete(self, key: K) -> bool:
        """
        Delete an item.

        Returns:
            True if item was deleted, False if not found.
        """
        return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        """Clear all items from the cache."""
        self._cache.clear()

    def _evict_oldest(self) -> None:
        if not self._cache:
            return
        oldest_key = min(self._cache.keys(), key=lambda k: self._cache[k][1])
        self._cache.pop(oldest_key, None)

    def cleanup_expired(self) -> int:
        """
        Remove all expired items from the cache.

        Returns:
            Number of items removed.
        """
        now = datetime.now()
        expired_keys = [
            k for k, (_, cached_at) in self._cache.items()
            if now - cached_at > self._ttl
        ]
        for key in expired_keys:
            self._cache.pop(key, None)
        return len(expired_keys)

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: K) -> bool:
        return self.get(key) is not None


class ChannelCache(TTLCache[int, Any]):
    """Channel objects by ID. Default TTL 5 minutes, max 50 channels."""

    def __init__(
        self,
        ttl: timedelta = timedelta(seconds=CACHE_TTL),
        max_size: int = CHANNEL_CACHE_SIZE,
    ):
        super().__init__(ttl=ttl, max_size=max_size)


class MembershipCache(TTLCache[int, Tuple[int, ...]]):
    """Guild IDs shared with a user, by user ID. Default TTL 5 minutes, max 500 users."""

    def __init__(
        self,
        ttl: timedelta = timedelta(seconds=CACHE_TTL),
        max_size: int = MEMBERSHIP_CACHE_SIZE,
    ):
        super().__init__(ttl=ttl, max_size=max_size)


class AnnouncementCache(TTLCache[int, int]):
    """Thread last named to each user, by user ID. Max 500 users."""

    def __init__(
        self,
        ttl: timedelta,
        max_size: int = MEMBERSHIP_CACHE_SIZE,
    ):
        super().__init__(ttl=ttl, max_size=max_size)


class Cooldowns:
    """
    Per-key cooldown tracker.

    Usage:
        if cooldowns.remaining(user_id, 3) > 0:
            return
        cooldowns.touch(user_id)
    """

    def __init__(self, max_size: int = MEMBERSHIP_CACHE_SIZE):
        self._max_size = max_size
        self._last: Dict[Hashable, float] = {}

    def remaining(self, key: Hashable, seconds: float) -> float:
        """Seconds left before key may act again (0 when ready)."""
        last = self._last.get(key)
        if last is None:
            return 0.0
        left = seconds - (time.monotonic() - last)
        return left if left > 0 else 0.0

    def touch(self, key: Hashable) -> None:
        """Start the cooldown for key now."""
        if len(self._last) >= self._max_size and key not in self._last:
            oldest = min(self._last, key=self._last.get)
            self._last.pop(oldest, None)
        self._last[key] = time.monotonic()

    def try_acquire(self, key: Hashable, seconds: float) -> bool:
        """Start the cooldown if it isn't running; False if still cooling down."""
        if self.remaining(key, seconds) > 0:
            return False
        self.touch(key)
        return True

    def reset(self, key: Hashable) -> None:
        """Drop any running cooldown for key."""
        self._last.pop(key, None)

    def clear(self) -> None:
        self._last.clear()


__all__ = [
    "TTLCache",
    "ChannelCache",
    "MembershipCache",
    "AnnouncementCache",
    "Cooldowns",
]
