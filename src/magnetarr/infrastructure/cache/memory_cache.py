"""In-process bounded key/value store with FIFO eviction and optional TTL."""

from __future__ import annotations

import time
from typing import Generic, TypeVar

import structlog

log = structlog.get_logger(__name__)

V = TypeVar("V")


class _CacheEntry(Generic[V]):
    """Value with an optional monotonic expiry."""

    __slots__ = ("value", "expires_at")

    def __init__(self, value: V, ttl: float | None) -> None:
        self.value = value
        self.expires_at = None if ttl is None else time.monotonic() + ttl

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at


class BoundedMemoryCache(Generic[V]):
    """Insertion-ordered map capped at *max_size* entries.

    Writing a key replaces the whole value and moves the key to the
    newest position. When the cap is exceeded the oldest keys go first.
    Values are never mutated in place, so a reader always sees one
    complete value.

    Args:
        max_size: Capacity in keys.
        ttl_seconds: Default lifetime per entry. ``None`` = no expiry.
        name: Label used in log events.
    """

    def __init__(
        self,
        max_size: int,
        *,
        ttl_seconds: float | None = None,
        name: str = "memory_cache",
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._name = name
        self._entries: dict[str, _CacheEntry[V]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not entry.is_expired

    def get(self, key: str) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: V, *, ttl: float | None = None) -> None:
        self._entries.pop(key, None)
        self._entries[key] = _CacheEntry(value, ttl if ttl is not None else self._ttl)
        self._enforce_max_size()

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        """Live keys, oldest first."""
        return [k for k, v in self._entries.items() if not v.is_expired]

    def _enforce_max_size(self) -> None:
        if len(self._entries) <= self._max_size:
            return
        # Python dicts preserve insertion order; pop from the front
        excess = len(self._entries) - self._max_size
        for key in list(self._entries.keys())[:excess]:
            del self._entries[key]
        log.debug("memory_cache_evict", cache=self._name, evicted=excess)
