"""Fallback lists per content key, held in a bounded in-process store."""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from magnetarr.domain.entities.stremio import FallbackEntry
from magnetarr.infrastructure.cache.memory_cache import BoundedMemoryCache

log = structlog.get_logger(__name__)


class MemoryStreamCache:
    """StreamCachePort backed by ``BoundedMemoryCache``.

    Entries are stored as tuples (whole-list replacement); ``get`` returns
    a fresh list so callers cannot mutate the stored snapshot.
    """

    def __init__(self, capacity: int = 1000) -> None:
        self._store: BoundedMemoryCache[tuple[FallbackEntry, ...]] = (
            BoundedMemoryCache(capacity, name="stream_cache")
        )

    def __len__(self) -> int:
        return len(self._store)

    async def save(self, cache_key: str, entries: Sequence[FallbackEntry]) -> None:
        self._store.set(cache_key, tuple(entries))
        log.debug("stream_cache_saved", cache_key=cache_key, count=len(entries))

    async def get(self, cache_key: str) -> list[FallbackEntry] | None:
        entries = self._store.get(cache_key)
        if entries is None:
            log.debug("stream_cache_miss", cache_key=cache_key)
            return None
        return list(entries)
