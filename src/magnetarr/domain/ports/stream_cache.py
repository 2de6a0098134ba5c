"""Port for the fallback stream cache."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from magnetarr.domain.entities.stremio import FallbackEntry


@runtime_checkable
class StreamCachePort(Protocol):
    """Stores the ranked cached alternates for one content key.

    Writes replace the whole entry; reads return the full list or ``None``.
    """

    async def save(self, cache_key: str, entries: Sequence[FallbackEntry]) -> None: ...

    async def get(self, cache_key: str) -> list[FallbackEntry] | None: ...
