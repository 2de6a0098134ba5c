"""Port for torrent indexer backends."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from magnetarr.domain.entities.stremio import StremioContentType


@runtime_checkable
class IndexerBackendPort(Protocol):
    """Queries one indexer search API.

    Implementations return the raw result dicts
    (``title``, ``filename``, ``magnetLink``, ``quality``, ``size``).
    Transport or HTTP failures are raised; the aggregator isolates them.
    """

    @property
    def name(self) -> str:
        """Display name of the backend, attached to every candidate."""
        ...

    async def search(
        self, content_type: StremioContentType, query: str
    ) -> list[dict[str, Any]]: ...
