"""Port for debrid / unrestriction services."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from magnetarr.domain.entities.debrid import CacheResult
from magnetarr.domain.entities.stremio import StremioContentType


@runtime_checkable
class DebridProviderPort(Protocol):
    """Uniform interface over debrid providers.

    The orchestrators never branch on concrete provider identity; the only
    behavioral difference they observe is ``supports_cache_check``.
    """

    @property
    def name(self) -> str: ...

    @property
    def supports_cache_check(self) -> bool:
        """``False`` when cache statuses are assumed rather than queried."""
        ...

    async def check_cache_statuses(
        self, hashes: Iterable[str]
    ) -> dict[str, CacheResult]:
        """Return cache status per lowercase info-hash.

        May return a partial mapping when a batch fails midway.
        """
        ...

    async def resolve(
        self,
        magnet_link: str,
        content_type: StremioContentType = "movie",
        season: int | None = None,
        episode: int | None = None,
    ) -> str:
        """Return a direct playable URL.

        Raises ``DebridError`` subclasses for provider-side refusals and
        ``httpx.HTTPError`` for transport failures.
        """
        ...
