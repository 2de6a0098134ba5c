"""Resolve a play token into a direct URL, walking cached alternates.

States: primary -> alternate 1..n -> success | exhausted.
Every (magnet, provider) attempt is isolated: refusals, transport
errors and timeouts move on to the next provider, then the next
alternate. Only exhaustion reaches the caller.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog

from magnetarr.domain.entities.stremio import (
    FallbackEntry,
    ResolveOutcome,
    ResolveToken,
    StreamNotAvailableError,
)
from magnetarr.domain.ports.debrid_provider import DebridProviderPort
from magnetarr.domain.ports.stream_cache import StreamCachePort

log = structlog.get_logger(__name__)

_HashFn = Callable[[str], str | None]


def order_alternates(
    entries: Sequence[FallbackEntry], exclude_hash: str | None
) -> list[FallbackEntry]:
    """One entry per hash (first wins), primary excluded, best quality first.

    The sort is stable, so the ranked order survives within a tier.
    """
    seen: set[str] = set()
    if exclude_hash:
        seen.add(exclude_hash.lower())
    unique: list[FallbackEntry] = []
    for entry in entries:
        key = entry.info_hash.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return sorted(unique, key=lambda e: -e.quality)


@dataclass
class _AttemptCounter:
    count: int = 0


class StreamResolveUseCase:
    """Fallback resolver.

    Args:
        providers: Debrid providers in configured order.
        stream_cache: Source of fallback lists by content cache key.
        extract_hash: Magnet link -> info-hash.
        attempt_timeout: Budget for one provider resolving one magnet.
    """

    def __init__(
        self,
        *,
        providers: Sequence[DebridProviderPort],
        stream_cache: StreamCachePort,
        extract_hash: _HashFn,
        attempt_timeout: float = 60.0,
    ) -> None:
        self._providers = list(providers)
        self._stream_cache = stream_cache
        self._extract_hash = extract_hash
        self._attempt_timeout = attempt_timeout

    async def execute(self, token: ResolveToken) -> ResolveOutcome:
        """Return the first usable direct URL.

        Raises:
            StreamNotAvailableError: No provider resolved the primary or
                any alternate.
        """
        counter = _AttemptCounter()
        primary_hash = self._extract_hash(token.magnet_link) or ""

        hit = await self._try_providers(token.magnet_link, token, counter)
        if hit is not None:
            url, service = hit
            log.info("resolve_primary_success", service=service, info_hash=primary_hash)
            return ResolveOutcome(
                url=url, service=service, info_hash=primary_hash, attempts=counter.count
            )

        alternates: list[FallbackEntry] = []
        if token.cache_key:
            cached = await self._stream_cache.get(token.cache_key)
            alternates = order_alternates(cached or [], primary_hash)
        log.info(
            "resolve_primary_failed",
            info_hash=primary_hash,
            cache_key=token.cache_key,
            alternates=len(alternates),
        )

        for index, alt in enumerate(alternates, start=1):
            hit = await self._try_providers(alt.magnet_link, token, counter)
            if hit is not None:
                url, service = hit
                log.info(
                    "resolve_fallback_success",
                    service=service,
                    info_hash=alt.info_hash,
                    alternate=index,
                    attempts=counter.count,
                )
                return ResolveOutcome(
                    url=url,
                    service=service,
                    info_hash=alt.info_hash,
                    used_fallback=True,
                    attempts=counter.count,
                )

        log.warning(
            "resolve_exhausted",
            info_hash=primary_hash,
            cache_key=token.cache_key,
            alternates=len(alternates),
            attempts=counter.count,
        )
        raise StreamNotAvailableError(
            f"no provider resolved {primary_hash or 'the stream'} "
            f"or any of {len(alternates)} alternates"
        )

    async def _try_providers(
        self, magnet_link: str, token: ResolveToken, counter: _AttemptCounter
    ) -> tuple[str, str] | None:
        for provider in self._providers:
            counter.count += 1
            try:
                url = await asyncio.wait_for(
                    provider.resolve(
                        magnet_link, token.content_type, token.season, token.episode
                    ),
                    timeout=self._attempt_timeout,
                )
            except TimeoutError:
                log.warning(
                    "resolve_attempt_timeout",
                    provider=provider.name,
                    timeout=self._attempt_timeout,
                )
                continue
            except Exception as exc:
                log.warning(
                    "resolve_attempt_failed",
                    provider=provider.name,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                continue

            if isinstance(url, str) and url.startswith(("http://", "https://")):
                return url, provider.name
            log.warning("resolve_attempt_invalid_url", provider=provider.name)
        return None
