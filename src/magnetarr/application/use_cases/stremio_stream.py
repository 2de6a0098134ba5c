"""Stremio stream use case.

content id -> indexer fan-out -> triage -> debrid cache probe
-> final rank -> StremioStream list (+ fallback list written in background).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Protocol

import structlog

from magnetarr.domain.entities.stremio import (
    FallbackEntry,
    RankedStream,
    StreamCandidate,
    StremioContentType,
    StremioStream,
    StremioStreamRequest,
)
from magnetarr.domain.ports.stream_cache import StreamCachePort

log = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Protocols: what this use case needs from its dependencies.
# Infrastructure components satisfy these via structural subtyping.
# ---------------------------------------------------------------------------


class _SourceAggregator(Protocol):
    async def search(
        self,
        content_type: StremioContentType,
        content_id: str,
        season: int | None = None,
        episode: int | None = None,
    ) -> list[StreamCandidate]: ...


class _ProbeOutcome(Protocol):
    streams: list[RankedStream]


class _CacheProber(Protocol):
    async def probe(self, candidates: Sequence[StreamCandidate]) -> _ProbeOutcome: ...


class _StreamRanker(Protocol):
    def triage(self, candidates: Sequence[StreamCandidate]) -> list[StreamCandidate]: ...

    def order(self, streams: Sequence[RankedStream]) -> list[RankedStream]: ...


class _FormatFn(Protocol):
    def __call__(
        self, ranked: RankedStream, *, addon_name: str, url: str
    ) -> StremioStream: ...


_TokenFn = Callable[[str, str], str]


def to_fallback_entry(ranked: RankedStream) -> FallbackEntry:
    c = ranked.candidate
    return FallbackEntry(
        info_hash=c.info_hash,
        magnet_link=c.magnet_link,
        filename=c.filename,
        display_title=c.display_title,
        quality=c.quality,
        size_label=c.size_label,
        source_name=c.source_name,
        service=ranked.service,
    )


class StremioStreamUseCase:
    """Resolve a Stremio stream request into ranked, resolvable streams.

    Flow:
        1. Search all indexer backends (per-backend and overall timeouts).
        2. Triage candidates and cap how many get cache-checked.
        3. Probe every debrid provider concurrently.
        4. Rank cached streams (quality tier, size band, size).
        5. Save the full ranked list as the fallback list (background).
        6. Format the top ``max_results`` with resolve URLs.
    """

    def __init__(
        self,
        *,
        aggregator: _SourceAggregator,
        prober: _CacheProber,
        ranker: _StreamRanker,
        stream_cache: StreamCachePort,
        format_fn: _FormatFn,
        token_fn: _TokenFn,
        addon_name: str,
        max_results: int = 50,
    ) -> None:
        self._aggregator = aggregator
        self._prober = prober
        self._ranker = ranker
        self._stream_cache = stream_cache
        self._format_fn = format_fn
        self._token_fn = token_fn
        self._addon_name = addon_name
        self._max_results = max_results
        self._background_tasks: set[asyncio.Task[None]] = set()

    async def execute(
        self,
        request: StremioStreamRequest,
        *,
        base_url: str,
    ) -> list[StremioStream]:
        """Return formatted streams, best first.

        Raises:
            InvalidStreamRequestError: Series request without season/episode.
        """
        cache_key = request.cache_key
        candidates = await self._aggregator.search(
            request.content_type,
            request.content_id,
            request.season,
            request.episode,
        )
        if not candidates:
            log.info("stremio_no_candidates", cache_key=cache_key)
            return []

        triaged = self._ranker.triage(candidates)
        outcome = await self._prober.probe(triaged)
        if not outcome.streams:
            log.info(
                "stremio_no_cached_streams",
                cache_key=cache_key,
                candidates=len(candidates),
                probed=len(triaged),
            )
            return []

        ordered = self._ranker.order(outcome.streams)
        self._schedule_fallback_save(cache_key, ordered)

        play_root = f"{base_url.rstrip('/')}/stremio/play"
        streams = []
        for s in ordered[: self._max_results]:
            token = self._token_fn(s.candidate.magnet_link, cache_key)
            streams.append(
                self._format_fn(
                    s, addon_name=self._addon_name, url=f"{play_root}/{token}"
                )
            )

        log.info(
            "stremio_streams_ready",
            cache_key=cache_key,
            candidates=len(candidates),
            probed=len(triaged),
            cached=len(outcome.streams),
            returned=len(streams),
        )
        return streams

    async def drain(self) -> None:
        """Wait for pending fallback writes (shutdown and tests)."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    def _schedule_fallback_save(
        self, cache_key: str, ordered: list[RankedStream]
    ) -> None:
        entries = [to_fallback_entry(s) for s in ordered]
        task = asyncio.create_task(self._save_fallbacks(cache_key, entries))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _save_fallbacks(self, cache_key: str, entries: list[FallbackEntry]) -> None:
        try:
            await self._stream_cache.save(cache_key, entries)
        except Exception:
            log.warning("stream_cache_save_failed", cache_key=cache_key, exc_info=True)
