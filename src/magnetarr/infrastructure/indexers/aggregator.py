"""Fan-out search across indexer backends.

Each backend runs under its own timeout and the whole fan-out under a
global one; whatever has not answered by then is cancelled and dropped.
Failures never escape: a failed backend contributes zero candidates.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

import structlog

from magnetarr.domain.entities.stremio import (
    InvalidStreamRequestError,
    StreamCandidate,
    StremioContentType,
)
from magnetarr.domain.ports.indexer import IndexerBackendPort
from magnetarr.infrastructure.stremio.metadata import (
    find_quality_token,
    find_size_token,
    format_size,
    parse_quality,
    release_has_episode,
)
from magnetarr.infrastructure.stremio.resolve_token import extract_info_hash

log = structlog.get_logger(__name__)


def build_search_query(
    content_id: str, season: int | None = None, episode: int | None = None
) -> str:
    """Indexer query: id without the tmdb prefix, plus ``:S:E`` for episodes."""
    query = content_id.removeprefix("tmdb:").removeprefix("tmdb-")
    if season is not None and episode is not None:
        query = f"{query}:{season}:{episode}"
    return query


def normalize_result(raw: dict[str, Any], source_name: str) -> StreamCandidate | None:
    """Build a candidate from one raw indexer result.

    Returns ``None`` when the magnet link carries no btih hash.
    """
    magnet = raw.get("magnetLink")
    info_hash = extract_info_hash(magnet if isinstance(magnet, str) else None)
    if info_hash is None:
        return None

    title = str(raw.get("title") or "")
    quality_label = str(raw.get("quality") or "") or find_quality_token(title)
    size_label = format_size(raw.get("size")) or find_size_token(title) or None
    first_line = title.splitlines()[0].strip() if title.strip() else ""
    filename = str(raw.get("filename") or "") or first_line or "Unknown"

    return StreamCandidate(
        info_hash=info_hash,
        magnet_link=magnet,
        filename=filename,
        display_title=title or filename,
        quality=parse_quality(quality_label) or parse_quality(title),
        quality_label=quality_label,
        size_label=size_label,
        source_name=source_name,
    )


def _matches_episode(candidate: StreamCandidate, season: int, episode: int) -> bool:
    return any(
        release_has_episode(text, season, episode)
        for text in (candidate.filename, candidate.display_title)
    )


class SourceAggregator:
    """Query every backend concurrently and merge into unique candidates.

    Args:
        backends: Indexer backends in configured order. Deduplication is
            first-seen in this order.
        backend_timeout: Per-backend budget in seconds.
        overall_timeout: Budget for the whole fan-out in seconds.
    """

    def __init__(
        self,
        backends: Sequence[IndexerBackendPort],
        *,
        backend_timeout: float = 8.0,
        overall_timeout: float = 12.0,
    ) -> None:
        self._backends = list(backends)
        self._backend_timeout = backend_timeout
        self._overall_timeout = overall_timeout

    @property
    def backend_names(self) -> list[str]:
        return [b.name for b in self._backends]

    async def search(
        self,
        content_type: StremioContentType,
        content_id: str,
        season: int | None = None,
        episode: int | None = None,
    ) -> list[StreamCandidate]:
        """Deduplicated candidates (unordered contract, stable in practice).

        Raises:
            InvalidStreamRequestError: Series request without season/episode.
        """
        if content_type == "series" and (season is None or episode is None):
            raise InvalidStreamRequestError(
                f"series request {content_id!r} needs season and episode"
            )
        if not self._backends:
            log.warning("aggregator_no_backends")
            return []

        query = build_search_query(content_id, season, episode)
        tasks = [
            asyncio.create_task(self._search_backend(b, content_type, query))
            for b in self._backends
        ]
        _done, pending = await asyncio.wait(tasks, timeout=self._overall_timeout)
        for task in pending:
            task.cancel()
        if pending:
            log.warning(
                "aggregator_overall_timeout",
                query=query,
                pending=len(pending),
                timeout=self._overall_timeout,
            )

        wanted_episode = (
            (season, episode)
            if content_type == "series" and season is not None and episode is not None
            else None
        )
        seen: set[str] = set()
        candidates: list[StreamCandidate] = []
        raw_count = 0
        for backend, task in zip(self._backends, tasks):
            if task in pending:
                continue
            raw_results = task.result()
            raw_count += len(raw_results)
            for raw in raw_results:
                candidate = normalize_result(raw, backend.name)
                if candidate is None:
                    continue
                # Filtered before dedup; a later episode-titled copy may win.
                if wanted_episode is not None and not _matches_episode(
                    candidate, *wanted_episode
                ):
                    continue
                if candidate.info_hash in seen:
                    continue
                seen.add(candidate.info_hash)
                candidates.append(candidate)

        log.info(
            "aggregator_search_complete",
            query=query,
            content_type=content_type,
            raw_results=raw_count,
            candidates=len(candidates),
        )
        return candidates

    async def _search_backend(
        self,
        backend: IndexerBackendPort,
        content_type: StremioContentType,
        query: str,
    ) -> list[dict[str, Any]]:
        """Run one backend search, returning an empty list on any failure."""
        try:
            return await asyncio.wait_for(
                backend.search(content_type, query),
                timeout=self._backend_timeout,
            )
        except TimeoutError:
            log.warning(
                "indexer_search_timeout",
                indexer=backend.name,
                query=query,
                timeout=self._backend_timeout,
            )
            return []
        except Exception:
            log.warning(
                "indexer_search_failed",
                indexer=backend.name,
                query=query,
                exc_info=True,
            )
            return []
