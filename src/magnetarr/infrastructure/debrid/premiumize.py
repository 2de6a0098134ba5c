"""Premiumize.me debrid provider (cache check + DirectDL)."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from magnetarr.domain.entities.debrid import (
    CacheResult,
    DebridApiError,
    DebridError,
    DebridInvalidKeyError,
    DebridNotPremiumError,
    FileEntry,
    NoSuitableFileError,
)
from magnetarr.domain.entities.stremio import StremioContentType
from magnetarr.infrastructure.cache.memory_cache import BoundedMemoryCache
from magnetarr.infrastructure.stremio.file_selector import (
    SUBTITLE_EXTENSION_RE,
    VIDEO_EXTENSION_RE,
    select_episode_file,
    select_movie_file,
)
from magnetarr.infrastructure.stremio.resolve_token import extract_info_hash

log = structlog.get_logger(__name__)

_BASE_URL = "https://www.premiumize.me/api"


def _raise_for_api_error(data: dict[str, Any]) -> None:
    """Map ``{"status": "error", "message": ...}`` onto the DebridError taxonomy."""
    if data.get("status") != "error":
        return
    message = str(data.get("message") or "unknown error")
    if message == "Invalid API key.":
        raise DebridInvalidKeyError(message)
    if "premium" in message.lower():
        raise DebridNotPremiumError(message)
    raise DebridApiError(message)


def _to_file_entry(item: dict[str, Any]) -> FileEntry:
    path = str(item.get("path") or "")
    link = str(item.get("link") or "")
    return FileEntry(
        path=path,
        size_bytes=int(item.get("size") or 0),
        link=link,
        stream_link=str(item.get("stream_link") or link),
        is_video=bool(VIDEO_EXTENSION_RE.search(path)),
        is_subtitle=bool(SUBTITLE_EXTENSION_RE.search(path)),
        extension=path.rsplit(".", 1)[-1].lower() if "." in path else "",
    )


class PremiumizeProvider:
    """Premiumize adapter.

    Implements ``DebridProviderPort``. Cache checks are chunked
    (``batch_size`` hashes per call, sequential, with a pause in between).
    File lists come from ``/transfer/directdl`` and are memoized per
    info-hash.

    Transport failures are retried ``max_attempts`` times; API-level
    errors (``status: error``) are raised immediately.

    With ``cache_check_budget`` set, a cache check stops issuing chunks
    once the budget is spent and returns what it has, so a caller's
    per-provider timeout never discards finished chunks.
    """

    def __init__(
        self,
        *,
        api_key: str,
        http_client: httpx.AsyncClient,
        base_url: str = _BASE_URL,
        batch_size: int = 99,
        batch_delay: float = 0.5,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        cache_check_budget: float | None = None,
        file_cache: BoundedMemoryCache[list[FileEntry]] | None = None,
    ) -> None:
        self._api_key = api_key
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay
        self._cache_check_budget = cache_check_budget
        self._file_cache: BoundedMemoryCache[list[FileEntry]] = (
            file_cache
            if file_cache is not None
            else BoundedMemoryCache(500, ttl_seconds=1800, name="premiumize_files")
        )

    @property
    def name(self) -> str:
        return "premiumize"

    @property
    def supports_cache_check(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        data: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        if method == "GET":
            params = [*(params or []), ("apikey", self._api_key)]
        else:
            data = {**(data or {}), "apikey": self._api_key}

        last_exc: httpx.HTTPError | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                resp = await self._http.request(method, url, params=params, data=data)
                resp.raise_for_status()
            except httpx.HTTPError as exc:
                last_exc = exc
                log.warning(
                    "premiumize_request_failed",
                    path=path,
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    error=str(exc),
                )
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._retry_delay)
                continue

            try:
                body = resp.json()
            except ValueError as exc:
                raise DebridApiError(f"invalid JSON from {path}") from exc
            if not isinstance(body, dict):
                raise DebridApiError(f"unexpected payload from {path}")
            _raise_for_api_error(body)
            return body

        assert last_exc is not None
        raise last_exc

    # ------------------------------------------------------------------
    # Public API (DebridProviderPort)
    # ------------------------------------------------------------------

    async def check_cache_statuses(
        self, hashes: Iterable[str]
    ) -> dict[str, CacheResult]:
        unique = list(dict.fromkeys(h.lower() for h in hashes))
        results: dict[str, CacheResult] = {}
        batches = [
            unique[i : i + self._batch_size]
            for i in range(0, len(unique), self._batch_size)
        ]

        loop = asyncio.get_running_loop()
        deadline = (
            loop.time() + self._cache_check_budget
            if self._cache_check_budget is not None
            else None
        )

        for index, batch in enumerate(batches):
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                log.warning(
                    "premiumize_cache_budget_exhausted",
                    batch=index + 1,
                    batches=len(batches),
                    accumulated=len(results),
                )
                break
            try:
                body = await asyncio.wait_for(
                    self._request(
                        "GET",
                        "/cache/check",
                        params=[("items[]", h) for h in batch],
                    ),
                    timeout=remaining,
                )
            except (DebridError, httpx.HTTPError, TimeoutError):
                log.warning(
                    "premiumize_cache_batch_failed",
                    batch=index + 1,
                    batches=len(batches),
                    accumulated=len(results),
                    exc_info=True,
                )
                break

            flags = body.get("response") or []
            for pos, info_hash in enumerate(batch):
                cached = bool(flags[pos]) if pos < len(flags) else False
                results[info_hash] = CacheResult(
                    info_hash=info_hash, cached=cached, service=self.name
                )

            if index < len(batches) - 1:
                await asyncio.sleep(self._batch_delay)

        log.info(
            "premiumize_cache_checked",
            hashes=len(unique),
            cached=sum(1 for r in results.values() if r.cached),
            batches=len(batches),
        )
        return results

    async def get_file_list(self, magnet_link: str) -> list[FileEntry]:
        """Files of a cached torrent, memoized per info-hash."""
        info_hash = extract_info_hash(magnet_link)
        cache_key = f"files:{info_hash}" if info_hash else None
        if cache_key is not None:
            cached = self._file_cache.get(cache_key)
            if cached is not None:
                log.debug("premiumize_file_list_cache_hit", info_hash=info_hash)
                return cached

        body = await self._request(
            "POST", "/transfer/directdl", data={"src": magnet_link}
        )
        files = [
            _to_file_entry(item)
            for item in body.get("content") or []
            if isinstance(item, dict)
        ]
        if cache_key is not None:
            self._file_cache.set(cache_key, files)
        log.debug(
            "premiumize_file_list",
            info_hash=info_hash,
            files=len(files),
            videos=sum(1 for f in files if f.is_video),
        )
        return files

    async def resolve(
        self,
        magnet_link: str,
        content_type: StremioContentType = "movie",
        season: int | None = None,
        episode: int | None = None,
    ) -> str:
        files = await self.get_file_list(magnet_link)
        if not files:
            raise NoSuitableFileError("no files found in torrent")

        if content_type == "series":
            if season is None or episode is None:
                raise NoSuitableFileError("season and episode required for series")
            selected = select_episode_file(files, season, episode)
        else:
            selected = select_movie_file(files)

        if selected is None:
            kind = "episode" if content_type == "series" else "video"
            raise NoSuitableFileError(f"no suitable {kind} file found")

        log.info(
            "premiumize_file_selected",
            path=selected.path,
            size_mb=round(selected.size_mb, 1),
        )
        return selected.stream_link or selected.link
