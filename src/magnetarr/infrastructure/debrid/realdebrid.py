"""Real-Debrid provider (torrent add/select + link unrestriction)."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from magnetarr.domain.entities.debrid import (
    CacheResult,
    DebridActiveLimitError,
    DebridApiError,
    DebridError,
    DebridInvalidKeyError,
    DebridNotPremiumError,
    FileEntry,
    NoSuitableFileError,
    TorrentNotCachedError,
)
from magnetarr.domain.entities.stremio import StremioContentType
from magnetarr.infrastructure.stremio.file_selector import (
    select_episode_file,
    select_movie_file,
)
from magnetarr.infrastructure.stremio.resolve_token import extract_info_hash

log = structlog.get_logger(__name__)

_BASE_URL = "https://api.real-debrid.com/rest/1.0"

_VIDEO_EXTENSIONS = (
    ".mp4", ".mkv", ".avi", ".mov", ".wmv", ".webm", ".m4v", ".ts", ".m2ts",
)
_MIN_SELECT_BYTES = 5 * 1024 * 1024

_STATUS_ERROR = frozenset({"error", "magnet_error"})
_STATUS_READY = frozenset({"downloaded", "dead"})
_STATUS_DOWNLOADING = frozenset({"downloading", "uploading", "queued"})
_STATUS_WAITING_SELECTION = "waiting_files_selection"

# Real-Debrid ``error_code`` values with a dedicated meaning.
_ERROR_CODES: dict[int, type[DebridError]] = {
    8: DebridInvalidKeyError,  # bad_token
    9: DebridNotPremiumError,  # permission_denied
    20: DebridNotPremiumError,  # hoster not available for free users
    21: DebridActiveLimitError,  # too many active downloads
}


def _raise_for_error(resp: httpx.Response) -> None:
    if resp.status_code < 400:
        return
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = str(body.get("error") or resp.text or f"HTTP {resp.status_code}")
    code = body.get("error_code")

    exc_type = _ERROR_CODES.get(code) if isinstance(code, int) else None
    if exc_type is None and resp.status_code == 401:
        exc_type = DebridInvalidKeyError
    if exc_type is None and resp.status_code == 403:
        exc_type = DebridNotPremiumError
    exc_cls = exc_type or DebridApiError
    raise exc_cls(f"{message} (code={code}, status={resp.status_code})")


def _is_video(path: str) -> bool:
    return path.lower().endswith(_VIDEO_EXTENSIONS)


def _to_file_entries(torrent: dict[str, Any]) -> list[FileEntry]:
    entries = []
    for f in torrent.get("files") or []:
        path = str(f.get("path") or "")
        entries.append(
            FileEntry(
                path=path,
                size_bytes=int(f.get("bytes") or 0),
                is_video=_is_video(path),
                extension=path.rsplit(".", 1)[-1].lower() if "." in path else "",
                file_id=f.get("id"),
                selected=f.get("selected") == 1,
            )
        )
    return entries


class RealDebridProvider:
    """Real-Debrid adapter.

    Implements ``DebridProviderPort``. Real-Debrid exposes no instant
    availability endpoint, so cache statuses are assumed (``cached=True``)
    unless ``assume_cached`` is off, in which case nothing is reported
    cached. Resolution:

    1. Find the torrent among the most recent ones or add the magnet.
    2. ``downloaded`` -> unrestrict; ``downloading`` and friends -> not cached.
    3. ``waiting_files_selection`` -> select files, wait, re-check once.
    """

    def __init__(
        self,
        *,
        api_key: str,
        http_client: httpx.AsyncClient,
        base_url: str = _BASE_URL,
        assume_cached: bool = True,
        torrent_lookup_limit: int = 50,
        selection_wait: float = 3.0,
    ) -> None:
        self._api_key = api_key
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._assume_cached = assume_cached
        self._lookup_limit = torrent_lookup_limit
        self._selection_wait = selection_wait

    @property
    def name(self) -> str:
        return "realdebrid"

    @property
    def supports_cache_check(self) -> bool:
        return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
    ) -> Any:
        resp = await self._http.request(
            method,
            f"{self._base_url}{path}",
            params=params,
            data=data,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        _raise_for_error(resp)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise DebridApiError(f"invalid JSON from {path}") from exc

    async def _find_torrent(self, info_hash: str) -> str | None:
        torrents = await self._request(
            "GET", "/torrents", params={"page": 1, "limit": self._lookup_limit}
        )
        for t in torrents or []:
            if (
                str(t.get("hash", "")).lower() == info_hash
                and t.get("status") not in _STATUS_ERROR
            ):
                return str(t["id"])
        return None

    async def _add_magnet(self, magnet_link: str) -> str:
        body = await self._request(
            "POST", "/torrents/addMagnet", data={"magnet": magnet_link}
        )
        if not body or "id" not in body:
            raise DebridApiError("addMagnet returned no torrent id")
        log.debug("realdebrid_magnet_added", torrent_id=body["id"])
        return str(body["id"])

    async def _torrent_info(self, torrent_id: str) -> dict[str, Any]:
        body = await self._request("GET", f"/torrents/info/{torrent_id}")
        if not isinstance(body, dict):
            raise DebridApiError("torrent info missing")
        return body

    async def _select_files(
        self,
        torrent: dict[str, Any],
        content_type: StremioContentType,
        season: int | None,
        episode: int | None,
    ) -> None:
        videos = [
            f
            for f in _to_file_entries(torrent)
            if f.is_video and f.size_bytes > _MIN_SELECT_BYTES
        ]
        if not videos:
            raise NoSuitableFileError("no video files found")

        if content_type == "series" and season is not None and episode is not None:
            target = select_episode_file(videos, season, episode)
            if target is None:
                raise NoSuitableFileError(
                    f"episode S{season}E{episode} not found in torrent"
                )
            file_ids = [target.file_id]
        elif content_type == "movie":
            target = select_movie_file(videos)
            file_ids = [target.file_id] if target else [f.file_id for f in videos]
        else:
            file_ids = [f.file_id for f in videos]

        await self._request(
            "POST",
            f"/torrents/selectFiles/{torrent['id']}",
            data={"files": ",".join(str(i) for i in file_ids)},
        )
        log.debug("realdebrid_files_selected", torrent_id=torrent["id"], files=file_ids)

    async def _unrestrict(
        self,
        torrent: dict[str, Any],
        content_type: StremioContentType,
        season: int | None,
        episode: int | None,
    ) -> str:
        # ``links`` lines up with the selected files, in file order.
        selected = [f for f in _to_file_entries(torrent) if f.selected]
        videos = [f for f in selected if f.is_video]
        if not videos:
            raise NoSuitableFileError("no selected video files")

        target: FileEntry | None
        if content_type == "series" and season is not None and episode is not None:
            target = select_episode_file(videos, season, episode)
            if target is None:
                target = max(videos, key=lambda f: f.size_bytes)
                log.info("realdebrid_episode_fallback_largest", path=target.path)
        elif content_type == "movie":
            target = select_movie_file(videos)
        else:
            target = max(videos, key=lambda f: f.size_bytes)
        assert target is not None

        links = torrent.get("links") or []
        index = selected.index(target)
        if index >= len(links):
            raise NoSuitableFileError("no download link for selected file")

        body = await self._request(
            "POST", "/unrestrict/link", data={"link": links[index]}
        )
        url = (body or {}).get("download")
        if not url:
            raise DebridApiError("unrestrict returned no download url")
        log.info("realdebrid_unrestricted", path=target.path)
        return str(url)

    # ------------------------------------------------------------------
    # Public API (DebridProviderPort)
    # ------------------------------------------------------------------

    async def check_cache_statuses(
        self, hashes: Iterable[str]
    ) -> dict[str, CacheResult]:
        return {
            h.lower(): CacheResult(
                info_hash=h.lower(), cached=self._assume_cached, service=self.name
            )
            for h in hashes
        }

    async def resolve(
        self,
        magnet_link: str,
        content_type: StremioContentType = "movie",
        season: int | None = None,
        episode: int | None = None,
    ) -> str:
        info_hash = extract_info_hash(magnet_link)
        if info_hash is None:
            raise DebridApiError("magnet link has no btih hash")

        torrent_id = await self._find_torrent(info_hash)
        if torrent_id is None:
            torrent_id = await self._add_magnet(magnet_link)

        torrent = await self._torrent_info(torrent_id)
        status = torrent.get("status")
        log.debug("realdebrid_torrent_status", torrent_id=torrent_id, status=status)

        if status in _STATUS_READY:
            return await self._unrestrict(torrent, content_type, season, episode)
        if status in _STATUS_DOWNLOADING:
            raise TorrentNotCachedError(f"torrent is {status}")
        if status == _STATUS_WAITING_SELECTION:
            await self._select_files(torrent, content_type, season, episode)
            await asyncio.sleep(self._selection_wait)
            torrent = await self._torrent_info(torrent_id)
            if torrent.get("status") in _STATUS_READY:
                return await self._unrestrict(torrent, content_type, season, episode)
            raise TorrentNotCachedError(
                f"torrent not cached after selection: {torrent.get('status')}"
            )
        raise TorrentNotCachedError(f"torrent not ready: {status}")
