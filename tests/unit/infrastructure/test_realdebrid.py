"""Tests for RealDebridProvider (torrent state machine + unrestrict)."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest
import respx

from magnetarr.domain.entities.debrid import (
    DebridActiveLimitError,
    DebridInvalidKeyError,
    NoSuitableFileError,
    TorrentNotCachedError,
)
from magnetarr.infrastructure.debrid.realdebrid import RealDebridProvider

_API_KEY = "rd-test-key"
_BASE = "https://api.real-debrid.com/rest/1.0"
_HASH = "0123456789abcdef0123456789abcdef01234567"
_MAGNET = f"magnet:?xt=urn:btih:{_HASH}&dn=Movie"

_MB = 1024 * 1024


def _make_provider(
    http_client: httpx.AsyncClient, **kwargs: object
) -> RealDebridProvider:
    return RealDebridProvider(
        api_key=_API_KEY,
        http_client=http_client,
        selection_wait=0,
        **kwargs,  # type: ignore[arg-type]
    )


def _torrent(
    status: str,
    files: list[tuple[int, str, float, int]],
    links: list[str] | None = None,
    torrent_id: str = "T1",
) -> dict:
    return {
        "id": torrent_id,
        "hash": _HASH,
        "status": status,
        "files": [
            {"id": fid, "path": path, "bytes": int(size_mb * _MB), "selected": sel}
            for fid, path, size_mb, sel in files
        ],
        "links": links or [],
    }


_MOVIE_FILES = [
    (1, "/Movie/Movie.nfo", 0.01, 0),
    (2, "/Movie/Sample/movie.sample.mkv", 40, 1),
    (3, "/Movie/Movie.2024.1080p.mkv", 9000, 1),
]


class TestCheckCacheStatuses:
    @pytest.mark.asyncio()
    async def test_assumes_cached(self) -> None:
        async with httpx.AsyncClient() as client:
            provider = _make_provider(client)
            results = await provider.check_cache_statuses([_HASH.upper()])
        assert results[_HASH].cached is True
        assert results[_HASH].service == "realdebrid"
        assert provider.supports_cache_check is False

    @pytest.mark.asyncio()
    async def test_assumption_can_be_disabled(self) -> None:
        async with httpx.AsyncClient() as client:
            provider = _make_provider(client, assume_cached=False)
            results = await provider.check_cache_statuses([_HASH])
        assert results[_HASH].cached is False


class TestResolve:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_downloaded_torrent_is_unrestricted(self) -> None:
        torrents = respx.get(f"{_BASE}/torrents").mock(
            return_value=httpx.Response(
                200, json=[{"id": "T1", "hash": _HASH.upper(), "status": "downloaded"}]
            )
        )
        respx.get(f"{_BASE}/torrents/info/T1").mock(
            return_value=httpx.Response(
                200,
                json=_torrent(
                    "downloaded",
                    _MOVIE_FILES,
                    links=["https://rd/sample", "https://rd/feature"],
                ),
            )
        )
        unrestrict = respx.post(f"{_BASE}/unrestrict/link").mock(
            return_value=httpx.Response(200, json={"download": "https://dl/movie.mkv"})
        )

        async with httpx.AsyncClient() as client:
            url = await _make_provider(client).resolve(_MAGNET)

        assert url == "https://dl/movie.mkv"
        form = parse_qs(unrestrict.calls.last.request.content.decode())
        # Links line up with selected files, so the feature is the second link.
        assert form["link"] == ["https://rd/feature"]
        request = torrents.calls.last.request
        assert request.headers["authorization"] == f"Bearer {_API_KEY}"
        assert request.url.params["limit"] == "50"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_new_magnet_goes_through_file_selection(self) -> None:
        respx.get(f"{_BASE}/torrents").mock(return_value=httpx.Response(200, json=[]))
        add = respx.post(f"{_BASE}/torrents/addMagnet").mock(
            return_value=httpx.Response(201, json={"id": "T9"})
        )
        waiting = _torrent(
            "waiting_files_selection",
            [(fid, path, size, 0) for fid, path, size, _ in _MOVIE_FILES],
            torrent_id="T9",
        )
        ready = _torrent(
            "downloaded",
            [
                (fid, path, size, 1 if fid == 3 else 0)
                for fid, path, size, _ in _MOVIE_FILES
            ],
            links=["https://rd/feature"],
            torrent_id="T9",
        )
        respx.get(f"{_BASE}/torrents/info/T9").mock(
            side_effect=[
                httpx.Response(200, json=waiting),
                httpx.Response(200, json=ready),
            ]
        )
        select = respx.post(f"{_BASE}/torrents/selectFiles/T9").mock(
            return_value=httpx.Response(204)
        )
        respx.post(f"{_BASE}/unrestrict/link").mock(
            return_value=httpx.Response(200, json={"download": "https://dl/movie.mkv"})
        )

        async with httpx.AsyncClient() as client:
            url = await _make_provider(client).resolve(_MAGNET)

        assert url == "https://dl/movie.mkv"
        assert parse_qs(add.calls.last.request.content.decode())["magnet"] == [_MAGNET]
        assert parse_qs(select.calls.last.request.content.decode())["files"] == ["3"]

    @respx.mock
    @pytest.mark.asyncio()
    async def test_downloading_is_not_cached(self) -> None:
        respx.get(f"{_BASE}/torrents").mock(
            return_value=httpx.Response(
                200, json=[{"id": "T1", "hash": _HASH, "status": "downloading"}]
            )
        )
        respx.get(f"{_BASE}/torrents/info/T1").mock(
            return_value=httpx.Response(200, json=_torrent("downloading", _MOVIE_FILES))
        )
        async with httpx.AsyncClient() as client:
            with pytest.raises(TorrentNotCachedError):
                await _make_provider(client).resolve(_MAGNET)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_selection_without_episode_match_fails(self) -> None:
        respx.get(f"{_BASE}/torrents").mock(
            return_value=httpx.Response(
                200,
                json=[{"id": "T1", "hash": _HASH, "status": "waiting_files_selection"}],
            )
        )
        respx.get(f"{_BASE}/torrents/info/T1").mock(
            return_value=httpx.Response(
                200,
                json=_torrent(
                    "waiting_files_selection",
                    [(1, "/Show/Show.S01E01.mkv", 900, 0)],
                ),
            )
        )
        async with httpx.AsyncClient() as client:
            with pytest.raises(NoSuitableFileError):
                await _make_provider(client).resolve(_MAGNET, "series", 2, 5)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_bad_token(self) -> None:
        respx.get(f"{_BASE}/torrents").mock(
            return_value=httpx.Response(
                401, json={"error": "bad_token", "error_code": 8}
            )
        )
        async with httpx.AsyncClient() as client:
            with pytest.raises(DebridInvalidKeyError):
                await _make_provider(client).resolve(_MAGNET)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_active_limit(self) -> None:
        respx.get(f"{_BASE}/torrents").mock(return_value=httpx.Response(200, json=[]))
        respx.post(f"{_BASE}/torrents/addMagnet").mock(
            return_value=httpx.Response(
                509, json={"error": "too_many_active_downloads", "error_code": 21}
            )
        )
        async with httpx.AsyncClient() as client:
            with pytest.raises(DebridActiveLimitError):
                await _make_provider(client).resolve(_MAGNET)
