"""Tests for HttpxIndexerBackend."""

from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest
import respx

from magnetarr.infrastructure.indexers.backend import HttpxIndexerBackend

_BASE = "https://indexer.example"


def _make_backend(http_client: httpx.AsyncClient) -> HttpxIndexerBackend:
    return HttpxIndexerBackend(
        name="Example",
        base_url=f"{_BASE}/",
        http_client=http_client,
        user_agent="Magnetarr-Test/1.0",
    )


class TestHttpxIndexerBackend:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_search_sends_query_and_user_agent(self) -> None:
        route = respx.get(f"{_BASE}/api/search").mock(
            return_value=httpx.Response(
                200, json={"results": [{"title": "a"}, "junk", {"title": "b"}]}
            )
        )
        async with httpx.AsyncClient() as client:
            results = await _make_backend(client).search("series", "tt1:1:2")

        assert results == [{"title": "a"}, {"title": "b"}]
        request = route.calls.last.request
        assert request.url.params["type"] == "series"
        assert request.url.params["query"] == "tt1:1:2"
        assert request.headers["user-agent"] == "Magnetarr-Test/1.0"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_missing_results_field(self) -> None:
        respx.get(f"{_BASE}/api/search").mock(
            return_value=httpx.Response(200, json={"error": "nope"})
        )
        async with httpx.AsyncClient() as client:
            assert await _make_backend(client).search("movie", "tt1") == []

    @respx.mock
    @pytest.mark.asyncio()
    async def test_invalid_json(self) -> None:
        respx.get(f"{_BASE}/api/search").mock(
            return_value=httpx.Response(200, text="<html>")
        )
        async with httpx.AsyncClient() as client:
            assert await _make_backend(client).search("movie", "tt1") == []

    @respx.mock
    @pytest.mark.asyncio()
    async def test_http_error_raises(self) -> None:
        respx.get(f"{_BASE}/api/search").mock(return_value=httpx.Response(502))
        async with httpx.AsyncClient() as client:
            with pytest.raises(httpx.HTTPStatusError):
                await _make_backend(client).search("movie", "tt1")

    def test_name(self) -> None:
        backend = _make_backend(MagicMock(spec=httpx.AsyncClient))
        assert backend.name == "Example"
