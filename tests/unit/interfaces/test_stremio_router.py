"""Tests for Stremio stream id parsing and manifest building."""

from __future__ import annotations

import pytest

from magnetarr.domain.entities.stremio import InvalidStreamRequestError
from magnetarr.interfaces.api.stremio.router import _build_manifest, _parse_stream_id


class TestParseStreamId:
    def test_imdb_movie(self) -> None:
        req = _parse_stream_id("movie", "tt0371746")
        assert req is not None
        assert req.content_id == "tt0371746"
        assert req.content_type == "movie"
        assert req.season is None
        assert req.episode is None

    def test_imdb_episode(self) -> None:
        req = _parse_stream_id("series", "tt0903747:2:5")
        assert req is not None
        assert req.content_id == "tt0903747"
        assert (req.season, req.episode) == (2, 5)
        assert req.cache_key == "series-tt0903747-s2e5"

    def test_tmdb_colon_episode(self) -> None:
        req = _parse_stream_id("series", "tmdb:1396:1:3")
        assert req is not None
        assert req.content_id == "tmdb:1396"
        assert (req.season, req.episode) == (1, 3)

    @pytest.mark.parametrize("raw_id", ["tmdb-603", "603"])
    def test_other_tmdb_forms(self, raw_id: str) -> None:
        req = _parse_stream_id("movie", raw_id)
        assert req is not None
        assert req.content_id == raw_id

    def test_movie_ignores_trailing_parts(self) -> None:
        req = _parse_stream_id("movie", "tt0371746:1:1")
        assert req is not None
        assert req.season is None

    def test_series_without_episode_left_to_use_case(self) -> None:
        req = _parse_stream_id("series", "tt0903747")
        assert req is not None
        assert req.season is None

    @pytest.mark.parametrize(
        ("content_type", "raw_id"),
        [
            ("channel", "tt0371746"),
            ("movie", "kitsu:1234"),
            ("movie", "tmdb:abc"),
            ("series", ""),
        ],
    )
    def test_unsupported(self, content_type: str, raw_id: str) -> None:
        assert _parse_stream_id(content_type, raw_id) is None

    def test_non_numeric_episode(self) -> None:
        with pytest.raises(InvalidStreamRequestError):
            _parse_stream_id("series", "tt0903747:two:5")


class TestBuildManifest:
    def test_stream_only_addon(self) -> None:
        manifest = _build_manifest("My Addon")
        assert manifest["name"] == "My Addon"
        assert manifest["resources"] == ["stream"]
        assert manifest["types"] == ["movie", "series"]
        assert manifest["idPrefixes"] == ["tt", "tmdb"]
        assert manifest["catalogs"] == []
