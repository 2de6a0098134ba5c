"""Tests for Stremio and debrid domain entities."""

from __future__ import annotations

import pytest

from magnetarr.domain.entities.debrid import (
    DebridError,
    DebridNotPremiumError,
    FileEntry,
    NoSuitableFileError,
)
from magnetarr.domain.entities.stremio import (
    InvalidResolveTokenError,
    InvalidStreamRequestError,
    RankedStream,
    StreamCandidate,
    StreamPipelineError,
    StreamQuality,
    StremioStreamRequest,
)


class TestStreamQuality:
    def test_ordering(self) -> None:
        assert StreamQuality.UHD_4K > StreamQuality.HD_1080P
        assert StreamQuality.HD_1080P > StreamQuality.HD_720P
        assert StreamQuality.HD_720P > StreamQuality.SD_480P
        assert StreamQuality.SD_480P > StreamQuality.SD

    def test_labels(self) -> None:
        assert StreamQuality.UHD_4K.label == "4K"
        assert StreamQuality.HD_1080P.label == "1080p"
        assert StreamQuality.SD.label == "SD"


class TestStremioStreamRequest:
    def test_movie_cache_key(self) -> None:
        req = StremioStreamRequest(content_id="tt1234567", content_type="movie")
        assert req.cache_key == "movie-tt1234567"

    def test_series_cache_key(self) -> None:
        req = StremioStreamRequest(
            content_id="tmdb:1399", content_type="series", season=1, episode=10
        )
        assert req.cache_key == "series-tmdb:1399-s1e10"

    def test_frozen(self) -> None:
        req = StremioStreamRequest(content_id="tt1", content_type="movie")
        with pytest.raises(AttributeError):
            req.content_id = "tt2"  # type: ignore[misc]


class TestRankedStream:
    def test_delegates_to_candidate(self, candidate: StreamCandidate) -> None:
        stream = RankedStream(candidate=candidate, service="premiumize")
        assert stream.info_hash == candidate.info_hash
        assert stream.quality == StreamQuality.HD_1080P
        assert stream.size_mb == 0.0


class TestFileEntry:
    def test_size_mb(self) -> None:
        entry = FileEntry(path="a.mkv", size_bytes=1536 * 1024 * 1024)
        assert entry.size_mb == 1536.0


class TestErrorTaxonomy:
    def test_input_errors_are_value_errors(self) -> None:
        assert issubclass(InvalidStreamRequestError, ValueError)
        assert issubclass(InvalidResolveTokenError, ValueError)
        assert issubclass(InvalidStreamRequestError, StreamPipelineError)

    def test_debrid_errors_share_base(self) -> None:
        assert issubclass(DebridNotPremiumError, DebridError)
        assert issubclass(NoSuitableFileError, DebridError)
