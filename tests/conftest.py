"""Shared test fixtures for Magnetarr test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from magnetarr.domain.entities.stremio import (
    StreamCandidate,
    StreamQuality,
    StremioStreamRequest,
)
from magnetarr.infrastructure.persistence.stream_cache import MemoryStreamCache

# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------

_HASH = "a" * 40


@pytest.fixture()
def candidate() -> StreamCandidate:
    """Minimal valid 1080p candidate."""
    return StreamCandidate(
        info_hash=_HASH,
        magnet_link=f"magnet:?xt=urn:btih:{_HASH}&dn=Iron.Man.2008",
        filename="Iron.Man.2008.1080p.BluRay.x264.mkv",
        display_title="Iron.Man.2008.1080p.BluRay.x264\n💾 8.5 GB",
        quality=StreamQuality.HD_1080P,
        quality_label="1080p",
        size_label="8.5 GB",
        source_name="TorrentIO",
    )


@pytest.fixture()
def movie_request() -> StremioStreamRequest:
    return StremioStreamRequest(content_id="tt0371746", content_type="movie")


@pytest.fixture()
def series_request() -> StremioStreamRequest:
    return StremioStreamRequest(
        content_id="tt0903747", content_type="series", season=2, episode=5
    )


# ---------------------------------------------------------------------------
# Infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def stream_cache() -> MemoryStreamCache:
    return MemoryStreamCache(capacity=10)


# ---------------------------------------------------------------------------
# Mock port fixtures
# ---------------------------------------------------------------------------


def _mock_provider(name: str, *, supports_cache_check: bool = True) -> MagicMock:
    provider = MagicMock()
    provider.name = name
    provider.supports_cache_check = supports_cache_check
    provider.check_cache_statuses = AsyncMock(return_value={})
    provider.resolve = AsyncMock(return_value=f"https://{name}.example/file.mkv")
    return provider


@pytest.fixture()
def mock_premiumize() -> MagicMock:
    """Mock DebridProviderPort named ``premiumize``."""
    return _mock_provider("premiumize")


@pytest.fixture()
def mock_realdebrid() -> MagicMock:
    """Mock DebridProviderPort named ``realdebrid`` (no native cache check)."""
    return _mock_provider("realdebrid", supports_cache_check=False)
