"""Domain entities for the Stremio stream pipeline.

Pure value objects with no framework dependencies and no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Literal

StremioContentType = Literal["movie", "series"]


class StreamQuality(IntEnum):
    """Ranked quality tiers (value = vertical resolution, 0 = unknown/SD)."""

    SD = 0
    SD_480P = 480
    HD_720P = 720
    HD_1080P = 1080
    UHD_4K = 2160

    @property
    def label(self) -> str:
        return _QUALITY_LABELS[self]


_QUALITY_LABELS: dict[StreamQuality, str] = {
    StreamQuality.SD: "SD",
    StreamQuality.SD_480P: "480p",
    StreamQuality.HD_720P: "720p",
    StreamQuality.HD_1080P: "1080p",
    StreamQuality.UHD_4K: "4K",
}


@dataclass(frozen=True)
class StreamCandidate:
    """A deduplicated torrent result from one of the indexer backends."""

    info_hash: str  # 40 hex chars, lowercase
    magnet_link: str
    filename: str
    display_title: str
    quality: StreamQuality = StreamQuality.SD
    quality_label: str = ""  # declared or parsed token, e.g. "1080p", "HDTS"
    size_label: str | None = None  # e.g. "4.2 GB"
    source_name: str = "Unknown"


@dataclass(frozen=True)
class RankedStream:
    """A candidate confirmed as cached on one debrid service."""

    candidate: StreamCandidate
    service: str
    size_mb: float = 0.0
    size_distance: float = 0.0

    @property
    def info_hash(self) -> str:
        return self.candidate.info_hash

    @property
    def quality(self) -> StreamQuality:
        return self.candidate.quality


@dataclass(frozen=True)
class FallbackEntry:
    """Cached alternate kept per content key for later fallback resolution."""

    info_hash: str
    magnet_link: str
    filename: str
    display_title: str = ""
    quality: StreamQuality = StreamQuality.SD
    size_label: str | None = None
    source_name: str = "Unknown"
    service: str = ""


@dataclass(frozen=True)
class StremioStreamRequest:
    """Parsed Stremio stream request.

    Created from URL path: ``tt1234567`` (movie) or
    ``tt1234567:1:5`` (series, season 1, episode 5).
    """

    content_id: str  # "tt1234567", "tmdb:12345" or "12345"
    content_type: StremioContentType
    season: int | None = None
    episode: int | None = None

    @property
    def cache_key(self) -> str:
        """Content cache key: ``{type}-{id}[-s{season}e{episode}]``."""
        key = f"{self.content_type}-{self.content_id}"
        if self.season is not None:
            key += f"-s{self.season}e{self.episode}"
        return key


@dataclass(frozen=True)
class StremioStream:
    """Stremio protocol Stream object (JSON-serializable)."""

    name: str  # Left column in Stremio UI, e.g. "⭐ | 1080P | 4.2 GB | Premiumize"
    description: str  # Filename and tech specs
    url: str  # Resolve endpoint carrying the opaque token


@dataclass(frozen=True)
class ResolveToken:
    """Decoded resolve token.

    ``cache_key`` is ``None`` for legacy tokens (bare magnet link), which
    have no fallback list.
    """

    magnet_link: str
    cache_key: str | None = None
    content_type: StremioContentType = "movie"
    season: int | None = None
    episode: int | None = None


@dataclass(frozen=True)
class ResolveOutcome:
    """Successful fallback resolution."""

    url: str
    service: str
    info_hash: str
    used_fallback: bool = False
    attempts: int = 1


@dataclass(frozen=True)
class ReleaseMetadata:
    """Tags derived from a release filename."""

    quality: str = "SD"
    hdr: list[str] = field(default_factory=list)
    codec: str | None = None
    audio: str | None = None
    source: str | None = None
    edition: list[str] = field(default_factory=list)


class StreamPipelineError(Exception):
    """Base error for the stream and resolve use cases."""


class InvalidStreamRequestError(StreamPipelineError, ValueError):
    """Malformed content id or missing season/episode for a series."""


class InvalidResolveTokenError(StreamPipelineError, ValueError):
    """Resolve token cannot be decoded or carries no btih hash."""


class StreamNotAvailableError(StreamPipelineError):
    """No provider produced a direct URL for the primary or any alternate."""
