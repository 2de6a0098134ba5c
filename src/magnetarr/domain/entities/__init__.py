from .debrid import (
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
from .stremio import (
    FallbackEntry,
    InvalidResolveTokenError,
    InvalidStreamRequestError,
    RankedStream,
    ReleaseMetadata,
    ResolveOutcome,
    ResolveToken,
    StreamCandidate,
    StreamNotAvailableError,
    StreamPipelineError,
    StreamQuality,
    StremioContentType,
    StremioStream,
    StremioStreamRequest,
)

__all__ = [
    "CacheResult",
    "DebridActiveLimitError",
    "DebridApiError",
    "DebridError",
    "DebridInvalidKeyError",
    "DebridNotPremiumError",
    "FallbackEntry",
    "FileEntry",
    "InvalidResolveTokenError",
    "InvalidStreamRequestError",
    "NoSuitableFileError",
    "RankedStream",
    "ReleaseMetadata",
    "ResolveOutcome",
    "ResolveToken",
    "StreamCandidate",
    "StreamNotAvailableError",
    "StreamPipelineError",
    "StreamQuality",
    "StremioContentType",
    "StremioStream",
    "StremioStreamRequest",
    "TorrentNotCachedError",
]
