"""Domain entities for debrid provider interaction."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FileEntry:
    """One file inside a torrent as reported by a debrid provider."""

    path: str
    size_bytes: int = 0
    link: str = ""
    stream_link: str = ""
    is_video: bool = False
    is_subtitle: bool = False
    extension: str = ""
    file_id: int | None = None  # provider-side id (RealDebrid file selection)
    selected: bool = False

    @property
    def size_mb(self) -> float:
        return self.size_bytes / (1024 * 1024)


@dataclass(frozen=True)
class CacheResult:
    """Cache status of one info-hash on one provider."""

    info_hash: str
    cached: bool
    service: str
    files: list[FileEntry] = field(default_factory=list)


class DebridError(Exception):
    """Base error for debrid provider failures.

    Every subclass is a soft failure for resolution: the caller moves on
    to the next provider or alternate.
    """


class DebridInvalidKeyError(DebridError):
    pass


class DebridNotPremiumError(DebridError):
    pass


class DebridActiveLimitError(DebridError):
    pass


class TorrentNotCachedError(DebridError):
    pass


class NoSuitableFileError(DebridError):
    pass


class DebridApiError(DebridError):
    pass
