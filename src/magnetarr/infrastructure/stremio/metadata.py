"""Release name parser using guessit for quality, tags and episode numbers.

Quality falls back to the first raw quality token when guessit finds no
screen size. Size labels are scraped with a literal pattern.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from guessit import guessit

from magnetarr.domain.entities.stremio import ReleaseMetadata, StreamQuality

# --- Quality mappings ---

_SCREEN_SIZE_TO_QUALITY: dict[str, StreamQuality] = {
    "4320p": StreamQuality.UHD_4K,
    "2160p": StreamQuality.UHD_4K,
    "1440p": StreamQuality.HD_1080P,
    "1080p": StreamQuality.HD_1080P,
    "1080i": StreamQuality.HD_1080P,
    "720p": StreamQuality.HD_720P,
    "576p": StreamQuality.SD_480P,
    "576i": StreamQuality.SD_480P,
    "480p": StreamQuality.SD_480P,
    "480i": StreamQuality.SD_480P,
}

_BADGE_TO_QUALITY: dict[str, StreamQuality] = {
    "4K": StreamQuality.UHD_4K,
    "UHD": StreamQuality.UHD_4K,
    "2160P": StreamQuality.UHD_4K,
    "1080P": StreamQuality.HD_1080P,
    "FHD": StreamQuality.HD_1080P,
    "FULLHD": StreamQuality.HD_1080P,
    "FULL HD": StreamQuality.HD_1080P,
    "720P": StreamQuality.HD_720P,
    "HD": StreamQuality.HD_720P,
    "480P": StreamQuality.SD_480P,
    "SD": StreamQuality.SD_480P,
}

# --- Tag tables, in order of preference: (label, guessit key, guessit value) ---

_CODECS: list[tuple[str, str, str]] = [
    ("AV1", "video_codec", "AV1"),
    ("HEVC", "video_codec", "H.265"),
    ("H.264", "video_codec", "H.264"),
]

_AUDIO: list[tuple[str, str, str]] = [
    ("Atmos", "audio_codec", "Dolby Atmos"),
    ("TrueHD", "audio_codec", "Dolby TrueHD"),
    ("DTS-HD", "audio_codec", "DTS-HD"),
    ("DTS", "audio_codec", "DTS"),
    ("7.1", "audio_channels", "7.1"),
    ("5.1", "audio_channels", "5.1"),
]

# HDR10+ and HDR10 are exclusive, Dolby Vision stacks on either.
_HDR10: list[tuple[str, str, str]] = [
    ("HDR10+", "other", "HDR10+"),
    ("HDR10", "other", "HDR10"),
]

_EDITIONS = ("Extended", "Director's Cut", "IMAX")

# --- Raw tokens used during candidate normalization ---

_QUALITY_TOKEN_RE = re.compile(r"\d{3,4}p|4k|uhd|hdts|cam", re.IGNORECASE)
_SIZE_TOKEN_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(TB|GB|MB)", re.IGNORECASE)

_UNIT_TO_MB = {"TB": 1024 * 1024, "GB": 1024, "MB": 1}


@lru_cache(maxsize=4096)
def _guess(name: str) -> dict[str, Any]:
    # Ranking and formatting parse the same names repeatedly.
    return dict(guessit(" ".join(name.split())))


def _values(guess: dict[str, Any], key: str) -> list[Any]:
    value = guess.get(key)
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _has(guess: dict[str, Any], key: str, value: str) -> bool:
    return any(str(v) == value for v in _values(guess, key))


def _first_label(guess: dict[str, Any], table: list[tuple[str, str, str]]) -> str | None:
    for label, key, value in table:
        if _has(guess, key, value):
            return label
    return None


def _source(guess: dict[str, Any]) -> str | None:
    """REMUX > BluRay > WEB-DL > WEBRip."""
    other = [str(v) for v in _values(guess, "other")]
    sources = [str(v) for v in _values(guess, "source")]
    if "Remux" in other:
        return "REMUX"
    if any("Blu-ray" in s for s in sources):
        return "BluRay"
    if "Web" in sources:
        return "WEBRip" if "Rip" in other else "WEB-DL"
    return None


def _quality_from_badge(text: str) -> StreamQuality | None:
    badge = _BADGE_TO_QUALITY.get(text.strip().upper())
    if badge is not None:
        return badge
    return _BADGE_TO_QUALITY.get(find_quality_token(text).upper())


# --- Public API ---


def parse_quality(text: str | None) -> StreamQuality:
    """Map free text to a quality tier. Unparseable text is ``SD`` (tier 0).

    Priority: 1) guessit screen_size, 2) a bare badge or raw quality token.
    """
    if not text or not text.strip():
        return StreamQuality.SD
    screen_size = _guess(text).get("screen_size")
    if screen_size in _SCREEN_SIZE_TO_QUALITY:
        return _SCREEN_SIZE_TO_QUALITY[screen_size]
    return _quality_from_badge(text) or StreamQuality.SD


def parse_size_mb(text: str | None) -> float:
    """Extract the first ``N(.N) TB|GB|MB`` token in megabytes (0 if none)."""
    if not text:
        return 0.0
    m = _SIZE_TOKEN_RE.search(text)
    if m is None:
        return 0.0
    return float(m.group(1)) * _UNIT_TO_MB[m.group(2).upper()]


def find_quality_token(text: str | None) -> str:
    """Return the raw quality token in *text* (``"1080p"``, ``"HDTS"``) or ``""``."""
    if not text:
        return ""
    m = _QUALITY_TOKEN_RE.search(text)
    return m.group(0) if m else ""


def find_size_token(text: str | None) -> str:
    """Return the raw size token in *text* (``"4.2 GB"``) or ``""``."""
    if not text:
        return ""
    m = _SIZE_TOKEN_RE.search(text)
    return m.group(0) if m else ""


def release_has_episode(text: str | None, season: int, episode: int) -> bool:
    """True when guessit reads both *season* and *episode* from *text*.

    Multi-episode releases (``S02E05E06``) match each of their episodes;
    season packs without an episode number never match.
    """
    if not text or not text.strip():
        return False
    guess = _guess(text)
    return season in _values(guess, "season") and episode in _values(guess, "episode")


def extract_metadata(filename: str) -> ReleaseMetadata:
    """Derive quality, HDR, codec, audio, source and edition tags."""
    if not filename.strip():
        return ReleaseMetadata()
    guess = _guess(filename)
    hdr: list[str] = []
    hdr10 = _first_label(guess, _HDR10)
    if hdr10:
        hdr.append(hdr10)
    if _has(guess, "other", "Dolby Vision"):
        hdr.append("DV")
    return ReleaseMetadata(
        quality=parse_quality(filename).label,
        hdr=hdr,
        codec=_first_label(guess, _CODECS),
        audio=_first_label(guess, _AUDIO),
        source=_source(guess),
        edition=[e for e in _EDITIONS if _has(guess, "edition", e)],
    )


def format_size(value: str | int | float | None) -> str | None:
    """Normalize a declared size to a display label.

    Labels that already carry a GB/MB unit are returned unchanged; byte
    counts become ``"X.Y GB"`` or ``"N MB"``.
    """
    if value is None or value == "":
        return None
    text = str(value).strip()
    if _SIZE_TOKEN_RE.search(text):
        return text
    try:
        size_bytes = int(float(text))
    except ValueError:
        return None
    gb = size_bytes / (1024**3)
    if gb >= 1:
        return f"{gb:.1f} GB"
    return f"{size_bytes / (1024**2):.0f} MB"


def quality_symbol(quality: StreamQuality) -> str:
    if quality == StreamQuality.UHD_4K:
        return "🔥"
    if quality == StreamQuality.HD_1080P:
        return "⭐"
    if quality == StreamQuality.HD_720P:
        return "✅"
    return "📺"


def build_quality_badge(metadata: ReleaseMetadata) -> str:
    """``"4K HDR10+DV"`` style badge."""
    badge = metadata.quality.upper()
    if metadata.hdr:
        badge += f" {'+'.join(metadata.hdr)}"
    return badge


def build_tech_specs(metadata: ReleaseMetadata) -> str | None:
    specs = [
        s
        for s in (metadata.codec, metadata.audio, metadata.source, *metadata.edition)
        if s
    ]
    return " • ".join(specs) if specs else None
