"""Pick the playable file inside a multi-file torrent.

Movies are scored (size, extras penalty, container, path depth).
Episodes go through three ordered passes: exact patterns, loose
patterns, then the largest file of a matching season pack. A season
pack may hold many episodes, so the largest file is a best guess and
can be the wrong episode.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog

from magnetarr.domain.entities.debrid import FileEntry

log = structlog.get_logger(__name__)

# --- Movie scoring ---

_BASE_SCORE = 100

# (threshold MB, bonus). Cumulative: a 6 GB file earns every bonus.
_SIZE_BONUSES: list[tuple[float, int]] = [
    (500, 300),
    (1000, 200),
    (2000, 150),
    (5000, 100),
]

_EXTRAS_PENALTY = -800
_EXTRAS_RE = re.compile(
    r"sample|trailer|preview|extras|bonus|deleted|behind|making|interview|featurette",
    re.IGNORECASE,
)
_JUNK_RE = re.compile(r"sample|trailer", re.IGNORECASE)

_EXTENSION_BONUSES: dict[str, int] = {".mkv": 50, ".mp4": 40}
_SHALLOW_PATH_BONUS = 100

VIDEO_EXTENSION_RE = re.compile(r"\.(mkv|mp4|avi|mov|wmv|m4v|webm)$", re.IGNORECASE)
SUBTITLE_EXTENSION_RE = re.compile(r"\.(srt|sub|ass|ssa|vtt)$", re.IGNORECASE)


def video_files(files: Sequence[FileEntry]) -> list[FileEntry]:
    """Entries flagged as video by the provider or with a video extension."""
    return [f for f in files if f.is_video or VIDEO_EXTENSION_RE.search(f.path)]


def score_movie_file(entry: FileEntry) -> int:
    """Score one file as the main feature of a movie torrent."""
    score = _BASE_SCORE
    size_mb = entry.size_mb
    for threshold, bonus in _SIZE_BONUSES:
        if size_mb > threshold:
            score += bonus
    if _EXTRAS_RE.search(entry.path):
        score += _EXTRAS_PENALTY
    lowered = entry.path.lower()
    for ext, bonus in _EXTENSION_BONUSES.items():
        if lowered.endswith(ext):
            score += bonus
            break
    if len(entry.path.split("/")) <= 2:
        score += _SHALLOW_PATH_BONUS
    return score


def select_movie_file(files: Sequence[FileEntry]) -> FileEntry | None:
    """Return the highest-scoring video file; the first one wins ties."""
    best: FileEntry | None = None
    best_score = 0
    for entry in video_files(files):
        score = score_movie_file(entry)
        if best is None or score > best_score:
            best, best_score = entry, score
    return best


# --- Episode matching ---


@dataclass(frozen=True)
class EpisodePattern:
    """A season/episode matcher rendered for one (season, episode) target."""

    name: str
    build: Callable[[int, int], str]

    def compile(self, season: int, episode: int) -> re.Pattern[str]:
        return re.compile(self.build(season, episode), re.IGNORECASE)


# Pass 1: any hit qualifies a file immediately.
EXACT_EPISODE_PATTERNS: list[EpisodePattern] = [
    EpisodePattern("sxxexx", lambda s, e: rf"s{s:02d}[.\-\s]?e{e:02d}(?!\d)"),
    EpisodePattern("sxex", lambda s, e: rf"s{s}e{e}(?!\d)"),
    EpisodePattern(
        "season_episode",
        lambda s, e: rf"season[\s._-]*{s}(?!\d).*episode[\s._-]*{e}(?!\d)",
    ),
    EpisodePattern("nxnn", lambda s, e: rf"(?<!\d){s}x{e:02d}(?!\d)"),
    EpisodePattern("digit_run", lambda s, e: rf"[^0-9]{s}{e:02d}[^0-9]"),
]

# Pass 2: numbers anywhere, sample/trailer excluded.
LOOSE_EPISODE_PATTERNS: list[EpisodePattern] = [
    EpisodePattern("sxx_any_exx", lambda s, e: rf"s{s:02d}.*e{e:02d}"),
    EpisodePattern("season_any_episode", lambda s, e: rf"season.*{s}.*episode.*{e}"),
]

# Pass 3: season pack.
SEASON_PACK_PATTERN = EpisodePattern(
    "season_pack", lambda s, _e: rf"season[\s._-]*{s}(?!\d)|s{s:02d}(?!\d)"
)


def _first_matching(
    files: Sequence[FileEntry],
    patterns: Sequence[re.Pattern[str]],
    *,
    skip_junk: bool,
) -> FileEntry | None:
    for entry in files:
        if skip_junk and _JUNK_RE.search(entry.path):
            continue
        if any(p.search(entry.path) for p in patterns):
            return entry
    return None


def select_episode_file(
    files: Sequence[FileEntry], season: int, episode: int
) -> FileEntry | None:
    """Return the video file holding *season*/*episode*, or ``None``."""
    files = video_files(files)
    exact = [p.compile(season, episode) for p in EXACT_EPISODE_PATTERNS]
    found = _first_matching(files, exact, skip_junk=False)
    if found is not None:
        log.debug("episode_file_exact", path=found.path, season=season, episode=episode)
        return found

    loose = [p.compile(season, episode) for p in LOOSE_EPISODE_PATTERNS]
    found = _first_matching(files, loose, skip_junk=True)
    if found is not None:
        log.debug("episode_file_loose", path=found.path, season=season, episode=episode)
        return found

    pack_re = SEASON_PACK_PATTERN.compile(season, episode)
    pack = [
        f for f in files if pack_re.search(f.path) and not _JUNK_RE.search(f.path)
    ]
    if pack:
        largest = max(pack, key=lambda f: f.size_bytes)
        log.debug(
            "episode_file_season_pack",
            path=largest.path,
            season=season,
            episode=episode,
        )
        return largest

    log.debug("episode_file_not_found", season=season, episode=episode)
    return None
