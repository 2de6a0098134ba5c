"""Tests for movie/episode file selection inside torrents."""

from __future__ import annotations

from magnetarr.domain.entities.debrid import FileEntry
from magnetarr.infrastructure.stremio.file_selector import (
    EXACT_EPISODE_PATTERNS,
    score_movie_file,
    select_episode_file,
    select_movie_file,
    video_files,
)

_MB = 1024 * 1024


def _f(path: str, size_mb: float = 1000, **kwargs: object) -> FileEntry:
    return FileEntry(path=path, size_bytes=int(size_mb * _MB), **kwargs)  # type: ignore[arg-type]


class TestScoreMovieFile:
    def test_sample_never_outranks_feature(self) -> None:
        sample = _f("Movie.Sample.2024.mkv", 5)
        feature = _f("Movie.2024.1080p.mkv", 2000)
        assert score_movie_file(feature) - score_movie_file(sample) > 800
        assert select_movie_file([sample, feature]) is feature

    def test_size_bonuses_are_cumulative(self) -> None:
        small = score_movie_file(_f("a.avi", 400))
        large = score_movie_file(_f("a.avi", 6000))
        assert large - small == 300 + 200 + 150 + 100

    def test_container_bonus(self) -> None:
        assert score_movie_file(_f("a.mkv")) - score_movie_file(_f("a.avi")) == 50
        assert score_movie_file(_f("a.mp4")) - score_movie_file(_f("a.avi")) == 40

    def test_shallow_path_bonus(self) -> None:
        shallow = score_movie_file(_f("Movie/movie.mkv"))
        deep = score_movie_file(_f("Movie/Disc1/Main/movie.mkv"))
        assert shallow - deep == 100

    def test_extras_penalty(self) -> None:
        feature = score_movie_file(_f("Movie/movie.mkv", 3000))
        featurette = score_movie_file(_f("Movie/featurette.mkv", 3000))
        assert feature - featurette == 800


class TestSelectMovieFile:
    def test_ignores_non_video(self) -> None:
        nfo = _f("Movie/movie.nfo", 9000)
        video = _f("Movie/movie.mkv", 1500)
        assert select_movie_file([nfo, video]) is video

    def test_provider_video_flag_counts(self) -> None:
        flagged = _f("Movie/movie.bin", 1500, is_video=True)
        assert select_movie_file([flagged]) is flagged

    def test_first_wins_ties(self) -> None:
        a = _f("Movie/a.mkv", 1500)
        b = _f("Movie/b.mkv", 1500)
        assert select_movie_file([a, b]) is a

    def test_no_video(self) -> None:
        assert select_movie_file([_f("readme.txt")]) is None
        assert select_movie_file([]) is None

    def test_video_files_helper(self) -> None:
        files = [_f("a.srt"), _f("b.MKV"), _f("c.webm")]
        assert [f.path for f in video_files(files)] == ["b.MKV", "c.webm"]


class TestSelectEpisodeFile:
    def test_exact_match(self) -> None:
        files = [_f("Show.S02E05.mkv"), _f("Show.S02E06.mkv")]
        assert select_episode_file(files, 2, 5) is files[0]

    def test_exact_match_not_fooled_by_longer_number(self) -> None:
        files = [_f("Show.S02E050.mkv"), _f("Show.S02E05.mkv")]
        assert select_episode_file(files, 2, 5) is files[1]

    def test_short_form(self) -> None:
        files = [_f("show.s2e4.mkv"), _f("show.s2e5.mkv")]
        assert select_episode_file(files, 2, 5) is files[1]

    def test_season_episode_words(self) -> None:
        files = [_f("Show/Season 2/Episode 5.mkv")]
        assert select_episode_file(files, 2, 5) is files[0]

    def test_nxnn_form(self) -> None:
        files = [_f("Show - 2x04.mkv"), _f("Show - 2x05.mkv")]
        assert select_episode_file(files, 2, 5) is files[1]

    def test_digit_run_form(self) -> None:
        files = [_f("Show.204.mkv"), _f("Show.205.mkv")]
        assert select_episode_file(files, 2, 5) is files[1]

    def test_loose_pass_skips_samples(self) -> None:
        files = [_f("Show.S02.Sample.E05.mkv", 10), _f("Show.S02.Part.E05.mkv")]
        assert select_episode_file(files, 2, 5) is files[1]

    def test_season_pack_returns_largest(self) -> None:
        files = [
            _f("Show.Season.3.Complete.mkv", 8000),
            _f("Show.Season.3.sample.mkv", 10),
        ]
        assert select_episode_file(files, 3, 9) is files[0]

    def test_season_pack_ignores_other_seasons(self) -> None:
        files = [_f("Show.Season.4.Complete.mkv", 8000)]
        assert select_episode_file(files, 3, 9) is None

    def test_non_video_never_selected(self) -> None:
        files = [_f("Show.S02E05.srt"), _f("Show.S02E05.mkv")]
        assert select_episode_file(files, 2, 5) is files[1]

    def test_patterns_are_data(self) -> None:
        names = [p.name for p in EXACT_EPISODE_PATTERNS]
        assert names[0] == "sxxexx"
        assert EXACT_EPISODE_PATTERNS[0].compile(1, 2).search("x.S01E02.mkv")
