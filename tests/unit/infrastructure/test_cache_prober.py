"""Tests for CacheProber (concurrent debrid cache checks)."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from magnetarr.domain.entities.debrid import CacheResult
from magnetarr.domain.entities.stremio import StreamCandidate
from magnetarr.infrastructure.debrid.cache_prober import CacheProber


def _make_candidate(n: int) -> StreamCandidate:
    info_hash = f"{n:040x}"
    return StreamCandidate(
        info_hash=info_hash,
        magnet_link=f"magnet:?xt=urn:btih:{info_hash}",
        filename=f"file{n}.mkv",
        display_title=f"file{n}",
    )


def _statuses(service: str, cached: dict[int, bool]) -> dict[str, CacheResult]:
    return {
        f"{n:040x}": CacheResult(info_hash=f"{n:040x}", cached=c, service=service)
        for n, c in cached.items()
    }


class TestCacheProber:
    @pytest.mark.asyncio()
    async def test_keeps_only_cached(self, mock_premiumize: MagicMock) -> None:
        mock_premiumize.check_cache_statuses.return_value = _statuses(
            "premiumize", {1: True, 2: False, 3: True}
        )
        prober = CacheProber([mock_premiumize])

        outcome = await prober.probe([_make_candidate(i) for i in (1, 2, 3)])

        assert [s.info_hash for s in outcome.streams] == [f"{1:040x}", f"{3:040x}"]
        assert all(s.service == "premiumize" for s in outcome.streams)
        assert outcome.streams[0].candidate.filename == "file1.mkv"
        assert outcome.successful == ["premiumize"]

    @pytest.mark.asyncio()
    async def test_one_entry_per_provider(
        self, mock_premiumize: MagicMock, mock_realdebrid: MagicMock
    ) -> None:
        mock_premiumize.check_cache_statuses.return_value = _statuses(
            "premiumize", {1: True}
        )
        mock_realdebrid.check_cache_statuses.return_value = _statuses(
            "realdebrid", {1: True}
        )
        outcome = await CacheProber([mock_premiumize, mock_realdebrid]).probe(
            [_make_candidate(1)]
        )
        assert sorted(s.service for s in outcome.streams) == ["premiumize", "realdebrid"]

    @pytest.mark.asyncio()
    async def test_failed_provider_is_isolated(
        self, mock_premiumize: MagicMock, mock_realdebrid: MagicMock
    ) -> None:
        mock_premiumize.check_cache_statuses.side_effect = RuntimeError("down")
        mock_realdebrid.check_cache_statuses.return_value = _statuses(
            "realdebrid", {1: True}
        )
        outcome = await CacheProber([mock_premiumize, mock_realdebrid]).probe(
            [_make_candidate(1)]
        )
        assert outcome.failed == ["premiumize"]
        assert outcome.successful == ["realdebrid"]
        assert [s.service for s in outcome.streams] == ["realdebrid"]

    @pytest.mark.asyncio()
    async def test_slow_provider_times_out(
        self, mock_premiumize: MagicMock, mock_realdebrid: MagicMock
    ) -> None:
        async def _slow(hashes: list[str]) -> dict[str, CacheResult]:
            await asyncio.sleep(1.0)
            return {}

        mock_premiumize.check_cache_statuses.side_effect = _slow
        mock_realdebrid.check_cache_statuses.return_value = _statuses(
            "realdebrid", {1: True}
        )
        prober = CacheProber(
            [mock_premiumize, mock_realdebrid],
            provider_timeout=0.05,
            overall_timeout=2.0,
        )
        outcome = await prober.probe([_make_candidate(1)])
        assert outcome.failed == ["premiumize"]
        assert len(outcome.streams) == 1

    @pytest.mark.asyncio()
    async def test_all_failed_is_empty_not_error(
        self, mock_premiumize: MagicMock
    ) -> None:
        mock_premiumize.check_cache_statuses.side_effect = RuntimeError("down")
        outcome = await CacheProber([mock_premiumize]).probe([_make_candidate(1)])
        assert outcome.streams == []
        assert outcome.failed == ["premiumize"]

    @pytest.mark.asyncio()
    async def test_hashes_deduplicated(self, mock_premiumize: MagicMock) -> None:
        await CacheProber([mock_premiumize]).probe(
            [_make_candidate(1), _make_candidate(1), _make_candidate(2)]
        )
        (hashes,) = mock_premiumize.check_cache_statuses.await_args.args
        assert hashes == [f"{1:040x}", f"{2:040x}"]

    @pytest.mark.asyncio()
    async def test_no_candidates(self, mock_premiumize: MagicMock) -> None:
        outcome = await CacheProber([mock_premiumize]).probe([])
        assert outcome.streams == []
        mock_premiumize.check_cache_statuses.assert_not_awaited()
