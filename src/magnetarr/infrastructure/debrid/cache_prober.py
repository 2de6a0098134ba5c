"""Concurrent cache-availability checks across debrid providers."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from magnetarr.domain.entities.debrid import CacheResult
from magnetarr.domain.entities.stremio import RankedStream, StreamCandidate
from magnetarr.domain.ports.debrid_provider import DebridProviderPort

log = structlog.get_logger(__name__)


@dataclass
class ProbeOutcome:
    """Cached streams plus which providers answered."""

    streams: list[RankedStream] = field(default_factory=list)
    successful: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class CacheProber:
    """Run ``check_cache_statuses`` on every provider concurrently.

    A provider that times out or raises is recorded as failed and
    contributes nothing; the others still count. Zero successful
    providers yields an empty outcome, never an error.
    """

    def __init__(
        self,
        providers: Sequence[DebridProviderPort],
        *,
        provider_timeout: float = 20.0,
        overall_timeout: float = 30.0,
    ) -> None:
        self._providers = list(providers)
        self._provider_timeout = provider_timeout
        self._overall_timeout = overall_timeout

    async def probe(self, candidates: Sequence[StreamCandidate]) -> ProbeOutcome:
        outcome = ProbeOutcome()
        if not candidates or not self._providers:
            return outcome

        by_hash: dict[str, StreamCandidate] = {}
        for c in candidates:
            by_hash.setdefault(c.info_hash.lower(), c)
        hashes = list(by_hash)

        tasks = [
            asyncio.create_task(self._check_provider(p, hashes))
            for p in self._providers
        ]
        _done, pending = await asyncio.wait(tasks, timeout=self._overall_timeout)
        for task in pending:
            task.cancel()

        for provider, task in zip(self._providers, tasks):
            statuses = None if task in pending else task.result()
            if statuses is None:
                outcome.failed.append(provider.name)
                continue
            outcome.successful.append(provider.name)
            for info_hash, result in statuses.items():
                candidate = by_hash.get(info_hash.lower())
                if candidate is None or not result.cached:
                    continue
                outcome.streams.append(
                    RankedStream(candidate=candidate, service=result.service)
                )

        log.info(
            "cache_probe_complete",
            hashes=len(hashes),
            cached=len(outcome.streams),
            successful=outcome.successful,
            failed=outcome.failed,
        )
        return outcome

    async def _check_provider(
        self, provider: DebridProviderPort, hashes: list[str]
    ) -> dict[str, CacheResult] | None:
        """Statuses for one provider, or ``None`` if it failed."""
        if not provider.supports_cache_check:
            log.debug("cache_status_assumed", provider=provider.name)
        try:
            return await asyncio.wait_for(
                provider.check_cache_statuses(hashes),
                timeout=self._provider_timeout,
            )
        except TimeoutError:
            log.warning(
                "cache_check_timeout",
                provider=provider.name,
                timeout=self._provider_timeout,
            )
            return None
        except Exception:
            log.warning("cache_check_failed", provider=provider.name, exc_info=True)
            return None
