"""Stream ranking for the Stremio addon.

Two orderings share the same quality tiers:

- ``triage``: before cache checks, quality first, then closeness to a
  fixed reference size. Bounds how many hashes get probed.
- ``rank``: final order, quality first, then distance from the tier's
  ideal size band, then size descending.

Both end with hash (and service) tie-breaks so the output does not
depend on input order. All numbers come from StremioConfig.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from magnetarr.domain.entities.stremio import (
    RankedStream,
    StreamCandidate,
    StreamQuality,
)
from magnetarr.infrastructure.config.schema import StremioConfig
from magnetarr.infrastructure.stremio.metadata import parse_quality, parse_size_mb


def candidate_quality(candidate: StreamCandidate) -> StreamQuality:
    """Structured quality, else parsed from filename or title."""
    if candidate.quality != StreamQuality.SD:
        return candidate.quality
    return parse_quality(candidate.filename) or parse_quality(candidate.display_title)


def candidate_size_mb(candidate: StreamCandidate) -> float:
    """Declared size label, else the first size token in filename or title."""
    return (
        parse_size_mb(candidate.size_label)
        or parse_size_mb(candidate.filename)
        or parse_size_mb(candidate.display_title)
    )


class StreamRanker:
    """Quality tier + size band ordering with deterministic tie-breaks."""

    def __init__(self, config: StremioConfig) -> None:
        self._reference_mb = config.triage_reference_mb
        self._max_probe = config.max_probe_candidates
        self._max_results = config.max_results
        self._bands = config.size_bands_mb

    def size_distance(self, quality: StreamQuality, size_mb: float) -> float:
        """0 inside the tier's band, else the gap to the nearest edge.

        Tiers without a band (SD) always score 0.
        """
        band = self._bands.get(int(quality))
        if band is None:
            return 0.0
        low, high = band
        if size_mb < low:
            return low - size_mb
        if size_mb > high:
            return size_mb - high
        return 0.0

    def triage(self, candidates: Iterable[StreamCandidate]) -> list[StreamCandidate]:
        """Order candidates for cache probing and keep the top slice."""
        ordered = sorted(
            candidates,
            key=lambda c: (
                -candidate_quality(c),
                abs(candidate_size_mb(c) - self._reference_mb),
                c.info_hash,
            ),
        )
        return ordered[: self._max_probe]

    def order(self, streams: Iterable[RankedStream]) -> list[RankedStream]:
        """Full final order, untruncated.

        Returns new RankedStream objects with ``size_mb`` and
        ``size_distance`` filled in, and the candidate's quality replaced
        by the tier it was ranked on (parsed from the filename when no
        structured value was declared).
        """
        scored: list[tuple[StreamQuality, RankedStream]] = []
        for s in streams:
            quality = candidate_quality(s.candidate)
            size_mb = candidate_size_mb(s.candidate)
            scored.append(
                (
                    quality,
                    replace(
                        s,
                        candidate=replace(s.candidate, quality=quality),
                        size_mb=size_mb,
                        size_distance=self.size_distance(quality, size_mb),
                    ),
                )
            )
        scored.sort(
            key=lambda pair: (
                -pair[0],
                pair[1].size_distance,
                -pair[1].size_mb,
                pair[1].info_hash,
                pair[1].service,
            )
        )
        return [s for _, s in scored]

    def rank(self, streams: Iterable[RankedStream]) -> list[RankedStream]:
        """Final response order, truncated to ``max_results``."""
        return self.order(streams)[: self._max_results]
