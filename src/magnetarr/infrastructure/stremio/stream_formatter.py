"""Convert ranked streams into Stremio protocol objects."""

from __future__ import annotations

from dataclasses import replace

from magnetarr.domain.entities.stremio import RankedStream, StremioStream
from magnetarr.infrastructure.stremio.metadata import (
    build_quality_badge,
    build_tech_specs,
    extract_metadata,
    format_size,
    quality_symbol,
)
from magnetarr.infrastructure.stremio.stream_ranker import candidate_quality

_SERVICE_LABELS: dict[str, str] = {
    "premiumize": "Premiumize",
    "realdebrid": "RealDebrid",
}


def service_label(service: str) -> str:
    return _SERVICE_LABELS.get(service.lower(), service)


def format_stream(ranked: RankedStream, *, addon_name: str, url: str) -> StremioStream:
    """Build the two display lines for one stream.

    name:        ``symbol | QUALITY BADGE | size | service | addon``
    description: filename, then ``source | tech specs``
    """
    candidate = ranked.candidate
    quality = candidate_quality(candidate)
    metadata = replace(extract_metadata(candidate.filename), quality=quality.label)

    name_parts = [quality_symbol(quality), build_quality_badge(metadata)]
    size = format_size(candidate.size_label)
    if size:
        name_parts.append(size)
    name_parts.extend([service_label(ranked.service), addon_name])

    source_line = candidate.source_name
    tech = build_tech_specs(metadata)
    if tech:
        source_line = f"{source_line} | {tech}"

    return StremioStream(
        name=" | ".join(name_parts),
        description=f"{candidate.filename}\n{source_line}",
        url=url,
    )
