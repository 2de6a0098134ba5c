"""Stremio addon API endpoints (manifest, stream, play)."""

from __future__ import annotations

import re
from typing import Any, cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from magnetarr.domain.entities.stremio import (
    InvalidResolveTokenError,
    InvalidStreamRequestError,
    StreamNotAvailableError,
    StremioContentType,
    StremioStream,
    StremioStreamRequest,
)
from magnetarr.infrastructure.stremio.resolve_token import decode_resolve_token
from magnetarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/stremio", tags=["stremio"])

_ADDON_ID = "community.magnetarr"
_ADDON_VERSION = "0.1.0"

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
}

_IMDB_RE = re.compile(r"^tt\d+$")
_TMDB_DASH_RE = re.compile(r"^tmdb-\d+$")
_NUMERIC_RE = re.compile(r"^\d+$")


def _build_manifest(addon_name: str) -> dict[str, Any]:
    """Build the Stremio addon manifest."""
    return {
        "id": _ADDON_ID,
        "version": _ADDON_VERSION,
        "name": addon_name,
        "description": "Cached torrent streams resolved through debrid services",
        "types": ["movie", "series"],
        "catalogs": [],
        "resources": ["stream"],
        "idPrefixes": ["tt", "tmdb"],
        "behaviorHints": {
            "adult": False,
            "configurable": False,
        },
    }


def _parse_stream_id(content_type: str, raw_id: str) -> StremioStreamRequest | None:
    """Parse a Stremio stream id into a StremioStreamRequest.

    Movies: ``tt1234567``, ``tmdb:12345``, ``tmdb-12345`` or ``12345``.
    Series: the same ids followed by ``:season:episode``.

    Returns ``None`` for unsupported content types or id schemes.

    Raises:
        InvalidStreamRequestError: Season or episode is not a number.
    """
    if content_type not in ("movie", "series"):
        return None
    ct = cast(StremioContentType, content_type)

    parts = raw_id.split(":")
    if parts[0] == "tmdb" and len(parts) >= 2 and _NUMERIC_RE.match(parts[1]):
        content_id = f"tmdb:{parts[1]}"
        rest = parts[2:]
    elif (
        _IMDB_RE.match(parts[0])
        or _TMDB_DASH_RE.match(parts[0])
        or _NUMERIC_RE.match(parts[0])
    ):
        content_id = parts[0]
        rest = parts[1:]
    else:
        return None

    if ct == "movie" or len(rest) < 2:
        return StremioStreamRequest(content_id=content_id, content_type=ct)

    try:
        season = int(rest[0])
        episode = int(rest[1])
    except ValueError as exc:
        raise InvalidStreamRequestError(
            f"invalid season/episode in stream id {raw_id!r}"
        ) from exc
    return StremioStreamRequest(
        content_id=content_id,
        content_type=ct,
        season=season,
        episode=episode,
    )


def _format_stremio_stream(stream: StremioStream) -> dict[str, str]:
    """Convert a StremioStream dataclass to Stremio JSON format."""
    return {
        "name": stream.name,
        "description": stream.description,
        "url": stream.url,
    }


def _public_base_url(state: AppState, request: Request) -> str:
    """Configured public base URL, else the one the client used."""
    configured = state.config.stremio.base_url
    if configured:
        return configured
    return str(request.base_url).rstrip("/")


@router.get("/manifest.json")
async def stremio_manifest(request: Request) -> JSONResponse:
    """Serve the Stremio addon manifest."""
    state = cast(AppState, request.app.state)
    return JSONResponse(
        content=_build_manifest(state.config.stremio.addon_name),
        headers=_CORS_HEADERS,
    )


@router.get("/stream/{content_type}/{stream_id}.json")
async def stremio_stream(
    content_type: str,
    stream_id: str,
    request: Request,
) -> JSONResponse:
    """Return ranked, cached streams for a movie or episode."""
    state = cast(AppState, request.app.state)

    try:
        parsed = _parse_stream_id(content_type, stream_id)
    except InvalidStreamRequestError as exc:
        log.info("stremio_invalid_stream_id", stream_id=stream_id, error=str(exc))
        return JSONResponse(
            content={"streams": []}, status_code=400, headers=_CORS_HEADERS
        )

    if parsed is None:
        log.info(
            "stremio_unsupported_id",
            content_type=content_type,
            stream_id=stream_id,
        )
        return JSONResponse(content={"streams": []}, headers=_CORS_HEADERS)

    try:
        streams = await state.stremio_stream_uc.execute(
            parsed, base_url=_public_base_url(state, request)
        )
    except InvalidStreamRequestError as exc:
        log.info("stremio_invalid_request", cache_key=parsed.cache_key, error=str(exc))
        return JSONResponse(
            content={"streams": []}, status_code=400, headers=_CORS_HEADERS
        )

    log.info(
        "stremio_stream_response",
        cache_key=parsed.cache_key,
        streams_returned=len(streams),
    )
    return JSONResponse(
        content={"streams": [_format_stremio_stream(s) for s in streams]},
        headers=_CORS_HEADERS,
    )


@router.get("/play/{token}", response_model=None)
async def stremio_play(token: str, request: Request) -> RedirectResponse | JSONResponse:
    """Resolve a play token to a direct URL, walking cached alternates."""
    state = cast(AppState, request.app.state)

    try:
        resolve_token = decode_resolve_token(token)
    except InvalidResolveTokenError as exc:
        log.info("stremio_invalid_token", error=str(exc))
        return JSONResponse(
            content={"error": "Invalid stream token", "details": str(exc)},
            status_code=400,
            headers=_CORS_HEADERS,
        )

    try:
        outcome = await state.stream_resolve_uc.execute(resolve_token)
    except StreamNotAvailableError as exc:
        return JSONResponse(
            content={"error": "Stream not available", "details": str(exc)},
            status_code=404,
            headers=_CORS_HEADERS,
        )

    log.info(
        "stremio_play_redirect",
        service=outcome.service,
        info_hash=outcome.info_hash,
        used_fallback=outcome.used_fallback,
        attempts=outcome.attempts,
    )
    return RedirectResponse(url=outcome.url, status_code=302, headers=_CORS_HEADERS)
