"""Opaque resolve tokens carried in stream URLs.

Current format: URL-safe base64 of ``{"magnetLink": ..., "cacheKey": ...}``.
Legacy format: base64 of the bare magnet link (no fallback list).
"""

from __future__ import annotations

import base64
import binascii
import json
import re

from magnetarr.domain.entities.stremio import (
    InvalidResolveTokenError,
    ResolveToken,
)

_BTIH_RE = re.compile(r"btih:([a-fA-F0-9]{40})")
_SERIES_KEY_RE = re.compile(r"^series-.*-s(\d+)e(\d+)$")


def extract_info_hash(magnet_link: str | None) -> str | None:
    """Lower-cased 40-hex btih hash of a magnet link, or ``None``."""
    if not magnet_link:
        return None
    m = _BTIH_RE.search(magnet_link)
    return m.group(1).lower() if m else None


def encode_resolve_token(magnet_link: str, cache_key: str) -> str:
    payload = json.dumps(
        {"magnetLink": magnet_link, "cacheKey": cache_key}, separators=(",", ":")
    )
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def _b64decode(token: str) -> str:
    # Accept both alphabets and missing padding.
    normalized = token.strip().replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    try:
        return base64.b64decode(normalized, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise InvalidResolveTokenError("token is not valid base64") from exc


def decode_resolve_token(token: str) -> ResolveToken:
    """Decode either token format.

    Raises:
        InvalidResolveTokenError: Undecodable token or no btih hash in the
            magnet link.
    """
    raw = _b64decode(token)

    magnet_link: str | None
    cache_key: str | None = None
    try:
        payload = json.loads(raw)
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        magnet_link = payload.get("magnetLink")
        key = payload.get("cacheKey")
        cache_key = key if isinstance(key, str) and key else None
    else:
        magnet_link = raw

    if not isinstance(magnet_link, str) or extract_info_hash(magnet_link) is None:
        raise InvalidResolveTokenError("token carries no btih magnet link")

    m = _SERIES_KEY_RE.match(cache_key or "")
    if m is not None:
        return ResolveToken(
            magnet_link=magnet_link,
            cache_key=cache_key,
            content_type="series",
            season=int(m.group(1)),
            episode=int(m.group(2)),
        )
    return ResolveToken(magnet_link=magnet_link, cache_key=cache_key)
