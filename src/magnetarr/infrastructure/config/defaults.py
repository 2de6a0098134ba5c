"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "magnetarr",
    "environment": "dev",
    "http": {
        "timeout_seconds": 15.0,
        "follow_redirects": True,
        "user_agent": "Magnetarr/0.1.0",
        "rate_limit_rps": 5.0,
        "rate_limit_burst": 10,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "stremio": {
        "addon_name": "Magnetarr",
        "indexer_timeout_seconds": 8.0,
        "search_timeout_seconds": 12.0,
        "provider_timeout_seconds": 20.0,
        "probe_timeout_seconds": 30.0,
        "max_probe_candidates": 100,
        "max_results": 50,
        "stream_cache_capacity": 1000,
    },
    "debrid": {
        "order": ["premiumize", "realdebrid"],
        "premiumize_batch_size": 99,
        "realdebrid_assume_cached": True,
        "file_list_ttl_seconds": 1800,
    },
    "indexers": [],
}
