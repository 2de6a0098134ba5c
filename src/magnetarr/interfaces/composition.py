"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from magnetarr.application.use_cases.stream_resolve import StreamResolveUseCase
from magnetarr.application.use_cases.stremio_stream import StremioStreamUseCase
from magnetarr.domain.entities.debrid import FileEntry
from magnetarr.domain.ports import DebridProviderPort
from magnetarr.infrastructure.cache.memory_cache import BoundedMemoryCache
from magnetarr.infrastructure.common.rate_limiter import DomainRateLimiter
from magnetarr.infrastructure.common.retry_transport import RetryTransport
from magnetarr.infrastructure.config.schema import AppConfig
from magnetarr.infrastructure.debrid.cache_prober import CacheProber
from magnetarr.infrastructure.debrid.premiumize import PremiumizeProvider
from magnetarr.infrastructure.debrid.realdebrid import RealDebridProvider
from magnetarr.infrastructure.indexers.aggregator import SourceAggregator
from magnetarr.infrastructure.indexers.backend import HttpxIndexerBackend
from magnetarr.infrastructure.persistence.stream_cache import MemoryStreamCache
from magnetarr.infrastructure.stremio.resolve_token import (
    encode_resolve_token,
    extract_info_hash,
)
from magnetarr.infrastructure.stremio.stream_formatter import format_stream
from magnetarr.infrastructure.stremio.stream_ranker import StreamRanker
from magnetarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

# Premiumize stops chunking this far inside the per-provider cache-check timeout.
_CACHE_CHECK_MARGIN_SECONDS = 1.0


def build_providers(
    config: AppConfig, http_client: httpx.AsyncClient
) -> list[DebridProviderPort]:
    """Debrid providers in configured order; services without a key are skipped."""
    debrid = config.debrid
    providers: list[DebridProviderPort] = []
    for service in debrid.order:
        if service == "premiumize" and debrid.premiumize_api_key:
            file_cache: BoundedMemoryCache[list[FileEntry]] = BoundedMemoryCache(
                debrid.file_list_cache_size,
                ttl_seconds=debrid.file_list_ttl_seconds,
                name="premiumize_files",
            )
            providers.append(
                PremiumizeProvider(
                    api_key=debrid.premiumize_api_key,
                    http_client=http_client,
                    base_url=debrid.premiumize_base_url,
                    batch_size=debrid.premiumize_batch_size,
                    batch_delay=debrid.premiumize_batch_delay_seconds,
                    max_attempts=debrid.premiumize_max_attempts,
                    retry_delay=debrid.premiumize_retry_delay_seconds,
                    cache_check_budget=max(
                        config.stremio.provider_timeout_seconds
                        - _CACHE_CHECK_MARGIN_SECONDS,
                        config.stremio.provider_timeout_seconds / 2,
                    ),
                    file_cache=file_cache,
                )
            )
        elif service == "realdebrid" and debrid.realdebrid_api_key:
            providers.append(
                RealDebridProvider(
                    api_key=debrid.realdebrid_api_key,
                    http_client=http_client,
                    base_url=debrid.realdebrid_base_url,
                    assume_cached=debrid.realdebrid_assume_cached,
                    torrent_lookup_limit=debrid.realdebrid_torrent_lookup_limit,
                    selection_wait=debrid.realdebrid_selection_wait_seconds,
                )
            )
        else:
            log.info("debrid_provider_skipped", service=service, reason="no_api_key")
    return providers


def build_aggregator(
    config: AppConfig, http_client: httpx.AsyncClient
) -> SourceAggregator:
    backends = [
        HttpxIndexerBackend(
            name=indexer.name,
            base_url=indexer.base_url,
            http_client=http_client,
            user_agent=config.http_user_agent,
        )
        for indexer in config.indexers
        if indexer.enabled
    ]
    return SourceAggregator(
        backends,
        backend_timeout=config.stremio.indexer_timeout_seconds,
        overall_timeout=config.stremio.search_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    state = cast(AppState, app.state)
    config = state.config
    stremio = config.stremio

    # 1) HTTP client with per-domain rate limiting + 429/503 retry
    rate_limiter = DomainRateLimiter(
        default_rps=config.rate_limit_requests_per_second,
        burst=config.rate_limit_burst,
        host_rps=config.host_rate_limits,
    )
    transport = RetryTransport(
        wrapped=httpx.AsyncHTTPTransport(),
        rate_limiter=rate_limiter,
        max_retries=config.http_retry_max_attempts,
        backoff_base=config.http_retry_backoff_base,
        max_backoff=config.http_retry_max_backoff,
    )
    state.http_client = httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=config.http_follow_redirects,
    )
    log.info(
        "http_client_initialized",
        rate_limit_rps=config.rate_limit_requests_per_second,
        retry_max_attempts=config.http_retry_max_attempts,
    )

    # 2) Stream cache (fallback lists per content key)
    state.stream_cache = MemoryStreamCache(capacity=stremio.stream_cache_capacity)

    # 3) Upstreams
    state.providers = build_providers(config, state.http_client)
    state.aggregator = build_aggregator(config, state.http_client)
    log.info(
        "upstreams_initialized",
        providers=[p.name for p in state.providers],
        indexers=state.aggregator.backend_names,
    )
    if not state.providers:
        log.warning("no_debrid_providers_configured")

    # 4) Use cases
    state.stremio_stream_uc = StremioStreamUseCase(
        aggregator=state.aggregator,
        prober=CacheProber(
            state.providers,
            provider_timeout=stremio.provider_timeout_seconds,
            overall_timeout=stremio.probe_timeout_seconds,
        ),
        ranker=StreamRanker(stremio),
        stream_cache=state.stream_cache,
        format_fn=format_stream,
        token_fn=encode_resolve_token,
        addon_name=stremio.addon_name,
        max_results=stremio.max_results,
    )
    state.stream_resolve_uc = StreamResolveUseCase(
        providers=state.providers,
        stream_cache=state.stream_cache,
        extract_hash=extract_info_hash,
        attempt_timeout=stremio.resolve_attempt_timeout_seconds,
    )

    log.info("app_startup_complete")

    try:
        yield
    finally:
        await state.stremio_stream_uc.drain()
        log.info("stream_cache_writes_drained")

        await state.http_client.aclose()
        log.info("http_client_closed")

        log.info("app_shutdown_complete")
