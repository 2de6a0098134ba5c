"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from magnetarr.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from magnetarr.application.use_cases.stream_resolve import StreamResolveUseCase
    from magnetarr.application.use_cases.stremio_stream import StremioStreamUseCase
    from magnetarr.domain.ports import DebridProviderPort, StreamCachePort
    from magnetarr.infrastructure.indexers.aggregator import SourceAggregator


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    http_client: httpx.AsyncClient
    stream_cache: StreamCachePort

    # Upstreams (configured order)
    providers: list[DebridProviderPort]
    aggregator: SourceAggregator

    # Application Services
    stremio_stream_uc: StremioStreamUseCase
    stream_resolve_uc: StreamResolveUseCase
