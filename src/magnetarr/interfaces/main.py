"""FastAPI application factory."""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import RequestResponseEndpoint

from magnetarr.infrastructure.config import AppConfig
from magnetarr.interfaces.api.stremio import router as stremio_router
from magnetarr.interfaces.app_state import AppState
from magnetarr.interfaces.composition import lifespan

log = structlog.get_logger(__name__)

_PLAY_PREFIX = "/stremio/play/"


def _loggable_path(path: str) -> str:
    # Play tokens embed whole magnet links.
    if path.startswith(_PLAY_PREFIX):
        return f"{_PLAY_PREFIX}{{token}}"
    return path


async def healthz() -> dict[str, str]:
    return {"status": "ok"}


def _install_request_logging(app: FastAPI) -> None:
    @app.middleware("http")
    async def access_log(request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            log.info(
                "http_request",
                method=request.method,
                path=_loggable_path(request.url.path),
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
                client_host=request.client.host if request.client else None,
            )


def build_app(config: AppConfig) -> FastAPI:
    """Build the app from a loaded config.

    Nothing touches the network here; the shared HTTP client, providers
    and use cases are created in ``lifespan``.
    """
    app = FastAPI(
        title=config.stremio.addon_name,
        description="Stremio addon serving debrid-cached torrent streams",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state = AppState()
    app.state.config = config

    app.include_router(stremio_router)
    app.add_api_route("/healthz", healthz, methods=["GET"])
    _install_request_logging(app)
    return app
