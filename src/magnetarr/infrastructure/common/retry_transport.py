"""httpx transport with per-host rate limiting and retry on throttling."""

from __future__ import annotations

import asyncio
import random

import httpx
import structlog

from magnetarr.infrastructure.common.rate_limiter import DomainRateLimiter

log = structlog.get_logger(__name__)

_DEFAULT_RETRYABLE = frozenset({429, 503})


def _retry_after_seconds(headers: httpx.Headers) -> float | None:
    """``Retry-After`` in seconds; the HTTP-date form is ignored."""
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


class RetryTransport(httpx.AsyncBaseTransport):
    """Wraps a transport: rate-limit every request, retry 429/503.

    The final retryable response is returned unchanged so callers see
    the real status. Backoff is exponential with jitter, capped at
    *max_backoff*, and ``Retry-After`` wins when present.
    """

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport,
        rate_limiter: DomainRateLimiter,
        *,
        max_retries: int = 2,
        backoff_base: float = 0.5,
        max_backoff: float = 5.0,
        retryable_status_codes: frozenset[int] = _DEFAULT_RETRYABLE,
    ) -> None:
        self._wrapped = wrapped
        self._rate_limiter = rate_limiter
        self._max_retries = max(0, max_retries)
        self._backoff_base = backoff_base
        self._max_backoff = max_backoff
        self._retryable = retryable_status_codes

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        attempt = 0
        while True:
            await self._rate_limiter.acquire(str(request.url))
            response = await self._wrapped.handle_async_request(request)

            if response.status_code not in self._retryable or attempt >= self._max_retries:
                return response

            await response.aread()
            await response.aclose()

            delay = self._delay(response, attempt)
            attempt += 1
            log.info(
                "http_retry",
                host=request.url.host,
                path=request.url.path,
                status=response.status_code,
                attempt=attempt,
                delay=round(delay, 2),
            )
            await asyncio.sleep(delay)

    def _delay(self, response: httpx.Response, attempt: int) -> float:
        retry_after = _retry_after_seconds(response.headers)
        if retry_after is not None:
            return min(retry_after, self._max_backoff)
        jitter = random.uniform(0, self._backoff_base)  # noqa: S311
        return min(self._backoff_base * (2**attempt) + jitter, self._max_backoff)

    async def aclose(self) -> None:
        await self._wrapped.aclose()
