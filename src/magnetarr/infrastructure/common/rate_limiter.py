"""Per-host token-bucket rate limiting for outgoing HTTP requests.

Debrid APIs publish per-account request budgets (Real-Debrid allows
about 250 requests a minute), so hosts can carry their own rate on top
of the shared default.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from urllib.parse import urlparse

import structlog

log = structlog.get_logger(__name__)


class TokenBucket:
    """Token bucket refilled continuously at *rate* tokens per second.

    Args:
        rate: Tokens per second. ``<= 0`` disables limiting.
        burst: Bucket capacity.
    """

    def __init__(self, rate: float, burst: int = 10) -> None:
        self._rate = rate
        self._burst = max(1, burst)
        self._tokens = float(self._burst)
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    async def acquire(self) -> float:
        """Consume one token, waiting if needed. Returns seconds waited."""
        if self._rate <= 0:
            return 0.0

        waited = 0.0
        async with self._lock:
            self._refill()
            while self._tokens < 1.0:
                delay = (1.0 - self._tokens) / self._rate
                await asyncio.sleep(delay)
                waited += delay
                self._refill()
            self._tokens -= 1.0
        return waited

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(
            self._burst, self._tokens + (now - self._last_refill) * self._rate
        )
        self._last_refill = now


class DomainRateLimiter:
    """One ``TokenBucket`` per hostname.

    Args:
        default_rps: Rate for hosts without an override. 0 = unlimited.
        burst: Bucket capacity for every host.
        host_rps: Per-hostname overrides, e.g. ``{"api.real-debrid.com": 4}``.
    """

    def __init__(
        self,
        default_rps: float = 5.0,
        burst: int = 10,
        *,
        host_rps: Mapping[str, float] | None = None,
    ) -> None:
        self._default_rps = default_rps
        self._burst = burst
        self._host_rps = {k.lower(): v for k, v in (host_rps or {}).items()}
        self._buckets: dict[str, TokenBucket] = {}

    @staticmethod
    def _host(url: str) -> str:
        return (urlparse(url).hostname or "").lower()

    def rate_for(self, host: str) -> float:
        return self._host_rps.get(host.lower(), self._default_rps)

    def _bucket(self, host: str) -> TokenBucket:
        bucket = self._buckets.get(host)
        if bucket is None:
            bucket = TokenBucket(rate=self.rate_for(host), burst=self._burst)
            self._buckets[host] = bucket
        return bucket

    async def acquire(self, url: str) -> None:
        """Wait for clearance for the URL's host."""
        host = self._host(url)
        if not host or self.rate_for(host) <= 0:
            return
        waited = await self._bucket(host).acquire()
        if waited > 0:
            log.debug("rate_limit_wait", host=host, waited=round(waited, 3))
