"""One torrent indexer REST endpoint, queried with httpx."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from magnetarr.domain.entities.stremio import StremioContentType

log = structlog.get_logger(__name__)


class HttpxIndexerBackend:
    """``GET {base_url}/api/search?type=&query=`` -> ``{"results": [...]}``.

    Implements ``IndexerBackendPort`` from domain.ports.indexer. HTTP and
    transport errors propagate; a body that is not the expected shape
    counts as zero results.
    """

    def __init__(
        self,
        *,
        name: str,
        base_url: str,
        http_client: httpx.AsyncClient,
        user_agent: str,
    ) -> None:
        self._name = name
        self._base_url = base_url.rstrip("/")
        self._http = http_client
        self._user_agent = user_agent

    @property
    def name(self) -> str:
        return self._name

    async def search(
        self, content_type: StremioContentType, query: str
    ) -> list[dict[str, Any]]:
        resp = await self._http.get(
            f"{self._base_url}/api/search",
            params={"type": content_type, "query": query},
            headers={"User-Agent": self._user_agent},
        )
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError:
            log.warning("indexer_invalid_json", indexer=self._name)
            return []

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            log.debug("indexer_no_results_field", indexer=self._name)
            return []
        return [r for r in results if isinstance(r, dict)]
