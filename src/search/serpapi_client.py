# src/search/serpapi_client.py — v1
"""SerpAPI client: Google results restricted to reddit.com or quora.com.

HTTP errors are left as ``httpx.HTTPStatusError`` so the executor can
classify them by status code.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any

import httpx

from intentphrase.search.base_search_client import BaseSearchClient
from intentphrase.search.models import Platform, SearchHit, SearchResponse

logger = logging.getLogger(__name__)

_SITES: dict[str, str] = {
    "reddit": "reddit.com",
    "quora": "quora.com",
}
_SUBREDDIT_RE = re.compile(r"reddit\.com/r/([^/]+)")


class SerpApiClient(BaseSearchClient):
    """Async SerpAPI client backed by httpx."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://serpapi.com/search",
        num_results: int = 10,
        gl: str = "us",
        hl: str = "en",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._num_results = num_results
        self._gl = gl
        self._hl = hl
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def search(self, query: str, platform: Platform) -> SearchResponse:
        site = _SITES[platform]
        params = {
            "api_key": self._api_key,
            "engine": "google",
            "q": f"{query} site:{site}",
            "gl": self._gl,
            "hl": self._hl,
            "num": str(self._num_results),
        }

        t0 = time.monotonic()
        rsp = await self._get_client().get(self._base_url, params=params)
        rsp.raise_for_status()
        latency = int((time.monotonic() - t0) * 1000)

        data = rsp.json()
        hits = extract_hits(data, platform)
        logger.debug("SerpAPI %s query %r returned %d hits", platform, query, len(hits))
        return SearchResponse(
            query=query,
            platform=platform,
            hits=hits,
            provider=self.provider_name,
            latency_ms=latency,
            raw_response=data,
        )

    @property
    def provider_name(self) -> str:
        return "serpapi"

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def extract_hits(data: Any, platform: Platform) -> list[SearchHit]:
    """Normalize organic results that actually link to the platform."""
    if not isinstance(data, dict):
        return []
    site = _SITES[platform]
    hits: list[SearchHit] = []
    for result in data.get("organic_results") or []:
        link = result.get("link") or ""
        if site not in link:
            continue
        hits.append(SearchHit(
            platform=platform,
            title=result.get("title") or "",
            content=result.get("snippet") or "",
            url=link,
            subreddit=subreddit_from_url(link) if platform == "reddit" else None,
        ))
    return hits


def subreddit_from_url(url: str) -> str | None:
    match = _SUBREDDIT_RE.search(url)
    return match.group(1) if match else None
