# src/search/base_search_client.py — v1
"""Abstract search client interface used by community mining."""

from __future__ import annotations

from abc import ABC, abstractmethod

from intentphrase.search.models import Platform, SearchResponse


class BaseSearchClient(ABC):
    """Unified interface for web search providers."""

    @abstractmethod
    async def search(self, query: str, platform: Platform) -> SearchResponse:
        """Search ``query`` restricted to one community platform."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (serpapi)."""

    async def close(self) -> None:
        """Release network resources. Default: no-op."""
