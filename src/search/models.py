# src/search/models.py — v1
"""Search backend types: SearchHit, SearchResponse."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

Platform = Literal["reddit", "quora"]


class SearchHit(BaseModel):
    """One community discussion found by the search backend."""

    platform: Platform
    title: str = ""
    content: str = ""
    url: str = ""
    subreddit: str | None = None


class SearchResponse(BaseModel):
    """Normalized response from a search backend."""

    query: str
    platform: Platform
    hits: list[SearchHit] = Field(default_factory=list)
    provider: str
    latency_ms: int = 0
    raw_response: Any = None
