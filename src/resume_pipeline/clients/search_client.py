"""Tavily search wrapper used for optional company research."""

from __future__ import annotations

import logging
import os

from tavily import AsyncTavilyClient

logger = logging.getLogger(__name__)


class SearchClient:
    """Async Tavily search client that counts the searches it makes."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        max_results: int = 3,
        search_depth: str = "advanced",
    ):
        key = api_key or os.environ.get("TAVILY_API_KEY")
        if not key:
            raise ValueError(
                "Tavily API key required. Set TAVILY_API_KEY env var or pass api_key."
            )
        self.client = AsyncTavilyClient(api_key=key)
        self.max_results = max_results
        self.search_depth = search_depth
        self._search_count: int = 0

    async def search(self, query: str, max_results: int | None = None) -> list[dict]:
        """Search and return a list of {title, url, content} dicts."""
        logger.info("Searching: %s", query)
        self._search_count += 1
        response = await self.client.search(
            query=query,
            max_results=max_results or self.max_results,
            search_depth=self.search_depth,
        )
        return [
            {
                "title": r.get("title", ""),
                "url": r.get("url", ""),
                "content": r.get("content", ""),
            }
            for r in response.get("results", [])
        ]

    def get_search_count(self) -> int:
        """Return accumulated search count and reset the counter."""
        count = self._search_count
        self._search_count = 0
        return count
