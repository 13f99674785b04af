"""Search client integrating with SerpAPI to gather market news snippets."""

from __future__ import annotations

from typing import Any, Dict, List

import httpx

from finance_app.utils.http import RetryConfig, request_with_retry


class WebSearchClient:
    """Perform web searches using SerpAPI."""

    _BASE_URL = "https://serpapi.com/search.json"

    def __init__(
        self,
        *,
        api_key: str,
        engine: str = "google",
        location: str = "India",
        timeout_seconds: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._engine = engine
        self._location = location
        self._timeout = timeout_seconds

    async def search(self, query: str, *, num_results: int = 5) -> List[Dict[str, Any]]:
        """Execute a search query and return simplified organic results."""

        params = {
            "engine": self._engine,
            "q": query,
            "num": num_results,
            "location": self._location,
            "api_key": self._api_key,
        }

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await request_with_retry(
                client.get,
                self._BASE_URL,
                params=params,
                retry_config=RetryConfig(attempts=2, backoff_seconds=0.5),
            )

        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("SerpAPI returned a non-object response body")
        organic = payload.get("organic_results") or []
        if not isinstance(organic, list):
            raise ValueError("SerpAPI organic_results must be a list")
        results: List[Dict[str, Any]] = []
        for item in organic[:num_results]:
            if not isinstance(item, dict):
                continue
            snippet = item.get("snippet")
            if not snippet:
                continue
            results.append(
                {
                    "title": item.get("title"),
                    "link": item.get("link"),
                    "snippet": snippet,
                    "date": item.get("date"),
                }
            )
        return results


__all__ = ["WebSearchClient"]
