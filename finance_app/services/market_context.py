"""Market news enrichment for investment insights."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import httpx

from finance_app.clients.web_search import WebSearchClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MarketSearchResult:
    context: str = ""
    queries: List[str] = field(default_factory=list)
    snippet_count: int = 0


class MarketContextSearch:
    """Search recent news for a user's holdings and render a prompt block."""

    def __init__(
        self,
        web_search: WebSearchClient | None,
        *,
        max_stocks: int = 5,
        max_funds: int = 3,
        results_per_query: int = 3,
    ) -> None:
        self._web_search = web_search
        self._max_stocks = max_stocks
        self._max_funds = max_funds
        self._results_per_query = results_per_query

    def build_queries(
        self, stock_symbols: Sequence[str], fund_names: Sequence[str]
    ) -> List[str]:
        queries = [
            f"{symbol.strip()} share price news India"
            for symbol in stock_symbols[: self._max_stocks]
            if symbol.strip()
        ]
        queries.extend(
            f"{name.strip()} mutual fund performance"
            for name in fund_names[: self._max_funds]
            if name.strip()
        )
        return queries

    async def search(
        self, stock_symbols: Sequence[str], fund_names: Sequence[str]
    ) -> MarketSearchResult:
        """Return rendered market context; failures yield an empty result."""
        web_search = self._web_search
        if web_search is None:
            return MarketSearchResult()
        queries = self.build_queries(stock_symbols, fund_names)
        if not queries:
            return MarketSearchResult()

        outcomes = await asyncio.gather(
            *(self._run_query(web_search, query) for query in queries)
        )

        lines: List[str] = []
        snippet_count = 0
        for query, results in zip(queries, outcomes):
            if not results:
                continue
            lines.append(f"### {query}")
            for item in results:
                title = item.get("title") or "Untitled"
                lines.append(f"- {title}: {item['snippet']}")
                snippet_count += 1

        if snippet_count == 0:
            return MarketSearchResult(queries=queries)
        context = "\n".join(["## Market Context (recent news)", *lines])
        return MarketSearchResult(
            context=context, queries=queries, snippet_count=snippet_count
        )

    async def _run_query(
        self, web_search: WebSearchClient, query: str
    ) -> List[Dict[str, Any]]:
        try:
            return await web_search.search(
                query, num_results=self._results_per_query
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Market search failed for %r: %s", query, exc)
            return []


__all__ = ["MarketContextSearch", "MarketSearchResult"]
