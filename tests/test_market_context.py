try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from finance_app.clients import web_search
from finance_app.clients.web_search import WebSearchClient
from finance_app.services.market_context import MarketContextSearch


class StubWebSearch:
    def __init__(self, results=None, failures=()):
        self.results = results or {}
        self.failures = set(failures)
        self.queries: list[str] = []

    async def search(self, query: str, *, num_results: int = 5):
        self.queries.append(query)
        if query in self.failures:
            raise httpx.ConnectError("network down")
        return self.results.get(query, [])[:num_results]


def test_build_queries_respects_limits():
    search = MarketContextSearch(None, max_stocks=2, max_funds=1)

    queries = search.build_queries(["INFY", "TCS", "HDFCBANK"], ["Axis Bluechip", "SBI Small Cap"])

    assert queries == [
        "INFY share price news India",
        "TCS share price news India",
        "Axis Bluechip mutual fund performance",
    ]


@pytest.mark.asyncio
async def test_search_without_client_returns_empty_result():
    result = await MarketContextSearch(None).search(["INFY"], [])

    assert result.context == ""
    assert result.queries == []
    assert result.snippet_count == 0


@pytest.mark.asyncio
async def test_search_renders_snippets_and_skips_failed_queries():
    client = StubWebSearch(
        results={
            "INFY share price news India": [
                {"title": "Infosys rallies", "snippet": "Shares rose 3% on guidance."},
                {"title": None, "snippet": "Analysts upgrade the stock."},
            ],
        },
        failures={"TCS share price news India"},
    )
    search = MarketContextSearch(client)

    result = await search.search(["INFY", "TCS"], [])

    assert client.queries == ["INFY share price news India", "TCS share price news India"]
    assert result.snippet_count == 2
    assert result.context.startswith("## Market Context (recent news)")
    assert "### INFY share price news India" in result.context
    assert "- Infosys rallies: Shares rose 3% on guidance." in result.context
    assert "- Untitled: Analysts upgrade the stock." in result.context
    assert "TCS" not in result.context


@pytest.mark.asyncio
async def test_search_with_no_snippets_keeps_queries_but_no_context():
    search = MarketContextSearch(StubWebSearch())

    result = await search.search([], ["Axis Bluechip"])

    assert result.context == ""
    assert result.queries == ["Axis Bluechip mutual fund performance"]
    assert result.snippet_count == 0


def _serve(monkeypatch, body):
    async def fake_request(*args, **kwargs):
        return httpx.Response(200, json=body)

    monkeypatch.setattr(web_search, "request_with_retry", fake_request)


@pytest.mark.asyncio
async def test_non_object_search_body_leaves_context_empty(monkeypatch):
    _serve(monkeypatch, ["not", "an", "object"])
    search = MarketContextSearch(WebSearchClient(api_key="serp-key"))

    result = await search.search(["INFY"], [])

    assert result.context == ""
    assert result.queries == ["INFY share price news India"]
    assert result.snippet_count == 0


@pytest.mark.asyncio
async def test_search_client_skips_malformed_results(monkeypatch):
    _serve(
        monkeypatch,
        {"organic_results": ["junk", {"title": "Infosys", "snippet": "Up 2%."}, {"title": "x"}]},
    )

    results = await WebSearchClient(api_key="serp-key").search("INFY", num_results=5)

    assert [item["snippet"] for item in results] == ["Up 2%."]
