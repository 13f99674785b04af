try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
import json
from datetime import timedelta

import pytest

from agents.insight_pipeline.cache import ANALYSES_COLLECTION, InsightCache
from agents.insight_pipeline.context import ContextCollector
from agents.insight_pipeline.models import NoDataError, PipelineOptions
from agents.insight_pipeline.pipeline import InsightPipeline, run_ai_pipeline
from finance_app.clients import GenerationError
from finance_app.schemas import InsightShape, InsightType
from finance_app.services.market_context import MarketContextSearch

pytestmark = pytest.mark.anyio("asyncio")

USER = "user-1"

WEEKLY_RESPONSE = json.dumps(
    {
        "weeklyTarget": 5000,
        "spent": 2000,
        "remaining": 3000,
        "dailyLimit": 750,
        "daysRemaining": 4,
        "onTrack": True,
    }
)

INVESTMENT_RESPONSE = json.dumps(
    {
        "portfolioValue": 18000,
        "totalInvested": 15000,
        "totalReturns": 3000,
        "returnPercentage": 20,
        "diversification": {"equity": 100},
        "verdict": "Concentrated in one stock.",
    }
)


class StubGenerator:
    def __init__(self, response: str = WEEKLY_RESPONSE) -> None:
        self.response = response
        self.error: Exception | None = None
        self.calls: list[list[dict]] = []

    async def complete(self, messages, *, max_tokens=None) -> str:
        self.calls.append(list(messages))
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.response


class StubWebSearch:
    def __init__(self) -> None:
        self.queries: list[str] = []

    async def search(self, query: str, *, num_results: int = 5):
        self.queries.append(query)
        return [{"title": "Infosys wins deal", "snippet": "Large contract announced."}]


@pytest.fixture()
def generator() -> StubGenerator:
    return StubGenerator()


@pytest.fixture()
def web_search() -> StubWebSearch:
    return StubWebSearch()


@pytest.fixture()
def pipeline(store, clock, generator, web_search) -> InsightPipeline:
    return InsightPipeline(
        collector=ContextCollector(store, clock=clock),
        cache=InsightCache(store, clock=clock),
        generator=generator,
        market_search=MarketContextSearch(web_search),
    )


async def _seed_transactions(store) -> None:
    await store.insert_many(
        "transactions",
        [
            {
                "user_id": USER,
                "date": "2025-03-01T09:00:00Z",
                "amount": 100000,
                "type": "income",
                "category": "Salary",
            },
            {
                "user_id": USER,
                "date": "2025-03-03T09:00:00Z",
                "amount": 1500,
                "type": "expense",
                "category": "Food",
            },
        ],
    )


async def test_generates_and_persists_on_cache_miss(store, pipeline, generator):
    await _seed_transactions(store)

    result = await pipeline.run(USER, InsightType.WEEKLY_BUDGET)

    assert result.from_cache is False
    assert result.data_points == 2
    assert result.structured_data.shape is InsightShape.WEEKLY_BUDGET
    assert result.sections[0].id == "week_glance"
    assert len(generator.calls) == 1
    system, user = generator.calls[0]
    assert system["role"] == "system"
    assert "## Current Month (March 2025)" in user["content"]
    stored = await store.find(ANALYSES_COLLECTION, {"user_id": USER})
    assert len(stored) == 1


async def test_fresh_cache_skips_generation(store, pipeline, generator):
    await pipeline.cache.persist(USER, InsightType.SPENDING_ANALYSIS, "cached text", 7)

    result = await pipeline.run(USER, InsightType.SPENDING_ANALYSIS)

    assert result.from_cache is True
    assert result.stale is False
    assert result.content == "cached text"
    assert generator.calls == []
    stored = await store.find(ANALYSES_COLLECTION, {"user_id": USER})
    assert len(stored) == 1


async def test_stale_cache_triggers_regeneration(store, clock, pipeline, generator):
    await _seed_transactions(store)
    await pipeline.cache.persist(USER, InsightType.WEEKLY_BUDGET, "old text", 2)
    clock.now += timedelta(hours=25)

    result = await pipeline.run(USER, InsightType.WEEKLY_BUDGET)

    assert result.from_cache is False
    assert result.content != "old text"
    assert len(generator.calls) == 1


async def test_force_bypasses_fresh_cache(store, pipeline, generator):
    await _seed_transactions(store)
    await pipeline.cache.persist(USER, InsightType.WEEKLY_BUDGET, "cached text", 2)

    result = await pipeline.run(USER, InsightType.WEEKLY_BUDGET, PipelineOptions(force=True))

    assert result.from_cache is False
    assert len(generator.calls) == 1
    history = await store.find(ANALYSES_COLLECTION, {"user_id": USER})
    assert len(history) == 2


async def test_transaction_types_fail_without_data(pipeline, generator):
    with pytest.raises(NoDataError):
        await pipeline.run(USER, InsightType.SPENDING_ANALYSIS)

    assert generator.calls == []


async def test_investment_insights_run_without_transactions(store, pipeline, generator):
    generator.response = INVESTMENT_RESPONSE
    await store.insert_one(
        "stocks",
        {"user_id": USER, "symbol": "INFY", "shares": 10, "average_cost": 1500},
    )

    result = await pipeline.run(USER, InsightType.INVESTMENT_INSIGHTS)

    assert result.data_points == 0
    assert result.structured_data.shape is InsightShape.INVESTMENT_INSIGHTS
    assert result.search_context.queries == ["INFY share price news India"]
    assert result.search_context.snippet_count == 1
    user_message = generator.calls[0][1]["content"]
    assert "## Market Context (recent news)" in user_message
    assert "- Infosys wins deal: Large contract announced." in user_message


async def test_search_can_be_disabled(store, pipeline, generator, web_search):
    generator.response = INVESTMENT_RESPONSE
    await store.insert_one("stocks", {"user_id": USER, "symbol": "INFY", "shares": 1})

    result = await pipeline.run(
        USER, InsightType.INVESTMENT_INSIGHTS, PipelineOptions(include_search=False)
    )

    assert web_search.queries == []
    assert result.search_context is None
    assert "Market Context" not in generator.calls[0][1]["content"]


async def test_search_is_not_used_for_other_types(store, pipeline, web_search):
    await _seed_transactions(store)
    await store.insert_one("stocks", {"user_id": USER, "symbol": "INFY", "shares": 1})

    await pipeline.run(USER, InsightType.WEEKLY_BUDGET)

    assert web_search.queries == []


async def test_concurrent_requests_share_one_generation(store, pipeline, generator):
    await _seed_transactions(store)

    first, second = await asyncio.gather(
        pipeline.run(USER, InsightType.WEEKLY_BUDGET),
        pipeline.run(USER, InsightType.WEEKLY_BUDGET),
    )

    assert len(generator.calls) == 1
    assert first == second
    history = await store.find(ANALYSES_COLLECTION, {"user_id": USER})
    assert len(history) == 1


async def test_generation_failure_falls_back_to_stale_cache(store, clock, pipeline, generator):
    await _seed_transactions(store)
    await pipeline.cache.persist(USER, InsightType.WEEKLY_BUDGET, "yesterday", 2)
    clock.now += timedelta(hours=30)
    generator.error = GenerationError("quota exceeded")

    result = await pipeline.get_or_generate(USER, InsightType.WEEKLY_BUDGET)

    assert result.content == "yesterday"
    assert result.from_cache is True
    assert result.stale is True
    assert result.warning == "Using stale cache. Generation failed: quota exceeded"


async def test_removed_transactions_fall_back_to_stale_cache(store, clock, pipeline, generator):
    await pipeline.cache.persist(USER, InsightType.SPENDING_ANALYSIS, "last month", 4)
    clock.now += timedelta(hours=30)

    result = await pipeline.get_or_generate(USER, InsightType.SPENDING_ANALYSIS)

    assert result.content == "last month"
    assert result.stale is True
    assert result.warning.startswith("Using stale cache. Generation failed: No transaction data")
    assert generator.calls == []


async def test_no_data_without_cache_propagates_from_get(pipeline):
    with pytest.raises(NoDataError):
        await pipeline.get_or_generate(USER, InsightType.SPENDING_ANALYSIS)


async def test_generation_failure_without_cache_propagates(store, pipeline, generator):
    await _seed_transactions(store)
    generator.error = GenerationError("quota exceeded")

    with pytest.raises(GenerationError):
        await pipeline.get_or_generate(USER, InsightType.WEEKLY_BUDGET)

    assert await store.find(ANALYSES_COLLECTION, {"user_id": USER}) == []


async def test_run_ai_pipeline_accepts_type_strings(store, pipeline):
    await _seed_transactions(store)

    result = await run_ai_pipeline(USER, "weekly_budget", pipeline=pipeline)

    assert result.structured_data.shape is InsightShape.WEEKLY_BUDGET


async def test_unparseable_response_is_stored_as_text(store, pipeline, generator):
    await _seed_transactions(store)
    generator.response = "Spend less on food."

    result = await pipeline.run(USER, InsightType.WEEKLY_BUDGET)

    assert result.content == "Spend less on food."
    assert result.sections is None
    assert result.structured_data is None
