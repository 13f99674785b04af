"""Entry point for running the insight pipeline."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from finance_app.clients import (
    GenerationClient,
    GenerationError,
    SQLiteDocumentStore,
    WebSearchClient,
)
from finance_app.core.config import AppSettings, get_settings
from finance_app.schemas import InsightType, PipelineResult
from finance_app.services.market_context import MarketContextSearch

from .cache import InsightCache
from .context import Clock, ContextCollector, utc_now
from .graph import create_insight_graph
from .models import InsightPipelineError, PipelineOptions

logger = logging.getLogger(__name__)

_FlightKey = Tuple[str, InsightType, PipelineOptions]


class InsightPipeline:
    """Run the cache → collect → generate → persist workflow for one user.

    With ``single_flight`` enabled, concurrent calls in this process for the
    same user, type and options await one shared run instead of generating
    twice.
    """

    def __init__(
        self,
        *,
        collector: ContextCollector,
        cache: InsightCache,
        generator: GenerationClient,
        market_search: MarketContextSearch,
        single_flight: bool = True,
    ) -> None:
        self._cache = cache
        self._graph = create_insight_graph(
            collector=collector,
            cache=cache,
            generator=generator,
            market_search=market_search,
        )
        self._single_flight = single_flight
        self._in_flight: Dict[_FlightKey, asyncio.Task] = {}

    @property
    def cache(self) -> InsightCache:
        return self._cache

    async def run(
        self,
        user_id: str,
        insight_type: InsightType,
        options: Optional[PipelineOptions] = None,
    ) -> PipelineResult:
        options = options or PipelineOptions()
        if not self._single_flight:
            return await self._execute(user_id, insight_type, options)

        key = (user_id, insight_type, options)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._execute(user_id, insight_type, options))
            self._in_flight[key] = task
            task.add_done_callback(lambda _: self._in_flight.pop(key, None))
        else:
            logger.info(
                "Joining in-flight %s run for user %s", insight_type.value, user_id
            )
        return await asyncio.shield(task)

    async def get_or_generate(self, user_id: str, insight_type: InsightType) -> PipelineResult:
        """Return a fresh insight, falling back to the stale cache if the run fails.

        Covers provider failures and the no-data gate, so a user whose
        transactions were removed still sees their last analysis.
        """
        try:
            return await self.run(user_id, insight_type)
        except (GenerationError, InsightPipelineError) as exc:
            cached = await self._cache.get_cached(user_id, insight_type)
            if cached is None:
                raise
            logger.warning(
                "Pipeline failed for %s (user %s); serving stale cache",
                insight_type.value,
                user_id,
            )
            result = PipelineResult.from_record(cached.record, from_cache=True, stale=True)
            result.warning = f"Using stale cache. Generation failed: {exc}"
            return result

    async def _execute(
        self, user_id: str, insight_type: InsightType, options: PipelineOptions
    ) -> PipelineResult:
        started = time.perf_counter()
        final_state: Dict[str, Any] = await self._graph.ainvoke(
            {"user_id": user_id, "insight_type": insight_type, "options": options}
        )
        result: PipelineResult = final_state["result"]
        logger.info(
            "Insight pipeline finished",
            extra={
                "user_id": user_id,
                "insight_type": insight_type.value,
                "from_cache": result.from_cache,
                "duration_ms": round((time.perf_counter() - started) * 1000),
            },
        )
        return result


def build_pipeline(
    settings: AppSettings,
    *,
    store: Optional[SQLiteDocumentStore] = None,
    clock: Clock = utc_now,
) -> InsightPipeline:
    """Wire an :class:`InsightPipeline` from application settings."""
    store = store or SQLiteDocumentStore(settings.database_path)
    web_search = None
    if settings.serpapi_api_key:
        web_search = WebSearchClient(api_key=settings.serpapi_api_key)
    return InsightPipeline(
        collector=ContextCollector(store, clock=clock),
        cache=InsightCache(
            store,
            clock=clock,
            staleness=timedelta(hours=settings.insights.staleness_hours),
            max_per_type=settings.insights.max_analyses_per_type,
        ),
        generator=GenerationClient(settings.gemini),
        market_search=MarketContextSearch(
            web_search,
            max_stocks=settings.insights.max_search_stocks,
            max_funds=settings.insights.max_search_funds,
        ),
        single_flight=settings.insights.single_flight,
    )


_default_pipeline: Optional[InsightPipeline] = None


async def run_ai_pipeline(
    user_id: str,
    insight_type: InsightType | str,
    options: Optional[PipelineOptions] = None,
    *,
    pipeline: Optional[InsightPipeline] = None,
) -> PipelineResult:
    """Run the pipeline with the process-wide default wiring unless one is given."""
    global _default_pipeline
    if pipeline is None:
        if _default_pipeline is None:
            _default_pipeline = build_pipeline(get_settings())
        pipeline = _default_pipeline
    return await pipeline.run(user_id, InsightType(insight_type), options)


__all__ = ["InsightPipeline", "build_pipeline", "run_ai_pipeline"]
