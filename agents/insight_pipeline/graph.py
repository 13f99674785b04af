"""
LangGraph workflow definition for a single insight pipeline run.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from langgraph.graph import END, START, StateGraph

from finance_app.clients.generation import GenerationClient
from finance_app.schemas import InsightType, PipelineResult, SearchContext
from finance_app.services.market_context import MarketContextSearch

from .cache import InsightCache
from .context import ContextCollector
from .models import PipelineState
from .parsing import parse_response
from .prompts import build_messages

logger = logging.getLogger(__name__)


async def _check_cache(state: PipelineState, cache: InsightCache) -> PipelineState:
    """Short-circuit with the cached record when it is still fresh."""
    cached = await cache.get_cached(state["user_id"], state["insight_type"])
    state["cached"] = cached
    if cached is not None and not cached.stale:
        logger.info(
            "Serving cached %s insight for user %s",
            state["insight_type"].value,
            state["user_id"],
        )
        state["result"] = PipelineResult.from_record(cached.record, from_cache=True)
    return state


async def _collect_context(state: PipelineState, collector: ContextCollector) -> PipelineState:
    state["context"] = await collector.collect(state["user_id"], state["insight_type"])
    state["search_context"] = None
    return state


async def _enrich_market_context(
    state: PipelineState, market_search: MarketContextSearch
) -> PipelineState:
    """Merge recent market news for the user's holdings into the context."""
    context = state["context"]
    found = await market_search.search(context.stock_symbols, context.mutual_fund_names)
    if found.context:
        state["context"] = dataclasses.replace(context, market_context=found.context)
        state["search_context"] = SearchContext(
            queries=found.queries, snippet_count=found.snippet_count
        )
    return state


async def _build_prompt(state: PipelineState) -> PipelineState:
    prompt = build_messages(state["insight_type"], state["context"])
    state["messages"] = prompt.as_chat_messages()
    return state


async def _generate(state: PipelineState, generator: GenerationClient) -> PipelineState:
    state["raw_response"] = await generator.complete(state["messages"])
    return state


async def _parse(state: PipelineState) -> PipelineState:
    state["insight"] = parse_response(state["raw_response"])
    return state


async def _persist(state: PipelineState, cache: InsightCache) -> PipelineState:
    insight = state["insight"]
    record = await cache.persist(
        state["user_id"],
        state["insight_type"],
        insight.content,
        state["context"].transaction_count,
        sections=insight.sections,
        search_context=state.get("search_context"),
        structured_data=insight.structured_data,
    )
    state["result"] = PipelineResult.from_record(record, from_cache=False)
    return state


def _route_start(state: PipelineState) -> str:
    return "collect_context" if state["options"].force else "check_cache"


def _route_after_cache(state: PipelineState) -> str:
    return "done" if state.get("result") is not None else "collect_context"


def _route_after_collect(state: PipelineState) -> str:
    wants_search = (
        state["insight_type"] is InsightType.INVESTMENT_INSIGHTS
        and state["options"].include_search
    )
    return "enrich_market_context" if wants_search else "build_prompt"


def create_insight_graph(
    *,
    collector: ContextCollector,
    cache: InsightCache,
    generator: GenerationClient,
    market_search: MarketContextSearch,
) -> Any:
    """Compile and return the insight pipeline LangGraph workflow."""
    graph = StateGraph(PipelineState)

    async def check_cache_node(state: PipelineState) -> PipelineState:
        return await _check_cache(state, cache)

    async def collect_context_node(state: PipelineState) -> PipelineState:
        return await _collect_context(state, collector)

    async def enrich_market_context_node(state: PipelineState) -> PipelineState:
        return await _enrich_market_context(state, market_search)

    async def generate_node(state: PipelineState) -> PipelineState:
        return await _generate(state, generator)

    async def persist_node(state: PipelineState) -> PipelineState:
        return await _persist(state, cache)

    graph.add_node("check_cache", check_cache_node)
    graph.add_node("collect_context", collect_context_node)
    graph.add_node("enrich_market_context", enrich_market_context_node)
    graph.add_node("build_prompt", _build_prompt)
    graph.add_node("generate", generate_node)
    graph.add_node("parse", _parse)
    graph.add_node("persist", persist_node)

    graph.add_conditional_edges(
        START,
        _route_start,
        {"check_cache": "check_cache", "collect_context": "collect_context"},
    )
    graph.add_conditional_edges(
        "check_cache",
        _route_after_cache,
        {"done": END, "collect_context": "collect_context"},
    )
    graph.add_conditional_edges(
        "collect_context",
        _route_after_collect,
        {
            "enrich_market_context": "enrich_market_context",
            "build_prompt": "build_prompt",
        },
    )
    graph.add_edge("enrich_market_context", "build_prompt")
    graph.add_edge("build_prompt", "generate")
    graph.add_edge("generate", "parse")
    graph.add_edge("parse", "persist")
    graph.add_edge("persist", END)
    return graph.compile()


__all__ = ["create_insight_graph"]
