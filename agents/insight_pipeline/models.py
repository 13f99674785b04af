"""
Data models shared across the insight pipeline package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, TypedDict

from finance_app.clients.generation import ChatMessage
from finance_app.schemas import (
    AnalysisRecord,
    InsightSection,
    InsightType,
    PipelineResult,
    SearchContext,
    StructuredPayload,
)

# Types that can be generated without any transaction history.
NO_DATA_EXEMPT_TYPES = frozenset(
    {
        InsightType.INVESTMENT_INSIGHTS,
        InsightType.TAX_OPTIMIZATION,
        InsightType.PLANNER_RECOMMENDATION,
    }
)


class InsightPipelineError(RuntimeError):
    """Base class for failures raised by the pipeline itself."""


class NoDataError(InsightPipelineError):
    """Raised when a transaction-based insight is requested with no transactions."""

    def __init__(self, user_id: str, insight_type: InsightType) -> None:
        super().__init__(
            f"No transaction data found for user '{user_id}'. "
            f"Sync transactions before requesting '{insight_type.value}'."
        )
        self.user_id = user_id
        self.insight_type = insight_type


@dataclass(frozen=True)
class PipelineContext:
    """Prompt-ready text blocks assembled for a single run."""

    user_id: str
    financial_context: str = ""
    current_month_context: str = ""
    investment_context: str = ""
    nwi_context: str = ""
    health_context: str = ""
    goals_context: str = ""
    market_context: str = ""
    tax_context: str = ""
    planner_context: str = ""
    transaction_count: int = 0
    stock_symbols: Tuple[str, ...] = ()
    mutual_fund_names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PipelineOptions:
    force: bool = False
    include_search: bool = True


@dataclass(frozen=True)
class ParsedResponse:
    """Generator output after parsing and schema dispatch."""

    content: str
    sections: Optional[List[InsightSection]] = None
    structured_data: Optional[StructuredPayload] = None


@dataclass
class CachedAnalysis:
    record: AnalysisRecord
    stale: bool = field(default=False)


class PipelineState(TypedDict, total=False):
    """State tracked inside the LangGraph workflow."""

    user_id: str
    insight_type: InsightType
    options: PipelineOptions
    cached: Optional[CachedAnalysis]
    context: PipelineContext
    search_context: Optional[SearchContext]
    messages: List[ChatMessage]
    raw_response: str
    insight: ParsedResponse
    result: PipelineResult


class InsightJobPayload(TypedDict):
    """Payload structure delivered via the local job queue."""

    job_id: str
    user_id: str
    types: List[str]
    trigger: str
    requested_at: str


__all__ = [
    "CachedAnalysis",
    "InsightJobPayload",
    "InsightPipelineError",
    "InsightType",
    "NO_DATA_EXEMPT_TYPES",
    "NoDataError",
    "ParsedResponse",
    "PipelineContext",
    "PipelineOptions",
    "PipelineState",
]
