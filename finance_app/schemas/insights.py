"""
Pydantic models for insight generation requests, records and results.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class InsightType(str, Enum):
    """Kinds of insight the pipeline can produce."""

    SPENDING_ANALYSIS = "spending_analysis"
    MONTHLY_BUDGET = "monthly_budget"
    WEEKLY_BUDGET = "weekly_budget"
    INVESTMENT_INSIGHTS = "investment_insights"
    TAX_OPTIMIZATION = "tax_optimization"
    PLANNER_RECOMMENDATION = "planner_recommendation"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class InsightShape(str, Enum):
    """Discriminator for the structured payload recovered from a response."""

    TAX_TIPS = "tax_tips"
    SPENDING_ANALYSIS = "spending_analysis"
    MONTHLY_BUDGET = "monthly_budget"
    WEEKLY_BUDGET = "weekly_budget"
    INVESTMENT_INSIGHTS = "investment_insights"
    PLANNER_RECOMMENDATION = "planner_recommendation"
    LEGACY_SECTIONS = "legacy_sections"


SectionType = Literal["summary", "list", "numbered_list", "highlight"]
Severity = Literal["positive", "warning", "critical", "neutral"]

SECTION_TYPES: frozenset[str] = frozenset(
    {"summary", "list", "numbered_list", "highlight"}
)
SEVERITIES: frozenset[str] = frozenset({"positive", "warning", "critical", "neutral"})


class InsightSection(BaseModel):
    """Display unit rendered by clients."""

    id: str
    title: str
    type: SectionType
    text: Optional[str] = None
    items: Optional[List[str]] = None
    highlight: Optional[str] = None
    severity: Optional[Severity] = None


class StructuredPayload(BaseModel):
    """Structured response data tagged with the shape it was recognised as."""

    model_config = ConfigDict(frozen=True)

    shape: InsightShape
    data: Dict[str, Any]


class SearchContext(BaseModel):
    queries: List[str] = Field(default_factory=list)
    snippet_count: int = 0


class AnalysisRecord(BaseModel):
    """A generated insight persisted in the ``ai_analyses`` collection."""

    id: Optional[str] = None
    user_id: str
    type: InsightType
    content: str
    sections: Optional[List[InsightSection]] = None
    structured_data: Optional[StructuredPayload] = None
    generated_at: datetime
    data_points: int = 0
    search_context: Optional[SearchContext] = None
    created_at: datetime

    def is_stale(self, now: datetime, staleness: timedelta) -> bool:
        return now - self.generated_at > staleness


class PipelineResult(BaseModel):
    """Outcome of a pipeline run as returned to API callers."""

    content: str
    sections: Optional[List[InsightSection]] = None
    structured_data: Optional[StructuredPayload] = None
    generated_at: datetime
    data_points: int = 0
    from_cache: bool = False
    stale: bool = False
    search_context: Optional[SearchContext] = None
    warning: Optional[str] = None

    @classmethod
    def from_record(
        cls, record: AnalysisRecord, *, from_cache: bool, stale: bool = False
    ) -> "PipelineResult":
        return cls(
            content=record.content,
            sections=record.sections,
            structured_data=record.structured_data,
            generated_at=record.generated_at,
            data_points=record.data_points,
            from_cache=from_cache,
            stale=stale,
            search_context=record.search_context,
        )


class InsightRequest(BaseModel):
    """Body of a forced regeneration request."""

    user_id: str = Field(..., min_length=1)
    type: str = Field(..., description="One of the supported insight types.")


class BatchInsightRequest(BaseModel):
    """Body of a batch generation request."""

    user_id: str = Field(..., min_length=1)
    types: Optional[List[str]] = Field(
        None,
        description="Insight types to regenerate; defaults to every type.",
    )
    trigger: str = Field("manual", description="Who or what requested the run.")


class BatchInsightResponse(BaseModel):
    job_id: str
    status: str = "queued"
    types: List[InsightType]


__all__ = [
    "AnalysisRecord",
    "BatchInsightRequest",
    "BatchInsightResponse",
    "InsightRequest",
    "InsightSection",
    "InsightShape",
    "InsightType",
    "PipelineResult",
    "SECTION_TYPES",
    "SEVERITIES",
    "SearchContext",
    "Severity",
    "StructuredPayload",
]
