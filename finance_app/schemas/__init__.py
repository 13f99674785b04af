"""Public schema exports."""

from .insights import (
    AnalysisRecord,
    BatchInsightRequest,
    BatchInsightResponse,
    InsightRequest,
    InsightSection,
    InsightShape,
    InsightType,
    PipelineResult,
    SearchContext,
    StructuredPayload,
)

__all__ = [
    "AnalysisRecord",
    "BatchInsightRequest",
    "BatchInsightResponse",
    "InsightRequest",
    "InsightSection",
    "InsightShape",
    "InsightType",
    "PipelineResult",
    "SearchContext",
    "StructuredPayload",
]
