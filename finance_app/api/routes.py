"""
FastAPI routes for AI insight generation.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, List

from fastapi import APIRouter, Depends, HTTPException, Query

from agents.insight_pipeline.models import NoDataError, PipelineOptions
from finance_app.clients import DocumentStoreError, GenerationError
from finance_app.core.config import AppSettings
from finance_app.dependencies import (
    SettingsDependency,
    get_insight_pipeline,
    get_insight_queue_service,
)
from finance_app.schemas import (
    BatchInsightRequest,
    BatchInsightResponse,
    InsightRequest,
    InsightType,
    PipelineResult,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _parse_type(value: str) -> InsightType:
    try:
        return InsightType(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Invalid type. Must be one of: {', '.join(InsightType.values())}",
        ) from exc


def _pipeline_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NoDataError):
        return HTTPException(
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            detail="No transaction data available. Please sync first.",
        )
    if isinstance(exc, GenerationError):
        return HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail=f"AI analysis failed: {exc}",
        )
    return HTTPException(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        detail=f"AI analysis failed: {exc}",
    )


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(settings: AppSettings = SettingsDependency) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "environment": settings.environment}


@router.get("/insights", status_code=HTTPStatus.OK, response_model=PipelineResult)
async def get_insight(
    pipeline: Annotated[Any, Depends(get_insight_pipeline)],
    user_id: str = Query(..., min_length=1, description="Owner of the financial data."),
    type: str = Query(..., description="Insight type to return."),
) -> PipelineResult:
    """Return the cached insight when fresh, otherwise generate a new one.

    If generation fails and an older insight exists, that insight is returned
    with ``stale`` set and a ``warning`` explaining the failure.
    """
    insight_type = _parse_type(type)
    try:
        return await pipeline.get_or_generate(user_id, insight_type)
    except (NoDataError, GenerationError, DocumentStoreError) as exc:
        logger.error("AI insights GET failed for %s: %s", insight_type.value, exc)
        raise _pipeline_error(exc) from exc


@router.post("/insights", status_code=HTTPStatus.OK, response_model=PipelineResult)
async def regenerate_insight(
    payload: InsightRequest,
    pipeline: Annotated[Any, Depends(get_insight_pipeline)],
) -> PipelineResult:
    """Force regeneration, bypassing the cache."""
    insight_type = _parse_type(payload.type)
    try:
        return await pipeline.run(
            payload.user_id, insight_type, PipelineOptions(force=True)
        )
    except (NoDataError, GenerationError, DocumentStoreError) as exc:
        logger.error("AI insights POST failed for %s: %s", insight_type.value, exc)
        raise _pipeline_error(exc) from exc


@router.post(
    "/insights/batch",
    status_code=HTTPStatus.ACCEPTED,
    response_model=BatchInsightResponse,
)
async def request_batch_generation(
    payload: BatchInsightRequest,
    queue_service: Annotated[Any, Depends(get_insight_queue_service)],
) -> BatchInsightResponse:
    """Enqueue regeneration of several insight types for the local worker."""
    types: List[InsightType] = (
        [_parse_type(value) for value in payload.types]
        if payload.types
        else list(InsightType)
    )
    job_id = queue_service.enqueue_generation(
        user_id=payload.user_id, types=types, trigger=payload.trigger
    )
    return BatchInsightResponse(job_id=job_id, types=types)


__all__ = ["router"]
