"""Batch insight generation and the local worker that drains the job queue."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from finance_app.clients import (
    DocumentStoreError,
    GenerationError,
    SQLiteDocumentStore,
    SQLiteQueueClient,
)
from finance_app.core.config import get_settings
from finance_app.core.logging import configure_logging
from finance_app.schemas import InsightType

from .models import InsightJobPayload, InsightPipelineError, PipelineOptions
from .pipeline import InsightPipeline, build_pipeline

logger = logging.getLogger(__name__)

CRON_RUNS_COLLECTION = "cron_runs"
BATCH_JOB_NAME = "insights-generation"


async def generate_user_insights(
    pipeline: InsightPipeline,
    store: SQLiteDocumentStore,
    user_id: str,
    types: Sequence[InsightType],
    trigger: str,
) -> Dict[str, Dict[str, str]]:
    """Force-regenerate each insight type for a user and log the run.

    A failing type is recorded and does not stop the remaining types.
    """
    started_at = datetime.now(timezone.utc)
    results: Dict[str, Dict[str, str]] = {}

    for insight_type in types:
        options = PipelineOptions(
            force=True,
            include_search=insight_type is InsightType.INVESTMENT_INSIGHTS,
        )
        try:
            await pipeline.run(user_id, insight_type, options)
        except (InsightPipelineError, GenerationError, DocumentStoreError) as exc:
            logger.warning(
                "Batch generation of %s failed: %s",
                insight_type.value,
                exc,
                extra={"user_id": user_id},
            )
            results[insight_type.value] = {"status": "failed", "error": str(exc)}
            continue
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception(
                "Unexpected error generating %s",
                insight_type.value,
                extra={"user_id": user_id},
            )
            results[insight_type.value] = {"status": "failed", "error": repr(exc)}
            continue
        results[insight_type.value] = {"status": "success"}

    finished_at = datetime.now(timezone.utc)
    await store.insert_one(
        CRON_RUNS_COLLECTION,
        {
            "job": BATCH_JOB_NAME,
            "trigger": trigger,
            "user_id": user_id,
            "status": "success",
            "results": results,
            "started_at": started_at.isoformat(),
            "finished_at": finished_at.isoformat(),
            "duration_ms": round((finished_at - started_at).total_seconds() * 1000),
        },
    )
    return results


class InsightQueueWorker:
    """Poll the SQLite queue and execute batch insight jobs."""

    def __init__(
        self,
        queue_client: SQLiteQueueClient,
        store: SQLiteDocumentStore,
        pipeline: InsightPipeline,
        poll_interval_seconds: float = 1.0,
    ) -> None:
        self._queue = queue_client
        self._store = store
        self._pipeline = pipeline
        self._poll_interval = poll_interval_seconds

    async def run_forever(self) -> None:
        while True:
            try:
                processed = await self.run_once()
            except Exception:  # pylint: disable=broad-except
                logger.exception("Insight job failed; continuing with the next job")
                processed = False
            if not processed:
                await asyncio.sleep(self._poll_interval)

    async def run_once(self) -> bool:
        """Process a single queued job; return ``False`` when the queue is empty."""
        payload = self._dequeue()
        if payload is None:
            return False
        await self._process(payload)
        return True

    def _dequeue(self) -> Optional[InsightJobPayload]:
        message = self._queue.dequeue()
        if message is None:
            return None
        return message  # type: ignore[return-value]

    async def _process(self, payload: InsightJobPayload) -> Dict[str, Dict[str, str]]:
        job_id = payload["job_id"]
        logger.info("Dequeued insight job", extra={"job_id": job_id})
        types: List[InsightType] = []
        for value in payload["types"]:
            try:
                types.append(InsightType(value))
            except ValueError:
                logger.warning("Ignoring unknown insight type %r in job %s", value, job_id)
        results = await generate_user_insights(
            self._pipeline,
            self._store,
            payload["user_id"],
            types,
            payload.get("trigger") or "queue",
        )
        logger.info("Completed insight job", extra={"job_id": job_id})
        return results


async def main(poll_interval_seconds: float = 1.0) -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    store = SQLiteDocumentStore(settings.database_path)
    worker = InsightQueueWorker(
        queue_client=SQLiteQueueClient(settings.database_path),
        store=store,
        pipeline=build_pipeline(settings, store=store),
        poll_interval_seconds=poll_interval_seconds,
    )
    await worker.run_forever()


if __name__ == "__main__":  # pragma: no cover - manual execution path
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Insight queue worker stopped")
