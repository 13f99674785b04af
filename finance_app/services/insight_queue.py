"""
Service helpers for enqueuing batch insight generation jobs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from finance_app.clients import SQLiteQueueClient
from finance_app.schemas import InsightType


class InsightQueueService:
    """Queue batch regeneration jobs for the local insight worker."""

    def __init__(self, queue_client: SQLiteQueueClient) -> None:
        self._queue = queue_client

    def enqueue_generation(
        self, *, user_id: str, types: List[InsightType], trigger: str
    ) -> str:
        job_id = self._build_job_id(user_id)
        self._queue.enqueue(
            self._build_message_payload(
                job_id=job_id, user_id=user_id, types=types, trigger=trigger
            )
        )
        return job_id

    @staticmethod
    def _build_job_id(user_id: str) -> str:
        timestamp = datetime.now(tz=timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        return f"{user_id}-insights-{timestamp}"

    @staticmethod
    def _build_message_payload(
        *, job_id: str, user_id: str, types: List[InsightType], trigger: str
    ) -> Dict[str, Any]:
        return {
            "job_id": job_id,
            "user_id": user_id,
            "types": [insight_type.value for insight_type in types],
            "trigger": trigger,
            "requested_at": datetime.now(tz=timezone.utc).isoformat(),
        }


__all__ = ["InsightQueueService"]
