"""Persisted insight cache with staleness and bounded history."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from finance_app.clients.document_store import DESCENDING, SQLiteDocumentStore
from finance_app.schemas import (
    AnalysisRecord,
    InsightSection,
    InsightType,
    SearchContext,
    StructuredPayload,
)

from .context import Clock, utc_now
from .models import CachedAnalysis

logger = logging.getLogger(__name__)

ANALYSES_COLLECTION = "ai_analyses"
DEFAULT_STALENESS = timedelta(hours=24)
DEFAULT_MAX_PER_TYPE = 5


def _timestamp(value: datetime) -> str:
    # Fixed-width UTC text keeps lexicographic order equal to time order.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class InsightCache:
    """Read the newest analysis per (user, type) and persist new ones."""

    def __init__(
        self,
        store: SQLiteDocumentStore,
        *,
        clock: Clock = utc_now,
        staleness: timedelta = DEFAULT_STALENESS,
        max_per_type: int = DEFAULT_MAX_PER_TYPE,
    ) -> None:
        if max_per_type < 1:
            raise ValueError("max_per_type must be at least 1")
        self._store = store
        self._clock = clock
        self._staleness = staleness
        self._max_per_type = max_per_type

    @property
    def max_per_type(self) -> int:
        return self._max_per_type

    async def get_cached(
        self, user_id: str, insight_type: InsightType
    ) -> Optional[CachedAnalysis]:
        document = await self._store.find_one(
            ANALYSES_COLLECTION,
            {"user_id": user_id, "type": insight_type.value},
            sort=("generated_at", DESCENDING),
        )
        if document is None:
            return None
        record = AnalysisRecord.model_validate(document)
        return CachedAnalysis(
            record=record,
            stale=record.is_stale(self._clock(), self._staleness),
        )

    async def persist(
        self,
        user_id: str,
        insight_type: InsightType,
        content: str,
        data_points: int,
        *,
        sections: Optional[List[InsightSection]] = None,
        search_context: Optional[SearchContext] = None,
        structured_data: Optional[StructuredPayload] = None,
    ) -> AnalysisRecord:
        """Insert a new analysis and prune history beyond ``max_per_type``.

        The insert is not undone if pruning fails.
        """
        now = self._clock()
        document: Dict[str, Any] = {
            "user_id": user_id,
            "type": insight_type.value,
            "content": content,
            "sections": [s.model_dump(exclude_none=True) for s in sections]
            if sections
            else None,
            "structured_data": structured_data.model_dump(mode="json")
            if structured_data
            else None,
            "generated_at": _timestamp(now),
            "data_points": data_points,
            "search_context": search_context.model_dump() if search_context else None,
            "created_at": _timestamp(now),
        }
        record_id = await self._store.insert_one(ANALYSES_COLLECTION, document)
        await self.prune(user_id, insight_type)
        return AnalysisRecord.model_validate({**document, "id": record_id})

    async def prune(self, user_id: str, insight_type: InsightType) -> int:
        filter_ = {"user_id": user_id, "type": insight_type.value}
        documents = await self._store.find(
            ANALYSES_COLLECTION, filter_, sort=("generated_at", DESCENDING)
        )
        excess = [doc["id"] for doc in documents[self._max_per_type :]]
        if not excess:
            return 0
        removed = await self._store.delete_many(
            ANALYSES_COLLECTION, {**filter_, "id": {"$in": excess}}
        )
        logger.info(
            "Pruned %d old analyses for user %s (%s)", removed, user_id, insight_type.value
        )
        return removed


__all__ = ["ANALYSES_COLLECTION", "InsightCache"]
