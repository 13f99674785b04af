"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from agents.insight_pipeline.pipeline import InsightPipeline, build_pipeline
from finance_app.clients import SQLiteDocumentStore, SQLiteQueueClient
from finance_app.core.config import get_settings
from finance_app.services import InsightQueueService


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_document_store() -> SQLiteDocumentStore:
    """Provide the shared SQLite document store."""
    return SQLiteDocumentStore(_settings().database_path)


@lru_cache()
def get_queue_client() -> SQLiteQueueClient:
    """Provide SQLite-backed queue client."""
    return SQLiteQueueClient(_settings().database_path)


@lru_cache()
def get_insight_pipeline() -> InsightPipeline:
    """Provide the process-wide insight pipeline (one single-flight registry)."""
    return build_pipeline(_settings(), store=get_document_store())


def get_insight_queue_service() -> InsightQueueService:
    """Build an insight queue service."""
    return InsightQueueService(queue_client=get_queue_client())


__all__ = [
    "get_document_store",
    "get_insight_pipeline",
    "get_insight_queue_service",
    "get_queue_client",
]
