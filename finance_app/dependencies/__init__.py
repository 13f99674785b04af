"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_document_store,
    get_insight_pipeline,
    get_insight_queue_service,
    get_queue_client,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_document_store",
    "get_insight_pipeline",
    "get_insight_queue_service",
    "get_queue_client",
]
