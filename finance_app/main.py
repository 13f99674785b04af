"""
FastAPI application entrypoint for the finance insights service.
"""

from __future__ import annotations

from fastapi import FastAPI

from finance_app.api.routes import router as api_router
from finance_app.core.config import get_settings
from finance_app.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Finance Insights Agent",
        version="0.1.0",
        description="REST API for cached, structured AI insights on personal finances.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
