"""Pytest configuration shared across the suite."""

from datetime import datetime, timezone

import pytest

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from finance_app.clients import SQLiteDocumentStore

FIXED_NOW = datetime(2025, 3, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def store(tmp_path) -> SQLiteDocumentStore:
    return SQLiteDocumentStore(str(tmp_path / "finance.db"))


@pytest.fixture
def clock():
    """A mutable clock; tests advance it through ``clock.now``."""

    class _Clock:
        def __init__(self) -> None:
            self.now = FIXED_NOW

        def __call__(self) -> datetime:
            return self.now

    return _Clock()
