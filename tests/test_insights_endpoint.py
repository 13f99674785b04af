try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone

import httpx
import pytest

from agents.insight_pipeline.models import NoDataError
from finance_app.clients import DocumentStoreError, GenerationError, SQLiteQueueClient
from finance_app.main import app
from finance_app.schemas import InsightType, PipelineResult
from finance_app.services import InsightQueueService

GENERATED_AT = datetime(2025, 3, 15, 10, 30, tzinfo=timezone.utc)


class ConfigurablePipeline:
    def __init__(self) -> None:
        self.error: Exception | None = None
        self.calls = []

    def _result(self, from_cache: bool) -> PipelineResult:
        return PipelineResult(
            content="## Overview",
            generated_at=GENERATED_AT,
            data_points=4,
            from_cache=from_cache,
        )

    async def get_or_generate(self, user_id, insight_type):
        self.calls.append(("get", user_id, insight_type, None))
        if self.error is not None:
            raise self.error
        return self._result(from_cache=True)

    async def run(self, user_id, insight_type, options=None):
        self.calls.append(("run", user_id, insight_type, options))
        if self.error is not None:
            raise self.error
        return self._result(from_cache=False)


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture()
def overrides(tmp_path):
    from finance_app import dependencies

    pipeline = ConfigurablePipeline()
    queue_client = SQLiteQueueClient(str(tmp_path / "queue.db"))

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_insight_pipeline: lambda: pipeline,
            dependencies.get_insight_queue_service: lambda: InsightQueueService(queue_client),
        }
    )

    yield pipeline, queue_client

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(overrides):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client


async def test_healthcheck(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "environment" in response.json()


async def test_get_insight_returns_pipeline_result(overrides, client):
    pipeline, _ = overrides

    response = await client.get(
        "/api/insights", params={"user_id": "user-1", "type": "spending_analysis"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["content"] == "## Overview"
    assert body["from_cache"] is True
    assert body["data_points"] == 4
    assert pipeline.calls == [("get", "user-1", InsightType.SPENDING_ANALYSIS, None)]


async def test_get_insight_rejects_unknown_type(overrides, client):
    pipeline, _ = overrides

    response = await client.get("/api/insights", params={"user_id": "user-1", "type": "horoscope"})

    assert response.status_code == 400
    assert "spending_analysis" in response.json()["detail"]
    assert pipeline.calls == []


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (NoDataError("user-1", InsightType.SPENDING_ANALYSIS), 422),
        (GenerationError("quota exceeded"), 503),
        (DocumentStoreError("disk full"), 500),
    ],
)
async def test_get_insight_maps_pipeline_errors(overrides, client, error, status):
    pipeline, _ = overrides
    pipeline.error = error

    response = await client.get(
        "/api/insights", params={"user_id": "user-1", "type": "spending_analysis"}
    )

    assert response.status_code == status


async def test_post_insight_forces_regeneration(overrides, client):
    pipeline, _ = overrides

    response = await client.post(
        "/api/insights", json={"user_id": "user-1", "type": "tax_optimization"}
    )

    assert response.status_code == 200
    assert response.json()["from_cache"] is False
    kind, _, insight_type, options = pipeline.calls[0]
    assert kind == "run"
    assert insight_type is InsightType.TAX_OPTIMIZATION
    assert options.force is True


async def test_post_insight_generation_failure_is_503(overrides, client):
    pipeline, _ = overrides
    pipeline.error = GenerationError("model unavailable")

    response = await client.post(
        "/api/insights", json={"user_id": "user-1", "type": "weekly_budget"}
    )

    assert response.status_code == 503
    assert "model unavailable" in response.json()["detail"]


async def test_post_insight_requires_user_id(client):
    response = await client.post("/api/insights", json={"user_id": "", "type": "weekly_budget"})

    assert response.status_code == 422


async def test_batch_defaults_to_every_type(overrides, client):
    _, queue_client = overrides

    response = await client.post("/api/insights/batch", json={"user_id": "user-1"})

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "queued"
    assert body["types"] == InsightType.values()
    payload = queue_client.dequeue()
    assert payload["job_id"] == body["job_id"]
    assert payload["trigger"] == "manual"


async def test_batch_rejects_unknown_types(overrides, client):
    _, queue_client = overrides

    response = await client.post(
        "/api/insights/batch", json={"user_id": "user-1", "types": ["weekly_budget", "nope"]}
    )

    assert response.status_code == 400
    assert queue_client.pending_count() == 0
