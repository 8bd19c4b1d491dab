try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

import httpx
import pytest

from app.core.config import GenerationSettings, QueueSettings
from app.main import app
from app.pipeline import GenerationSteps, SummaryJobProcessor
from app.schemas.jobs import QueueDepth
from app.services.response_parser import ResponseParser
from app.services.summary_dispatch import InlineSummaryProcessor, SummaryDispatchService

GOOD_WEEK = json.dumps(
    {"summaryText": "Good week", "plusPoints": ["A"], "minusPoints": [], "aiSuggestions": ["B"]}
)


class StubGateway:
    async def call_chat(self, model, messages, options=None) -> str:
        return GOOD_WEEK


class ConfigurableQueue:
    def __init__(self) -> None:
        self.backlog = 0
        self.enqueued: list[dict] = []

    def enqueue(self, payload, retry_policy=None) -> str:
        self.enqueued.append(payload)
        return "job-1"

    def depth(self) -> QueueDepth:
        return QueueDepth(waiting=self.backlog, active=0)


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture()
def overrides(record_store):
    from app import dependencies

    queue = ConfigurableQueue()
    steps = GenerationSteps(
        store=record_store,
        gateway=StubGateway(),
        parser=ResponseParser(),
        settings=GenerationSettings(),
        default_model="default-model",
    )
    service = SummaryDispatchService(
        store=record_store,
        queue=queue,
        inline_processor=InlineSummaryProcessor(SummaryJobProcessor(steps)),
        settings=QueueSettings(inline_threshold=5),
        default_model="default-model",
    )

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_dispatch_service: lambda: service,
            dependencies.get_record_store: lambda: record_store,
        }
    )

    yield queue, record_store

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
    assert response.json() == {"status": "ok"}


async def test_inline_generation_returns_created_record(overrides, client):
    response = await client.post(
        "/api/summaries",
        json={"kind": "weekly", "ownerId": "user-1", "inputSnapshot": {"totalTrades": 3}},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["mode"] == "inline"
    assert body["accepted"] is False
    assert body["status"] == "ready"
    assert body["record"]["summaryText"] == "Good week"
    assert body["record"]["plusPoints"] == ["A"]


async def test_busy_backlog_returns_accepted(overrides, client):
    queue, store = overrides
    queue.backlog = 9

    response = await client.post(
        "/api/summaries",
        json={"kind": "trade", "ownerId": "user-2", "inputSnapshot": {"symbol": "TCS"}},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["mode"] == "queued"
    assert body["accepted"] is True
    assert body["status"] == "draft"
    assert queue.enqueued[0]["summary_id"] == body["summaryId"]
    assert store.find_by_id(body["summaryId"]).owner_id == "user-2"


async def test_invalid_kind_is_rejected(overrides, client):
    response = await client.post(
        "/api/summaries", json={"kind": "yearly", "ownerId": "user-1"}
    )

    assert response.status_code == 422


async def test_get_summary_scoped_to_owner(overrides, client, make_record):
    make_record("sum-9", kind="monthly", owner_id="user-1")

    found = await client.get("/api/summaries/sum-9", params={"owner_id": "user-1"})
    other_owner = await client.get("/api/summaries/sum-9", params={"owner_id": "user-2"})
    missing = await client.get("/api/summaries/nope", params={"owner_id": "user-1"})

    assert found.status_code == 200
    assert found.json()["kind"] == "monthly"
    assert found.json()["ownerId"] == "user-1"
    assert other_owner.status_code == 404
    assert missing.status_code == 404
