try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

import pytest

from app.core.config import GenerationSettings, QueueSettings
from app.pipeline import GenerationSteps, SummaryJobProcessor
from app.schemas.jobs import QueueDepth, RetryPolicy
from app.schemas.summary import SummaryGenerationRequest, SummaryStatus
from app.services.response_parser import ResponseParser
from app.services.summary_dispatch import (
    DispatchMode,
    InlineSummaryProcessor,
    SummaryDispatchService,
    decide_dispatch,
)

GOOD_WEEK = json.dumps(
    {"summaryText": "Good week", "plusPoints": ["A"], "minusPoints": [], "aiSuggestions": ["B"]}
)


class StubGateway:
    def __init__(self, reply: str = GOOD_WEEK, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls = 0

    async def call_chat(self, model, messages, options=None) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.reply


class RecordingQueue:
    def __init__(self, waiting: int = 0, active: int = 0) -> None:
        self._depth = QueueDepth(waiting=waiting, active=active)
        self.enqueued: list[tuple[dict, RetryPolicy]] = []

    def enqueue(self, payload, retry_policy=None) -> str:
        self.enqueued.append((payload, retry_policy))
        return f"job-{len(self.enqueued)}"

    def depth(self) -> QueueDepth:
        return self._depth


def _service(record_store, queue, gateway) -> SummaryDispatchService:
    steps = GenerationSteps(
        store=record_store,
        gateway=gateway,
        parser=ResponseParser(),
        settings=GenerationSettings(),
        default_model="default-model",
    )
    return SummaryDispatchService(
        store=record_store,
        queue=queue,
        inline_processor=InlineSummaryProcessor(SummaryJobProcessor(steps)),
        settings=QueueSettings(inline_threshold=5, max_attempts=3, backoff_base_ms=2000),
        default_model="default-model",
    )


def _request(kind: str = "weekly") -> SummaryGenerationRequest:
    return SummaryGenerationRequest(
        kind=kind,
        owner_id="user-1",
        input_snapshot={"totalTrades": 5, "totalPnL": 4200},
        date_range={"start": "2025-11-17T00:00:00Z", "end": "2025-11-23T23:59:59Z"},
    )


@pytest.mark.parametrize("threshold", [0, 1, 5, 10])
def test_decide_dispatch_inline_iff_depth_below_threshold(threshold) -> None:
    for depth in range(0, 15):
        expected = DispatchMode.INLINE if depth < threshold else DispatchMode.QUEUED
        assert decide_dispatch(depth, threshold) is expected


@pytest.mark.asyncio
async def test_small_backlog_generates_inline(record_store) -> None:
    queue = RecordingQueue(waiting=1, active=1)

    result = await _service(record_store, queue, StubGateway()).submit(_request())

    assert result.mode == "inline"
    assert result.accepted is False
    assert result.status is SummaryStatus.READY
    assert result.record.summary_text == "Good week"
    assert queue.enqueued == []
    stored = record_store.find_by_id(result.summary_id)
    assert stored.status is SummaryStatus.READY
    assert stored.owner_id == "user-1"
    assert stored.date_range.start is not None


@pytest.mark.asyncio
async def test_large_backlog_enqueues_with_retry_policy(record_store) -> None:
    queue = RecordingQueue(waiting=4, active=2)
    gateway = StubGateway()

    result = await _service(record_store, queue, gateway).submit(_request("monthly"))

    assert result.mode == "queued"
    assert result.accepted is True
    assert result.status is SummaryStatus.DRAFT
    assert result.record is None
    assert gateway.calls == 0
    payload, policy = queue.enqueued[0]
    assert payload == {
        "summary_id": result.summary_id,
        "kind": "monthly",
        "model": "default-model",
        "input_snapshot": {"totalTrades": 5, "totalPnL": 4200},
        "owner_id": "user-1",
    }
    assert policy == RetryPolicy(attempts=3, backoff_strategy="exponential", backoff_base_ms=2000)


@pytest.mark.asyncio
async def test_inline_failure_falls_back_to_queue(record_store) -> None:
    queue = RecordingQueue()
    gateway = StubGateway(error=RuntimeError("store hiccup"))

    result = await _service(record_store, queue, gateway).submit(_request("trade"))

    assert result.mode == "queued"
    assert result.accepted is True
    assert len(queue.enqueued) == 1
    assert queue.enqueued[0][0]["summary_id"] == result.summary_id
    stored = record_store.find_by_id(result.summary_id)
    assert stored.status is SummaryStatus.FAILED
    assert stored.error_message == "store hiccup"


@pytest.mark.asyncio
async def test_request_model_override_is_recorded(record_store) -> None:
    queue = RecordingQueue(waiting=10)
    request = _request()
    request.model = "custom/model"

    result = await _service(record_store, queue, StubGateway()).submit(request)

    assert queue.enqueued[0][0]["model"] == "custom/model"
    assert record_store.find_by_id(result.summary_id).model == "custom/model"


class UnavailableQueue(RecordingQueue):
    def __init__(
        self,
        *,
        depth_error: Exception | None = None,
        enqueue_error: Exception | None = None,
        waiting: int = 0,
    ) -> None:
        super().__init__(waiting=waiting)
        self.depth_error = depth_error
        self.enqueue_error = enqueue_error

    def enqueue(self, payload, retry_policy=None) -> str:
        if self.enqueue_error is not None:
            raise self.enqueue_error
        return super().enqueue(payload, retry_policy)

    def depth(self) -> QueueDepth:
        if self.depth_error is not None:
            raise self.depth_error
        return super().depth()


@pytest.mark.asyncio
async def test_unreadable_backlog_generates_inline(record_store) -> None:
    queue = UnavailableQueue(depth_error=ConnectionError("queue down"))

    result = await _service(record_store, queue, StubGateway()).submit(_request())

    assert result.mode == "inline"
    assert result.status is SummaryStatus.READY
    assert result.record.summary_text == "Good week"


@pytest.mark.asyncio
async def test_failed_inline_run_with_queue_down_returns_failed_record(record_store) -> None:
    queue = UnavailableQueue(
        depth_error=ConnectionError("queue down"),
        enqueue_error=ConnectionError("queue down"),
    )
    gateway = StubGateway(error=RuntimeError("store hiccup"))

    result = await _service(record_store, queue, gateway).submit(_request("trade"))

    assert result.mode == "inline"
    assert result.accepted is False
    assert result.status is SummaryStatus.FAILED
    assert result.record.error_message == "store hiccup"


@pytest.mark.asyncio
async def test_enqueue_failure_on_busy_backlog_generates_inline(record_store) -> None:
    queue = UnavailableQueue(waiting=9, enqueue_error=ConnectionError("queue down"))
    gateway = StubGateway()

    result = await _service(record_store, queue, gateway).submit(_request())

    assert gateway.calls == 1
    assert result.mode == "inline"
    assert result.status is SummaryStatus.READY
