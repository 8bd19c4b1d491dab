try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

import pytest

from app.clients.model_gateway import ModelGateway
from app.core.config import GenerationSettings, ModelSettings
from app.pipeline import GenerationSteps, SummaryJobProcessor, SummaryNotFoundError
from app.pipeline.steps import PARSE_FAILURE_MESSAGE
from app.schemas.summary import SummaryStatus
from app.services.response_parser import ResponseParser

GOOD_WEEK = json.dumps(
    {"summaryText": "Good week", "plusPoints": ["A"], "minusPoints": [], "aiSuggestions": ["B"]}
)


class StubGateway:
    def __init__(self, reply: str = GOOD_WEEK, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    async def call_chat(self, model, messages, options=None) -> str:
        self.calls.append({"model": model, "messages": messages, "options": options})
        if self.error is not None:
            raise self.error
        return self.reply


class FaultAfterCheckpointStore:
    """Delegates to a real store but fails the final write."""

    def __init__(self, inner) -> None:
        self._inner = inner

    def create(self, record):
        return self._inner.create(record)

    def find_by_id(self, summary_id):
        return self._inner.find_by_id(summary_id)

    def update_fields(self, summary_id, fields):
        if "generated_at" in fields:
            raise RuntimeError("disk full")
        return self._inner.update_fields(summary_id, fields)


def _processor(store, gateway, **generation) -> SummaryJobProcessor:
    steps = GenerationSteps(
        store=store,
        gateway=gateway,
        parser=ResponseParser(),
        settings=GenerationSettings(**generation),
        default_model="default-model",
        timeout_ms=120_000,
    )
    return SummaryJobProcessor(steps)


def _payload(record, model: str = "") -> dict:
    return {
        "summary_id": record.id,
        "kind": record.kind,
        "model": model,
        "input_snapshot": record.input_snapshot,
        "owner_id": record.owner_id,
    }


@pytest.mark.asyncio
async def test_parsed_response_finalizes_record(record_store, make_record) -> None:
    record = make_record("sum-1", kind="weekly", input_snapshot={"totalTrades": 5})
    gateway = StubGateway()

    result = await _processor(record_store, gateway).process(_payload(record))

    assert result.status is SummaryStatus.READY
    assert result.summary_text == "Good week"
    assert result.plus_points == ["A"]
    assert result.ai_suggestions == ["B"]
    assert result.raw_response == GOOD_WEEK
    assert result.model == "default-model"
    assert result.generated_at is not None
    stored = record_store.find_by_id("sum-1")
    assert stored.status is SummaryStatus.READY
    options = gateway.calls[0]["options"]
    assert (options.temperature, options.max_tokens, options.timeout_ms) == (0.2, 1200, 120_000)


@pytest.mark.asyncio
async def test_trade_options_and_model_override(record_store, make_record) -> None:
    record = make_record("sum-1", kind="trade")
    gateway = StubGateway()

    result = await _processor(record_store, gateway).process(_payload(record, model="custom/model"))

    call = gateway.calls[0]
    assert call["model"] == "custom/model"
    assert (call["options"].temperature, call["options"].max_tokens) == (0.3, 500)
    assert call["messages"][-1]["content"].startswith("Analyze this trade")
    assert result.model == "custom/model"


@pytest.mark.asyncio
async def test_processing_twice_yields_same_canonical_fields(record_store, make_record) -> None:
    record = make_record("sum-1")
    processor = _processor(record_store, StubGateway())

    first = await processor.process(_payload(record))
    second = await processor.process(_payload(record))

    assert first.canonical() == second.canonical()
    assert second.status is SummaryStatus.READY


@pytest.mark.asyncio
async def test_missing_credential_stores_fallback_content(record_store, make_record) -> None:
    record = make_record("sum-1", kind="trade")
    gateway = ModelGateway(ModelSettings(api_key=None))

    result = await _processor(record_store, gateway).process(_payload(record))

    assert result.status is SummaryStatus.READY
    assert "fallback" in result.summary_text
    assert result.summary_text == "Trade analysis (fallback)."
    assert result.plus_points == ["Trade recorded", "Position size okay"]


@pytest.mark.asyncio
async def test_unparseable_output_uses_fallback_text_and_stays_ready(record_store, make_record) -> None:
    record = make_record("sum-1", kind="monthly", input_snapshot={"totalTrades": 0})

    result = await _processor(record_store, StubGateway("total garbage")).process(_payload(record))

    assert result.status is SummaryStatus.READY
    assert result.summary_text == "Summary (fallback)."
    assert result.plus_points == []
    assert result.raw_response == "total garbage"
    assert result.error_message is None


@pytest.mark.asyncio
async def test_parse_failure_policy_can_mark_failed(record_store, make_record) -> None:
    record = make_record("sum-1", kind="trade")
    processor = _processor(record_store, StubGateway("not json"), parse_failure_status="failed")

    result = await processor.process(_payload(record))

    assert result.status is SummaryStatus.FAILED
    assert result.summary_text == "Trade analysis (fallback)."
    assert result.error_message == PARSE_FAILURE_MESSAGE


@pytest.mark.asyncio
async def test_raw_response_survives_fault_after_checkpoint(record_store, make_record) -> None:
    record = make_record("sum-1")
    faulty = FaultAfterCheckpointStore(record_store)

    with pytest.raises(RuntimeError, match="disk full"):
        await _processor(faulty, StubGateway()).process(_payload(record))

    stored = record_store.find_by_id("sum-1")
    assert stored.raw_response == GOOD_WEEK
    assert stored.status is SummaryStatus.FAILED
    assert stored.error_message == "disk full"


@pytest.mark.asyncio
async def test_unexpected_error_marks_failed_with_truncated_message(record_store, make_record) -> None:
    record = make_record("sum-1")
    gateway = StubGateway(error=RuntimeError("x" * 5000))

    with pytest.raises(RuntimeError):
        await _processor(record_store, gateway).process(_payload(record))

    stored = record_store.find_by_id("sum-1")
    assert stored.status is SummaryStatus.FAILED
    assert len(stored.error_message) == 1024
    assert stored.raw_response == ""


@pytest.mark.asyncio
async def test_missing_record_is_permanent(record_store) -> None:
    gateway = StubGateway()
    payload = {
        "summary_id": "ghost",
        "kind": "trade",
        "model": "",
        "input_snapshot": {},
        "owner_id": "user-1",
    }

    with pytest.raises(SummaryNotFoundError):
        await _processor(record_store, gateway).process(payload)

    assert gateway.calls == []
    assert record_store.find_by_id("ghost") is None
