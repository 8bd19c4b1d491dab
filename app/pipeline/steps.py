"""Step implementations used by the summary generation workflow."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.clients.model_gateway import ChatMessage, ChatOptions, ModelGateway
from app.clients.protocols import SummaryRecordStore
from app.core.config import GenerationSettings
from app.schemas.jobs import SummaryJobPayload
from app.schemas.summary import CanonicalSummary, SummaryRecord, SummaryStatus
from app.services.prompt_builder import build_messages
from app.services.response_parser import ResponseParser

logger = logging.getLogger(__name__)

TRADE_FALLBACK_TEXT = "Trade analysis (fallback)."
SUMMARY_FALLBACK_TEXT = "Summary (fallback)."
PARSE_FAILURE_MESSAGE = "Failed to parse model output"

_TRADE_OPTIONS = {"temperature": 0.3, "max_tokens": 500}
_PERIOD_OPTIONS = {"temperature": 0.2, "max_tokens": 1200}


class SummaryNotFoundError(LookupError):
    """The job references a record that does not exist; never retryable."""


def truncate_error(message: str, limit: int = 1024) -> str:
    return message if len(message) <= limit else message[:limit]


class GenerationSteps:
    """Facade over the store, prompt builder, gateway and parser."""

    def __init__(
        self,
        *,
        store: SummaryRecordStore,
        gateway: ModelGateway,
        parser: ResponseParser,
        settings: GenerationSettings,
        default_model: str,
        timeout_ms: int = 120_000,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._parser = parser
        self._settings = settings
        self._default_model = default_model
        self._timeout_ms = timeout_ms

    def load_record(self, summary_id: str) -> SummaryRecord:
        record = self._store.find_by_id(summary_id)
        if record is None:
            raise SummaryNotFoundError(f"Summary {summary_id} not found")
        return record

    def resolve_model(self, job: SummaryJobPayload, record: SummaryRecord) -> str:
        return job.get("model") or record.model or self._default_model

    def build_messages(self, job: SummaryJobPayload, record: SummaryRecord) -> list[ChatMessage]:
        snapshot = job.get("input_snapshot") or record.input_snapshot
        return build_messages(job.get("kind") or record.kind, snapshot)

    def generation_options(self, kind: str) -> ChatOptions:
        params = _TRADE_OPTIONS if kind == "trade" else _PERIOD_OPTIONS
        return ChatOptions(timeout_ms=self._timeout_ms, **params)

    async def call_model(
        self, model: str, messages: list[ChatMessage], options: ChatOptions
    ) -> str:
        return await self._gateway.call_chat(model, messages, options)

    def checkpoint(self, summary_id: str, raw_response: str, model: str) -> None:
        """Persist the raw model output before anything else can fail."""
        self._store.update_fields(
            summary_id,
            {
                "raw_response": raw_response,
                "model": model,
                "status": SummaryStatus.PROCESSING,
            },
        )

    def parse(self, raw_response: str) -> Optional[CanonicalSummary]:
        return self._parser.parse(raw_response)

    def finalize(
        self, summary_id: str, kind: str, parsed: Optional[CanonicalSummary]
    ) -> SummaryRecord:
        fields: Dict[str, Any]
        if parsed is None:
            logger.warning(
                "Model output for summary %s could not be parsed; storing fallback text.",
                summary_id,
                extra={"summary_id": summary_id},
            )
            fields = {
                "summary_text": TRADE_FALLBACK_TEXT if kind == "trade" else SUMMARY_FALLBACK_TEXT,
                "plus_points": [],
                "minus_points": [],
                "ai_suggestions": [],
                "weekly_stats": None,
            }
            if self._settings.parse_failure_status == "failed":
                fields["status"] = SummaryStatus.FAILED
                fields["error_message"] = PARSE_FAILURE_MESSAGE
            else:
                fields["status"] = SummaryStatus.READY
                fields["error_message"] = None
        else:
            fields = parsed.model_dump()
            fields["status"] = SummaryStatus.READY
            fields["error_message"] = None

        fields["generated_at"] = datetime.now(timezone.utc)
        self._store.update_fields(summary_id, fields)
        return self.load_record(summary_id)

    def mark_failed(self, summary_id: str, error: BaseException) -> None:
        """Record the failure without touching the stored raw response."""
        message = str(error) or type(error).__name__
        self._store.update_fields(
            summary_id,
            {
                "status": SummaryStatus.FAILED,
                "error_message": truncate_error(message, self._settings.error_message_limit),
            },
        )


__all__ = [
    "GenerationSteps",
    "PARSE_FAILURE_MESSAGE",
    "SUMMARY_FALLBACK_TEXT",
    "SummaryNotFoundError",
    "TRADE_FALLBACK_TEXT",
    "truncate_error",
]
