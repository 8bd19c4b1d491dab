"""
Decide between inline generation and the background queue, and submit jobs.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from app.clients.protocols import JobQueue, SummaryRecordStore
from app.core.config import QueueSettings
from app.schemas.jobs import QueueDepth, RetryPolicy, SummaryJobPayload
from app.schemas.summary import (
    SummaryGenerationRequest,
    SummaryGenerationResult,
    SummaryRecord,
    SummaryStatus,
)

if TYPE_CHECKING:
    from app.pipeline.processor import SummaryJobProcessor

logger = logging.getLogger(__name__)


class DispatchMode(str, Enum):
    INLINE = "inline"
    QUEUED = "queued"


def decide_dispatch(current_backlog_depth: int, threshold: int) -> DispatchMode:
    """Run inline only while the backlog is strictly below ``threshold``."""
    if current_backlog_depth < threshold:
        return DispatchMode.INLINE
    return DispatchMode.QUEUED


class InlineSummaryProcessor:
    """Run the shared pipeline in the request path, reporting errors as values."""

    def __init__(self, processor: "SummaryJobProcessor") -> None:
        self._processor = processor

    async def run(self, payload: SummaryJobPayload) -> Union[SummaryRecord, Exception]:
        try:
            return await self._processor.process(payload)
        except Exception as exc:
            logger.warning(
                "Inline generation failed for summary %s: %s",
                payload["summary_id"],
                exc,
                extra={"summary_id": payload["summary_id"]},
            )
            return exc


class SummaryDispatchService:
    """Create summary records and route their generation."""

    def __init__(
        self,
        *,
        store: SummaryRecordStore,
        queue: JobQueue,
        inline_processor: InlineSummaryProcessor,
        settings: QueueSettings,
        default_model: str,
    ) -> None:
        self._store = store
        self._queue = queue
        self._inline = inline_processor
        self._settings = settings
        self._default_model = default_model

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            attempts=self._settings.max_attempts,
            backoff_base_ms=self._settings.backoff_base_ms,
        )

    async def submit(self, request: SummaryGenerationRequest) -> SummaryGenerationResult:
        """Create a draft, then generate it inline or hand it to the queue.

        Queue outages never reach the caller: an unreadable backlog means the
        job runs inline, and a job that can be neither generated nor enqueued
        is reported with the record in its stored state.
        """
        record = self._store.create(
            SummaryRecord(
                id=uuid.uuid4().hex,
                owner_id=request.owner_id,
                kind=request.kind,
                date_range=request.date_range,
                input_snapshot=request.input_snapshot,
                model=request.model or self._default_model,
            )
        )
        payload: SummaryJobPayload = {
            "summary_id": record.id,
            "kind": record.kind,
            "model": record.model or self._default_model,
            "input_snapshot": record.input_snapshot,
            "owner_id": record.owner_id,
        }

        depth = self._read_depth(record.id)
        if depth is None:
            mode = DispatchMode.INLINE
        else:
            mode = decide_dispatch(depth.total, self._settings.inline_threshold)
        logger.info(
            "Dispatching summary %s (%s, backlog=%s)",
            record.id,
            mode.value,
            depth.total if depth is not None else "unknown",
            extra={"summary_id": record.id, "mode": mode.value},
        )

        if mode is DispatchMode.QUEUED:
            job_id = self._enqueue(payload)
            if job_id is not None:
                return self._accepted(record.id)
            logger.warning(
                "Queue unavailable; generating summary %s inline", record.id,
                extra={"summary_id": record.id},
            )

        outcome = await self._inline.run(payload)
        if isinstance(outcome, SummaryRecord):
            return self._completed(outcome)

        if mode is DispatchMode.INLINE:
            logger.info(
                "Falling back to the queue for summary %s", record.id,
                extra={"summary_id": record.id},
            )
            if self._enqueue(payload) is not None:
                return self._accepted(record.id)

        logger.error(
            "Summary %s could not be generated or enqueued", record.id,
            extra={"summary_id": record.id},
        )
        current = self._store.find_by_id(record.id) or record
        return self._completed(current)

    def _read_depth(self, summary_id: str) -> Optional[QueueDepth]:
        try:
            return self._queue.depth()
        except Exception as exc:
            logger.warning(
                "Could not read queue depth for summary %s: %s", summary_id, exc,
                extra={"summary_id": summary_id},
            )
            return None

    def _enqueue(self, payload: SummaryJobPayload) -> Optional[str]:
        summary_id = payload["summary_id"]
        try:
            job_id = self._queue.enqueue(payload, self.retry_policy)
        except Exception:
            logger.exception(
                "Enqueue failed for summary %s", summary_id,
                extra={"summary_id": summary_id},
            )
            return None
        logger.info(
            "Enqueued summary %s as job %s", summary_id, job_id,
            extra={"summary_id": summary_id, "job_id": job_id},
        )
        return job_id

    def _completed(self, record: SummaryRecord) -> SummaryGenerationResult:
        return SummaryGenerationResult(
            summary_id=record.id,
            status=record.status,
            mode="inline",
            accepted=False,
            record=record,
        )

    def _accepted(self, summary_id: str) -> SummaryGenerationResult:
        return SummaryGenerationResult(
            summary_id=summary_id,
            status=self._current_status(summary_id),
            mode="queued",
            accepted=True,
        )

    def _current_status(self, summary_id: str) -> SummaryStatus:
        current: Optional[SummaryRecord] = self._store.find_by_id(summary_id)
        return current.status if current else SummaryStatus.DRAFT


__all__ = [
    "DispatchMode",
    "InlineSummaryProcessor",
    "SummaryDispatchService",
    "decide_dispatch",
]
