"""Structural interfaces for the record store and job queue backends."""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from app.schemas.jobs import QueueDepth, RetryPolicy, SummaryJobPayload
from app.schemas.summary import SummaryRecord


class SummaryRecordStore(Protocol):
    """Create/read/update-by-id capability for summary records."""

    def create(self, record: SummaryRecord) -> SummaryRecord: ...

    def update_fields(self, summary_id: str, fields: Dict[str, Any]) -> None: ...

    def find_by_id(self, summary_id: str) -> Optional[SummaryRecord]: ...


class JobQueue(Protocol):
    """Durable enqueue plus backlog inspection."""

    def enqueue(
        self, payload: SummaryJobPayload, retry_policy: RetryPolicy | None = None
    ) -> str: ...

    def depth(self) -> QueueDepth: ...


__all__ = ["JobQueue", "SummaryRecordStore"]
