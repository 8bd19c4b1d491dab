"""
Pydantic models for summary records and generation requests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SummaryKind = Literal["trade", "weekly", "monthly"]


class SummaryStatus(str, Enum):
    """Lifecycle of a summary record."""

    DRAFT = "draft"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


_STATUS_RANK = {
    SummaryStatus.DRAFT: 0,
    SummaryStatus.PROCESSING: 1,
    SummaryStatus.READY: 2,
    SummaryStatus.FAILED: 2,
}


def advance_status(current: SummaryStatus | str, target: SummaryStatus | str) -> SummaryStatus:
    """Return the status a record should hold after requesting ``target``.

    Statuses never move backwards; the two terminal states share a rank so a
    redelivered job may still turn ``failed`` into ``ready``.
    """
    current_status = SummaryStatus(current)
    target_status = SummaryStatus(target)
    if _STATUS_RANK[target_status] < _STATUS_RANK[current_status]:
        return current_status
    return target_status


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DateRange(_CamelModel):
    """Inclusive window covered by a period summary."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None


class CanonicalSummary(_CamelModel):
    """Normalized, always-complete structured result."""

    summary_text: str = ""
    plus_points: List[str] = Field(default_factory=list)
    minus_points: List[str] = Field(default_factory=list)
    ai_suggestions: List[str] = Field(default_factory=list)
    weekly_stats: Optional[Dict[str, Any]] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SummaryRecord(_CamelModel):
    """The persisted unit representing one generation request and its result."""

    id: str
    owner_id: str
    kind: SummaryKind
    date_range: Optional[DateRange] = None
    input_snapshot: Dict[str, Any] = Field(default_factory=dict)
    raw_response: str = ""
    summary_text: str = ""
    plus_points: List[str] = Field(default_factory=list)
    minus_points: List[str] = Field(default_factory=list)
    ai_suggestions: List[str] = Field(default_factory=list)
    weekly_stats: Optional[Dict[str, Any]] = None
    model: Optional[str] = None
    error_message: Optional[str] = None
    status: SummaryStatus = SummaryStatus.DRAFT
    generated_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def canonical(self) -> CanonicalSummary:
        return CanonicalSummary(
            summary_text=self.summary_text,
            plus_points=list(self.plus_points),
            minus_points=list(self.minus_points),
            ai_suggestions=list(self.ai_suggestions),
            weekly_stats=self.weekly_stats,
        )


class SummaryGenerationRequest(_CamelModel):
    """Request-layer input asking for a new summary."""

    kind: SummaryKind
    owner_id: str = Field(..., min_length=1)
    input_snapshot: Dict[str, Any] = Field(default_factory=dict)
    date_range: Optional[DateRange] = None
    model: Optional[str] = Field(
        None, description="Optional model override; the configured default otherwise."
    )


class SummaryGenerationResult(_CamelModel):
    """Outcome handed back to the request layer.

    Either a completed record (inline path) or an acceptance acknowledgement
    for asynchronous processing, never a bare transient failure.
    """

    summary_id: str
    status: SummaryStatus
    mode: Literal["inline", "queued"]
    accepted: bool = False
    record: Optional[SummaryRecord] = None


__all__ = [
    "CanonicalSummary",
    "DateRange",
    "SummaryGenerationRequest",
    "SummaryGenerationResult",
    "SummaryKind",
    "SummaryRecord",
    "SummaryStatus",
    "advance_status",
]
