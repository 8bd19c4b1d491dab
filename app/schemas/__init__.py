"""Public schema exports."""

from .jobs import ClaimedJob, QueueDepth, RetryPolicy, SummaryJobPayload
from .summary import (
    CanonicalSummary,
    DateRange,
    SummaryGenerationRequest,
    SummaryGenerationResult,
    SummaryKind,
    SummaryRecord,
    SummaryStatus,
    advance_status,
)

__all__ = [
    "CanonicalSummary",
    "ClaimedJob",
    "DateRange",
    "QueueDepth",
    "RetryPolicy",
    "SummaryGenerationRequest",
    "SummaryGenerationResult",
    "SummaryJobPayload",
    "SummaryKind",
    "SummaryRecord",
    "SummaryStatus",
    "advance_status",
]
