"""
Queue-facing data structures shared by the dispatch service and the workers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, TypedDict


class SummaryJobPayload(TypedDict):
    """Minimal data a worker needs to (re)process a summary record."""

    summary_id: str
    kind: str
    model: str
    input_snapshot: Dict[str, Any]
    owner_id: str


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Delivery retry policy attached to each enqueued job."""

    attempts: int = 3
    backoff_strategy: Literal["exponential", "fixed"] = "exponential"
    backoff_base_ms: int = 2000

    def backoff_ms(self, attempts_made: int) -> int:
        """Delay before the next delivery after ``attempts_made`` failures."""
        if attempts_made < 1:
            return 0
        if self.backoff_strategy == "fixed":
            return self.backoff_base_ms
        return self.backoff_base_ms * 2 ** (attempts_made - 1)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "attempts": self.attempts,
            "backoffStrategy": self.backoff_strategy,
            "backoffBaseMs": self.backoff_base_ms,
        }


@dataclass(frozen=True, slots=True)
class QueueDepth:
    """Point-in-time backlog snapshot."""

    waiting: int
    active: int

    @property
    def total(self) -> int:
        return self.waiting + self.active


@dataclass(slots=True)
class ClaimedJob:
    """A job leased to one worker by the SQLite queue."""

    job_id: str
    payload: SummaryJobPayload
    attempt: int
    max_attempts: int
    last_error: Optional[str] = None


__all__ = ["ClaimedJob", "QueueDepth", "RetryPolicy", "SummaryJobPayload"]
