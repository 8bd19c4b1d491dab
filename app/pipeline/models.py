"""
State shared across the summary generation workflow.
"""

from __future__ import annotations

from typing import List, Optional, TypedDict

from app.clients.model_gateway import ChatMessage, ChatOptions
from app.schemas.jobs import SummaryJobPayload
from app.schemas.summary import CanonicalSummary, SummaryRecord


class GenerationState(TypedDict, total=False):
    """State tracked inside the LangGraph workflow."""

    job: SummaryJobPayload
    record: SummaryRecord
    model: str
    messages: List[ChatMessage]
    options: ChatOptions
    raw_response: str
    parsed: Optional[CanonicalSummary]
    result: SummaryRecord


__all__ = ["GenerationState"]
