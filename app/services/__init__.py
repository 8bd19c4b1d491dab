"""Service layer exports."""

from .prompt_builder import build_messages
from .response_parser import ResponseParser
from .summary_dispatch import (
    DispatchMode,
    InlineSummaryProcessor,
    SummaryDispatchService,
    decide_dispatch,
)

__all__ = [
    "DispatchMode",
    "InlineSummaryProcessor",
    "ResponseParser",
    "SummaryDispatchService",
    "build_messages",
    "decide_dispatch",
]
