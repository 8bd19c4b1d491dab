"""Summary generation workflow shared by every execution path."""

from .processor import SummaryJobProcessor
from .steps import GenerationSteps, SummaryNotFoundError

__all__ = ["GenerationSteps", "SummaryJobProcessor", "SummaryNotFoundError"]
