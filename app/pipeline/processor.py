"""
Shared job execution used by the inline path, the local worker and Lambda.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from app.clients.sqlite_store import SummaryRecordNotFoundError
from app.pipeline.graph import create_generation_graph
from app.pipeline.steps import GenerationSteps, SummaryNotFoundError
from app.schemas.jobs import SummaryJobPayload
from app.schemas.summary import SummaryRecord

logger = logging.getLogger(__name__)


class SummaryJobProcessor:
    """Run one summary job end to end.

    On a retryable failure the record is marked ``failed`` with the error
    message and the exception is re-raised so the caller can schedule a
    retry. A missing record raises :class:`SummaryNotFoundError` and leaves
    storage untouched.
    """

    def __init__(self, steps: GenerationSteps, graph: Optional[Any] = None) -> None:
        self._steps = steps
        self._graph = graph or create_generation_graph(steps)

    async def process(self, payload: SummaryJobPayload) -> SummaryRecord:
        summary_id = payload["summary_id"]
        logger.info("Starting summary job", extra={"summary_id": summary_id})
        try:
            final_state = await self._graph.ainvoke({"job": payload})
        except SummaryNotFoundError:
            logger.error("Summary record missing for job", extra={"summary_id": summary_id})
            raise
        except SummaryRecordNotFoundError as exc:
            logger.error("Summary record disappeared during job", extra={"summary_id": summary_id})
            raise SummaryNotFoundError(str(exc)) from exc
        except Exception as exc:
            logger.exception("Summary job failed", extra={"summary_id": summary_id})
            self._record_failure(summary_id, exc)
            raise

        record: SummaryRecord = final_state["result"]
        logger.info(
            "Completed summary job",
            extra={"summary_id": summary_id, "status": record.status.value},
        )
        return record

    def _record_failure(self, summary_id: str, error: BaseException) -> None:
        try:
            self._steps.mark_failed(summary_id, error)
        except Exception:
            logger.exception(
                "Could not mark summary as failed", extra={"summary_id": summary_id}
            )


__all__ = ["SummaryJobProcessor", "SummaryNotFoundError"]
