"""Local worker that processes queued summary jobs from SQLite."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from app.clients.local_queue import SQLiteQueueClient
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies.clients import get_sqlite_queue, get_summary_processor
from app.pipeline import SummaryJobProcessor, SummaryNotFoundError
from app.pipeline.steps import truncate_error
from app.schemas.jobs import ClaimedJob

logger = logging.getLogger(__name__)


class SummaryQueueWorker:
    """Poll the SQLite queue and execute summary jobs.

    With ``stalled_after_seconds`` set, the worker also returns jobs leased by
    crashed workers to the backlog, checking every half of that age.
    """

    def __init__(
        self,
        queue_client: SQLiteQueueClient,
        processor: SummaryJobProcessor,
        poll_interval_seconds: float = 1.0,
        name: str = "summary-worker",
        stalled_after_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._queue = queue_client
        self._processor = processor
        self._poll_interval = poll_interval_seconds
        self._name = name
        self._stalled_after = stalled_after_seconds
        self._clock = clock
        self._last_stalled_check: Optional[float] = None

    async def run_forever(self, stop_event: Optional[asyncio.Event] = None) -> None:
        while stop_event is None or not stop_event.is_set():
            processed = await self.run_once()
            if not processed:
                await asyncio.sleep(self._poll_interval)

    async def run_once(self) -> bool:
        """Claim and process at most one job; ``False`` when the queue had none due."""
        self.release_stalled_if_due()
        job = self._queue.claim()
        if job is None:
            return False
        await self._process(job)
        return True

    def release_stalled_if_due(self) -> int:
        if not self._stalled_after:
            return 0
        now = self._clock()
        if (
            self._last_stalled_check is not None
            and now - self._last_stalled_check < self._stalled_after / 2
        ):
            return 0
        self._last_stalled_check = now
        released = self._queue.release_stalled(self._stalled_after)
        if released:
            logger.info("%s released %s stalled jobs back to the queue", self._name, released)
        return released

    async def _process(self, job: ClaimedJob) -> None:
        summary_id = job.payload["summary_id"]
        logger.info(
            "%s claimed job %s (attempt %s/%s)",
            self._name,
            job.job_id,
            job.attempt,
            job.max_attempts,
            extra={"job_id": job.job_id, "summary_id": summary_id},
        )
        try:
            await self._processor.process(job.payload)
        except SummaryNotFoundError as exc:
            logger.error(
                "Dead-lettering job %s: %s", job.job_id, exc,
                extra={"job_id": job.job_id, "summary_id": summary_id},
            )
            self._queue.dead_letter(job.job_id, str(exc))
            return
        except Exception as exc:
            retrying = self._queue.fail(job.job_id, truncate_error(str(exc) or type(exc).__name__))
            if retrying:
                logger.warning(
                    "Job %s failed; retry scheduled", job.job_id,
                    extra={"job_id": job.job_id, "summary_id": summary_id},
                )
            else:
                logger.error(
                    "Job %s failed after %s attempts", job.job_id, job.attempt,
                    extra={"job_id": job.job_id, "summary_id": summary_id},
                )
            return

        self._queue.complete(job.job_id)
        logger.info(
            "Completed job %s", job.job_id,
            extra={"job_id": job.job_id, "summary_id": summary_id},
        )


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, debug_model_io=settings.model.debug_responses)
    if settings.queue.backend != "sqlite":
        logger.error(
            "SUMMARY_QUEUE_BACKEND=%s is drained by the Lambda handler, not this worker.",
            settings.queue.backend,
        )
        return

    queue_client = get_sqlite_queue()
    processor = get_summary_processor()
    workers = [
        SummaryQueueWorker(
            queue_client=queue_client,
            processor=processor,
            poll_interval_seconds=settings.queue.poll_interval_seconds,
            name=f"summary-worker-{index + 1}",
            stalled_after_seconds=settings.queue.stalled_after_seconds,
        )
        for index in range(settings.queue.worker_concurrency)
    ]
    logger.info("Starting %s summary workers", len(workers))
    await asyncio.gather(*(worker.run_forever() for worker in workers))


if __name__ == "__main__":  # pragma: no cover - manual execution path
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Summary queue worker stopped")
