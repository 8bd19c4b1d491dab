"""
AWS Lambda entrypoint for processing summary jobs delivered by SQS.
"""

from __future__ import annotations

import asyncio
import json
import logging
from functools import lru_cache
from typing import Any, Dict, List, Tuple

from app.clients.aws_sqs import SQSQueueClient, retry_policy_from_attributes
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies.clients import get_sqs_queue, get_summary_processor
from app.pipeline import SummaryJobProcessor, SummaryNotFoundError
from app.schemas.jobs import RetryPolicy, SummaryJobPayload

logger = logging.getLogger(__name__)


@lru_cache()
def _bootstrap() -> Tuple[SummaryJobProcessor, SQSQueueClient]:
    """Initialize shared singletons for the Lambda runtime."""
    settings = get_settings()
    configure_logging(settings.log_level, debug_model_io=settings.model.debug_responses)
    return get_summary_processor(), get_sqs_queue()


async def process_records(
    records: List[Dict[str, Any]],
    processor: SummaryJobProcessor,
    queue: SQSQueueClient,
    default_policy: RetryPolicy | None = None,
) -> Dict[str, List[Dict[str, str]]]:
    """Process an SQS batch and report the messages that should be redelivered.

    Missing records, malformed bodies and exhausted jobs are dropped; every
    other failure is reported in ``batchItemFailures`` after its visibility
    timeout has been pushed out by the retry backoff.
    """
    default_policy = default_policy or RetryPolicy()
    failures: List[Dict[str, str]] = []

    for record in records:
        message_id = record.get("messageId", "")
        body = record.get("body")
        try:
            payload: SummaryJobPayload = json.loads(body) if body else None
        except ValueError:
            payload = None
        if not isinstance(payload, dict) or "summary_id" not in payload:
            logger.error("Dropping SQS message %s without a job payload", message_id)
            continue

        summary_id = payload["summary_id"]
        try:
            await processor.process(payload)
        except SummaryNotFoundError:
            logger.error(
                "Dropping message %s; summary %s no longer exists",
                message_id,
                summary_id,
                extra={"summary_id": summary_id},
            )
            continue
        except Exception:
            policy = retry_policy_from_attributes(
                record.get("messageAttributes") or {}, default_policy
            )
            receive_count = int(
                (record.get("attributes") or {}).get("ApproximateReceiveCount", 1)
            )
            if receive_count >= policy.attempts:
                logger.error(
                    "Summary %s failed after %s deliveries; giving up",
                    summary_id,
                    receive_count,
                    extra={"summary_id": summary_id},
                )
                continue
            try:
                queue.schedule_retry(
                    receipt_handle=record["receiptHandle"],
                    receive_count=receive_count,
                    retry_policy=policy,
                )
            except Exception:
                logger.exception(
                    "Could not delay redelivery of message %s", message_id,
                    extra={"summary_id": summary_id},
                )
            failures.append({"itemIdentifier": message_id})
            continue

        logger.info("Completed summary job", extra={"summary_id": summary_id})

    return {"batchItemFailures": failures}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    AWS Lambda handler invoked by SQS with partial batch responses enabled.
    """
    records: List[Dict[str, Any]] = event.get("Records", [])
    if not records:
        logger.warning("No records found in event payload.")
        return {"batchItemFailures": []}

    processor, queue = _bootstrap()
    settings = get_settings()
    default_policy = RetryPolicy(
        attempts=settings.queue.max_attempts,
        backoff_base_ms=settings.queue.backoff_base_ms,
    )
    return asyncio.run(process_records(records, processor, queue, default_policy))


__all__ = ["lambda_handler", "process_records"]
