"""
Amazon SQS client wrapper for queueing summary jobs.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import boto3

from app.core.config import QueueSettings
from app.schemas.jobs import QueueDepth, RetryPolicy, SummaryJobPayload

# SQS rejects visibility timeouts above twelve hours.
_MAX_VISIBILITY_SECONDS = 43200


class SQSQueueClient:
    """Send summary jobs to the asynchronous worker queue."""

    def __init__(
        self,
        settings: QueueSettings,
        *,
        client: Optional[Any] = None,
        default_retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or boto3.client("sqs", region_name=settings.region_name)
        self._default_policy = default_retry_policy or RetryPolicy(
            attempts=settings.max_attempts,
            backoff_base_ms=settings.backoff_base_ms,
        )

    def enqueue(
        self, payload: SummaryJobPayload, retry_policy: RetryPolicy | None = None
    ) -> str:
        """Push a message onto the SQS queue."""
        policy = retry_policy or self._default_policy
        response = self._client.send_message(
            QueueUrl=self._settings.sqs_queue_url,
            MessageBody=json.dumps(payload),
            MessageAttributes={
                "max_attempts": {
                    "DataType": "Number",
                    "StringValue": str(policy.attempts),
                },
                "backoff_strategy": {
                    "DataType": "String",
                    "StringValue": policy.backoff_strategy,
                },
                "backoff_base_ms": {
                    "DataType": "Number",
                    "StringValue": str(policy.backoff_base_ms),
                },
            },
        )
        return response["MessageId"]

    def depth(self) -> QueueDepth:
        """Approximate backlog read from the queue attributes."""
        response = self._client.get_queue_attributes(
            QueueUrl=self._settings.sqs_queue_url,
            AttributeNames=[
                "ApproximateNumberOfMessages",
                "ApproximateNumberOfMessagesDelayed",
                "ApproximateNumberOfMessagesNotVisible",
            ],
        )
        attributes = response.get("Attributes", {})
        waiting = int(attributes.get("ApproximateNumberOfMessages", 0)) + int(
            attributes.get("ApproximateNumberOfMessagesDelayed", 0)
        )
        active = int(attributes.get("ApproximateNumberOfMessagesNotVisible", 0))
        return QueueDepth(waiting=waiting, active=active)

    def schedule_retry(
        self,
        *,
        receipt_handle: str,
        receive_count: int,
        retry_policy: RetryPolicy | None = None,
    ) -> int:
        """Delay the next delivery of a failed message; returns the delay in seconds."""
        policy = retry_policy or self._default_policy
        delay_seconds = min(
            _MAX_VISIBILITY_SECONDS, policy.backoff_ms(receive_count) // 1000
        )
        self._client.change_message_visibility(
            QueueUrl=self._settings.sqs_queue_url,
            ReceiptHandle=receipt_handle,
            VisibilityTimeout=delay_seconds,
        )
        return delay_seconds


def retry_policy_from_attributes(
    attributes: dict[str, Any], default: RetryPolicy
) -> RetryPolicy:
    """Rebuild the retry policy carried on a received message."""

    def _value(name: str) -> Optional[str]:
        entry = attributes.get(name) or {}
        return entry.get("stringValue") or entry.get("StringValue")

    attempts = _value("max_attempts")
    strategy = _value("backoff_strategy")
    base_ms = _value("backoff_base_ms")
    return RetryPolicy(
        attempts=int(attempts) if attempts else default.attempts,
        backoff_strategy=strategy if strategy in ("exponential", "fixed") else default.backoff_strategy,
        backoff_base_ms=int(base_ms) if base_ms else default.backoff_base_ms,
    )


__all__ = ["SQSQueueClient", "retry_policy_from_attributes"]
