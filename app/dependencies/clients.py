"""
Factory functions to provide shared clients and services as FastAPI dependencies.

The worker entry points reuse the same factories so every execution path is
wired identically.
"""

from functools import lru_cache
from typing import Union

from app.clients import (
    DynamoDBSummaryStore,
    ModelGateway,
    SQLiteQueueClient,
    SQLiteSummaryStore,
    SQSQueueClient,
)
from app.core.config import get_settings
from app.pipeline import GenerationSteps, SummaryJobProcessor
from app.schemas.jobs import RetryPolicy
from app.services import InlineSummaryProcessor, ResponseParser, SummaryDispatchService

RecordStore = Union[SQLiteSummaryStore, DynamoDBSummaryStore]
QueueClient = Union[SQLiteQueueClient, SQSQueueClient]


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


def _retry_policy() -> RetryPolicy:
    settings = _settings()
    return RetryPolicy(
        attempts=settings.queue.max_attempts,
        backoff_base_ms=settings.queue.backoff_base_ms,
    )


@lru_cache()
def get_record_store() -> RecordStore:
    """Provide the summary record store for the configured backend."""
    settings = _settings()
    if settings.storage.backend == "dynamodb":
        return DynamoDBSummaryStore(settings.storage, region_name=settings.queue.region_name)
    return SQLiteSummaryStore(settings.storage.db_path)


@lru_cache()
def get_sqlite_queue() -> SQLiteQueueClient:
    """Provide the SQLite-backed queue used by the local worker."""
    settings = _settings()
    return SQLiteQueueClient(
        settings.storage.db_path,
        default_retry_policy=_retry_policy(),
        keep_completed=settings.queue.keep_completed,
        rate_limit_max=settings.queue.rate_limit_max,
        rate_limit_seconds=settings.queue.rate_limit_duration_ms / 1000,
    )


@lru_cache()
def get_sqs_queue() -> SQSQueueClient:
    """Provide the SQS queue client."""
    settings = _settings()
    return SQSQueueClient(settings.queue, default_retry_policy=_retry_policy())


def get_job_queue() -> QueueClient:
    """Provide the job queue for the configured backend."""
    if _settings().queue.backend == "sqs":
        return get_sqs_queue()
    return get_sqlite_queue()


@lru_cache()
def get_model_gateway() -> ModelGateway:
    """Provide the model endpoint gateway."""
    return ModelGateway(_settings().model)


@lru_cache()
def get_response_parser() -> ResponseParser:
    return ResponseParser()


@lru_cache()
def get_summary_processor() -> SummaryJobProcessor:
    """Build the shared generation workflow."""
    settings = _settings()
    steps = GenerationSteps(
        store=get_record_store(),
        gateway=get_model_gateway(),
        parser=get_response_parser(),
        settings=settings.generation,
        default_model=settings.model.default_model,
        timeout_ms=int(settings.model.timeout_seconds * 1000),
    )
    return SummaryJobProcessor(steps)


def get_dispatch_service() -> SummaryDispatchService:
    """Build a dispatch service over the configured store and queue."""
    settings = _settings()
    return SummaryDispatchService(
        store=get_record_store(),
        queue=get_job_queue(),
        inline_processor=InlineSummaryProcessor(get_summary_processor()),
        settings=settings.queue,
        default_model=settings.model.default_model,
    )


__all__ = [
    "get_dispatch_service",
    "get_job_queue",
    "get_model_gateway",
    "get_record_store",
    "get_response_parser",
    "get_sqlite_queue",
    "get_sqs_queue",
    "get_summary_processor",
]
