"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_dispatch_service,
    get_job_queue,
    get_model_gateway,
    get_record_store,
    get_response_parser,
    get_sqlite_queue,
    get_sqs_queue,
    get_summary_processor,
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
