"""Background workers that drain the summary job queue.

``worker.runner`` polls the SQLite queue; ``worker.handler`` is the Lambda
entrypoint for SQS deliveries.
"""

from __future__ import annotations

from typing import Any


def __getattr__(name: str) -> Any:
    if name == "lambda_handler":
        from .handler import lambda_handler as loaded_lambda_handler

        return loaded_lambda_handler
    if name == "SummaryQueueWorker":
        from .runner import SummaryQueueWorker as loaded_worker

        return loaded_worker
    raise AttributeError(name)


__all__ = ["SummaryQueueWorker", "lambda_handler"]
