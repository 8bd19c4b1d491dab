"""Expose constructed client wrappers."""

from .aws_sqs import SQSQueueClient
from .dynamodb import DynamoDBSummaryStore
from .local_queue import SQLiteQueueClient
from .model_gateway import ChatOptions, ModelGateway, ModelGatewayError
from .sqlite_store import SQLiteSummaryStore, SummaryRecordNotFoundError

__all__ = [
    "ChatOptions",
    "DynamoDBSummaryStore",
    "ModelGateway",
    "ModelGatewayError",
    "SQLiteQueueClient",
    "SQLiteSummaryStore",
    "SQSQueueClient",
    "SummaryRecordNotFoundError",
]
