"""
Summary record storage in DynamoDB.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Attr, ConditionBase
from botocore.exceptions import ClientError

from app.clients.sqlite_store import SummaryRecordNotFoundError, json_default
from app.core.config import StorageSettings
from app.schemas.summary import SummaryRecord, SummaryStatus, advance_status

logger = logging.getLogger(__name__)

_MAX_WRITE_ATTEMPTS = 5


class SummaryWriteConflictError(RuntimeError):
    """Raised when concurrent writers keep invalidating an update."""


def _is_conditional_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class DynamoDBSummaryStore:
    """Persist summary records as JSON documents under ``summary#<id>``.

    The document is stored as a string attribute so float-heavy input
    snapshots do not need ``Decimal`` conversion. Every write is conditional
    on the ``version`` attribute read before it, so a stale writer retries
    against the fresh document instead of overwriting it.
    """

    def __init__(
        self,
        settings: StorageSettings,
        *,
        region_name: str = "us-east-1",
        table: Any = None,
    ) -> None:
        self._settings = settings
        if table is None:
            resource = boto3.resource("dynamodb", region_name=region_name)
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    @staticmethod
    def _key(summary_id: str) -> Dict[str, str]:
        return {"pk": f"summary#{summary_id}", "sk": "record"}

    def _item(self, data: Dict[str, Any], version: int) -> Dict[str, Any]:
        return {
            **self._key(data["id"]),
            "owner_id": data["owner_id"],
            "kind": data["kind"],
            "status": data["status"],
            "version": version,
            "data": json.dumps(data),
        }

    @staticmethod
    def _version_condition(version: int) -> ConditionBase:
        if version == 0:
            return Attr("version").not_exists()
        return Attr("version").eq(version)

    def _get(self, summary_id: str) -> Optional[Dict[str, Any]]:
        response = self._table.get_item(Key=self._key(summary_id), ConsistentRead=True)
        return response.get("Item")

    def create(self, record: SummaryRecord) -> SummaryRecord:
        self._table.put_item(
            Item=self._item(record.model_dump(mode="json"), 1),
            ConditionExpression=Attr("pk").not_exists(),
        )
        return record

    def update_fields(self, summary_id: str, fields: Dict[str, Any]) -> None:
        """Optimistic read-merge-write; the status rank never decreases."""
        updates = json.loads(json.dumps(fields, default=json_default))
        for attempt in range(1, _MAX_WRITE_ATTEMPTS + 1):
            item = self._get(summary_id)
            if not item:
                raise SummaryRecordNotFoundError(summary_id)
            version = int(item.get("version", 0))
            data = json.loads(item["data"])
            merged = dict(updates)
            if "status" in merged:
                merged["status"] = advance_status(
                    data.get("status", SummaryStatus.DRAFT.value), merged["status"]
                ).value
            data.update(merged)
            data["updated_at"] = datetime.now(timezone.utc).isoformat()
            try:
                self._table.put_item(
                    Item=self._item(data, version + 1),
                    ConditionExpression=self._version_condition(version),
                )
                return
            except ClientError as exc:
                if not _is_conditional_failure(exc):
                    raise
                logger.info(
                    "Summary %s changed during update (attempt %d/%d); retrying.",
                    summary_id,
                    attempt,
                    _MAX_WRITE_ATTEMPTS,
                )
        raise SummaryWriteConflictError(
            f"Summary {summary_id} kept changing; gave up after {_MAX_WRITE_ATTEMPTS} attempts"
        )

    def find_by_id(self, summary_id: str) -> Optional[SummaryRecord]:
        item = self._get(summary_id)
        if not item:
            return None
        return SummaryRecord.model_validate(json.loads(item["data"]))


__all__ = ["DynamoDBSummaryStore", "SummaryWriteConflictError"]
