"""SQLite-backed store for summary records."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from app.schemas.summary import SummaryRecord, SummaryStatus, advance_status


class SummaryRecordNotFoundError(LookupError):
    """Raised when updating a record that does not exist."""


def json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, SummaryStatus):
        return value.value
    raise TypeError(f"Type {type(value)!r} not serializable")


class SQLiteSummaryStore:
    """Keep each record as a JSON document keyed by its id.

    ``update_fields`` merges a partial document inside one write transaction,
    so concurrent writers to the same id resolve as last-write-wins.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS summary_records (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    status TEXT NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_summary_records_owner "
                "ON summary_records (owner_id, kind)"
            )

    def create(self, record: SummaryRecord) -> SummaryRecord:
        data = record.model_dump(mode="json")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO summary_records (id, owner_id, kind, status, data, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.owner_id,
                    record.kind,
                    record.status.value,
                    json.dumps(data),
                    data["updated_at"],
                ),
            )
        return record

    def update_fields(self, summary_id: str, fields: Dict[str, Any]) -> None:
        now_iso = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT data FROM summary_records WHERE id = ?", (summary_id,)
            ).fetchone()
            if not row:
                raise SummaryRecordNotFoundError(summary_id)

            data = json.loads(row["data"])
            updates = json.loads(json.dumps(fields, default=json_default))
            if "status" in updates:
                updates["status"] = advance_status(
                    data.get("status", SummaryStatus.DRAFT.value), updates["status"]
                ).value
            data.update(updates)
            data["updated_at"] = now_iso
            conn.execute(
                "UPDATE summary_records SET status = ?, data = ?, updated_at = ? WHERE id = ?",
                (data["status"], json.dumps(data), now_iso, summary_id),
            )

    def find_by_id(self, summary_id: str) -> Optional[SummaryRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM summary_records WHERE id = ?", (summary_id,)
            ).fetchone()
        if not row:
            return None
        return SummaryRecord.model_validate(json.loads(row["data"]))


__all__ = ["SQLiteSummaryStore", "SummaryRecordNotFoundError", "json_default"]
