"""SQLite-backed job queue used in place of a hosted queue."""

from __future__ import annotations

import json
import sqlite3
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from app.schemas.jobs import ClaimedJob, QueueDepth, RetryPolicy, SummaryJobPayload

_WAITING = "waiting"
_ACTIVE = "active"
_COMPLETED = "completed"
_FAILED = "failed"


class SQLiteQueueClient:
    """Persist summary jobs in a SQLite table and lease them to workers.

    Delivery is at-least-once: a job leased by a worker that never reports back
    returns to ``waiting`` through ``release_stalled``. When ``rate_limit_max``
    is set, at most that many jobs are claimed per ``rate_limit_seconds`` window
    across every worker sharing the database.
    """

    def __init__(
        self,
        db_path: str,
        *,
        default_retry_policy: RetryPolicy | None = None,
        keep_completed: int = 50,
        rate_limit_max: Optional[int] = None,
        rate_limit_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._default_policy = default_retry_policy or RetryPolicy()
        self._keep_completed = keep_completed
        self._rate_limit_max = rate_limit_max
        self._rate_limit_seconds = rate_limit_seconds
        self._clock = clock
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS summary_job_queue (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    summary_id TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    status TEXT NOT NULL,
                    attempts_made INTEGER NOT NULL DEFAULT 0,
                    max_attempts INTEGER NOT NULL,
                    backoff_strategy TEXT NOT NULL,
                    backoff_base_ms INTEGER NOT NULL,
                    available_at REAL NOT NULL,
                    leased_at REAL,
                    last_error TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_summary_job_queue_status "
                "ON summary_job_queue (status, available_at)"
            )
            conn.execute(
                "CREATE TABLE IF NOT EXISTS summary_job_claims (claimed_at REAL NOT NULL)"
            )

    def enqueue(
        self, payload: SummaryJobPayload, retry_policy: RetryPolicy | None = None
    ) -> str:
        policy = retry_policy or self._default_policy
        created_at = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO summary_job_queue (
                    summary_id, payload, status, max_attempts, backoff_strategy,
                    backoff_base_ms, available_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    payload["summary_id"],
                    json.dumps(payload),
                    _WAITING,
                    policy.attempts,
                    policy.backoff_strategy,
                    policy.backoff_base_ms,
                    self._clock(),
                    created_at,
                ),
            )
        return str(cursor.lastrowid)

    def depth(self) -> QueueDepth:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT status, COUNT(*) AS total FROM summary_job_queue
                WHERE status IN (?, ?) GROUP BY status
                """,
                (_WAITING, _ACTIVE),
            ).fetchall()
        counts = {row["status"]: row["total"] for row in rows}
        return QueueDepth(waiting=counts.get(_WAITING, 0), active=counts.get(_ACTIVE, 0))

    def claim(self) -> Optional[ClaimedJob]:
        """Lease the oldest due job, or return ``None`` when nothing is due."""
        now = self._clock()
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                """
                SELECT id, payload, attempts_made, max_attempts, last_error
                FROM summary_job_queue
                WHERE status = ? AND available_at <= ?
                ORDER BY available_at, id LIMIT 1
                """,
                (_WAITING, now),
            ).fetchone()
            if not row or not self._within_rate_limit(conn, now):
                return None
            conn.execute(
                """
                UPDATE summary_job_queue
                SET status = ?, attempts_made = attempts_made + 1, leased_at = ?
                WHERE id = ?
                """,
                (_ACTIVE, now, row["id"]),
            )
        return ClaimedJob(
            job_id=str(row["id"]),
            payload=json.loads(row["payload"]),
            attempt=row["attempts_made"] + 1,
            max_attempts=row["max_attempts"],
            last_error=row["last_error"],
        )

    def _within_rate_limit(self, conn: sqlite3.Connection, now: float) -> bool:
        """Record a claim unless the current window is already full."""
        if not self._rate_limit_max:
            return True
        window_start = now - self._rate_limit_seconds
        conn.execute("DELETE FROM summary_job_claims WHERE claimed_at <= ?", (window_start,))
        recent = conn.execute("SELECT COUNT(*) FROM summary_job_claims").fetchone()[0]
        if recent >= self._rate_limit_max:
            return False
        conn.execute("INSERT INTO summary_job_claims (claimed_at) VALUES (?)", (now,))
        return True

    def complete(self, job_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE summary_job_queue SET status = ?, leased_at = NULL WHERE id = ?",
                (_COMPLETED, int(job_id)),
            )
            conn.execute(
                """
                DELETE FROM summary_job_queue
                WHERE status = ? AND id NOT IN (
                    SELECT id FROM summary_job_queue WHERE status = ?
                    ORDER BY id DESC LIMIT ?
                )
                """,
                (_COMPLETED, _COMPLETED, self._keep_completed),
            )

    def fail(self, job_id: str, error: str) -> bool:
        """Record a failed attempt; return ``True`` when a retry was scheduled."""
        now = self._clock()
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                """
                SELECT attempts_made, max_attempts, backoff_strategy, backoff_base_ms
                FROM summary_job_queue WHERE id = ?
                """,
                (int(job_id),),
            ).fetchone()
            if not row:
                return False
            if row["attempts_made"] >= row["max_attempts"]:
                conn.execute(
                    """
                    UPDATE summary_job_queue
                    SET status = ?, last_error = ?, leased_at = NULL WHERE id = ?
                    """,
                    (_FAILED, error, int(job_id)),
                )
                return False

            policy = RetryPolicy(
                attempts=row["max_attempts"],
                backoff_strategy=row["backoff_strategy"],
                backoff_base_ms=row["backoff_base_ms"],
            )
            delay_seconds = policy.backoff_ms(row["attempts_made"]) / 1000
            conn.execute(
                """
                UPDATE summary_job_queue
                SET status = ?, last_error = ?, available_at = ?, leased_at = NULL
                WHERE id = ?
                """,
                (_WAITING, error, now + delay_seconds, int(job_id)),
            )
        return True

    def dead_letter(self, job_id: str, error: str) -> None:
        """Fail a job permanently regardless of remaining attempts."""
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE summary_job_queue
                SET status = ?, last_error = ?, leased_at = NULL WHERE id = ?
                """,
                (_FAILED, error, int(job_id)),
            )

    def release_stalled(self, stalled_after_seconds: float) -> int:
        """Return jobs leased longer than ``stalled_after_seconds`` to the backlog."""
        now = self._clock()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE summary_job_queue
                SET status = ?, available_at = ?, leased_at = NULL
                WHERE status = ? AND leased_at IS NOT NULL AND leased_at <= ?
                """,
                (_WAITING, now, _ACTIVE, now - stalled_after_seconds),
            )
        return cursor.rowcount

    def dead_letters(self) -> list[dict]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, summary_id, attempts_made, last_error
                FROM summary_job_queue WHERE status = ? ORDER BY id
                """,
                (_FAILED,),
            ).fetchall()
        return [dict(row) for row in rows]


__all__ = ["SQLiteQueueClient"]
