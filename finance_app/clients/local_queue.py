"""SQLite-backed FIFO queue for batch insight generation jobs."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict


class SQLiteQueueClient:
    """Persist job payloads in a SQLite table until a worker claims them."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS insight_job_queue (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    job_id TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    enqueued_at TEXT NOT NULL
                )
                """
            )

    def enqueue(self, payload: Dict[str, Any]) -> None:
        if not payload.get("job_id"):
            raise ValueError("Queued payloads must include a 'job_id'")
        enqueued_at = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO insight_job_queue (job_id, payload, enqueued_at)
                VALUES (?, ?, ?)
                """,
                (payload["job_id"], json.dumps(payload), enqueued_at),
            )

    def dequeue(self) -> Dict[str, Any] | None:
        """Claim and remove the oldest queued payload."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, payload FROM insight_job_queue ORDER BY id LIMIT 1"
            ).fetchone()
            if not row:
                return None
            conn.execute(
                "DELETE FROM insight_job_queue WHERE id = ?",
                (row["id"],),
            )
        return json.loads(row["payload"])

    def pending_count(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM insight_job_queue").fetchone()
        return int(row["total"])


__all__ = ["SQLiteQueueClient"]
