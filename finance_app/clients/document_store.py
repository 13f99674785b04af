"""SQLite-backed document store with Mongo-style filters."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

Filter = Dict[str, Any]
Sort = Tuple[str, int]

ASCENDING = 1
DESCENDING = -1


class DocumentStoreError(RuntimeError):
    """Raised when the underlying SQLite database rejects a read or write."""


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Type {type(value)!r} not serializable")


def _matches(document: Dict[str, Any], filter_: Filter) -> bool:
    for key, expected in filter_.items():
        actual = document.get(key)
        if isinstance(expected, dict) and "$in" in expected:
            if actual not in expected["$in"]:
                return False
        elif actual != expected:
            return False
    return True


def _sort_documents(
    documents: List[Dict[str, Any]], sort: Optional[Sort]
) -> List[Dict[str, Any]]:
    if sort is None:
        return documents
    field, direction = sort
    present = [doc for doc in documents if doc.get(field) is not None]
    missing = [doc for doc in documents if doc.get(field) is None]
    present.sort(key=lambda doc: doc[field], reverse=direction == DESCENDING)
    return present + missing


class SQLiteDocumentStore:
    """Schemaless document collections stored as JSON rows.

    Every document receives a string ``id`` on insert. Filters support plain
    equality plus ``{"field": {"$in": [...]}}``. Rows are pre-filtered by
    ``user_id`` in SQL when the filter carries one; the remaining conditions
    are evaluated in Python.
    """

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
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    collection TEXT NOT NULL,
                    user_id TEXT,
                    data TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_documents_collection_user
                ON documents (collection, user_id)
                """
            )

    async def find(
        self, collection: str, filter_: Filter, *, sort: Optional[Sort] = None
    ) -> List[Dict[str, Any]]:
        """Return all documents matching ``filter_`` in ``sort`` order."""
        return await asyncio.to_thread(self._find, collection, filter_, sort)

    async def find_one(
        self, collection: str, filter_: Filter, *, sort: Optional[Sort] = None
    ) -> Optional[Dict[str, Any]]:
        """Return the first matching document or ``None``."""
        documents = await self.find(collection, filter_, sort=sort)
        return documents[0] if documents else None

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> str:
        """Insert a document and return its identifier."""
        return await asyncio.to_thread(self._insert, collection, document)

    async def insert_many(
        self, collection: str, documents: Iterable[Dict[str, Any]]
    ) -> List[str]:
        ids = []
        for document in documents:
            ids.append(await self.insert_one(collection, document))
        return ids

    async def delete_many(self, collection: str, filter_: Filter) -> int:
        """Delete every matching document and return the number removed."""
        return await asyncio.to_thread(self._delete, collection, filter_)

    def _select(self, conn: sqlite3.Connection, collection: str, filter_: Filter):
        user_id = filter_.get("user_id")
        if isinstance(user_id, str):
            return conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND user_id = ?",
                (collection, user_id),
            ).fetchall()
        return conn.execute(
            "SELECT data FROM documents WHERE collection = ?",
            (collection,),
        ).fetchall()

    def _find(
        self, collection: str, filter_: Filter, sort: Optional[Sort]
    ) -> List[Dict[str, Any]]:
        try:
            with self._connect() as conn:
                rows = self._select(conn, collection, filter_)
        except sqlite3.Error as exc:
            raise DocumentStoreError(f"find on '{collection}' failed: {exc}") from exc
        documents = [json.loads(row["data"]) for row in rows]
        matched = [doc for doc in documents if _matches(doc, filter_)]
        return _sort_documents(matched, sort)

    def _insert(self, collection: str, document: Dict[str, Any]) -> str:
        record = dict(document)
        record_id = str(record.get("id") or uuid4().hex)
        record["id"] = record_id
        user_id = record.get("user_id")
        data_json = json.dumps(record, default=_json_default)
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO documents (id, collection, user_id, data)
                    VALUES (?, ?, ?, ?)
                    """,
                    (record_id, collection, user_id, data_json),
                )
        except sqlite3.Error as exc:
            raise DocumentStoreError(
                f"insert into '{collection}' failed: {exc}"
            ) from exc
        return record_id

    def _delete(self, collection: str, filter_: Filter) -> int:
        ids = [doc["id"] for doc in self._find(collection, filter_, None)]
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    f"DELETE FROM documents WHERE collection = ? AND id IN ({placeholders})",
                    (collection, *ids),
                )
        except sqlite3.Error as exc:
            raise DocumentStoreError(
                f"delete from '{collection}' failed: {exc}"
            ) from exc
        return cursor.rowcount


__all__ = [
    "ASCENDING",
    "DESCENDING",
    "DocumentStoreError",
    "SQLiteDocumentStore",
]
