from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

import aiosqlite

from .base import Document, Query
from .errors import DocumentStoreError, StoreErrorKind
from .utils import _sqlite_connection, decode_document, encode_document, encode_value

_FIELD_SAFE_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_")


def _json_path(field: str) -> str:
    if not field or not set(field) <= _FIELD_SAFE_CHARS:
        raise DocumentStoreError(StoreErrorKind.INVALID_ARGUMENT, f"Unsupported field name: {field!r}")
    return f"$.{field}"


def _classify(exc: BaseException) -> DocumentStoreError:
    text = str(exc).lower()
    if isinstance(exc, sqlite3.OperationalError):
        if "readonly" in text or "read-only" in text or "permission" in text:
            return DocumentStoreError(StoreErrorKind.PERMISSION_DENIED, str(exc))
        if "locked" in text or "busy" in text or "unable to open" in text or "disk i/o" in text:
            return DocumentStoreError(StoreErrorKind.UNAVAILABLE, str(exc))
        if "no such table" in text:
            return DocumentStoreError(StoreErrorKind.FAILED_PRECONDITION, str(exc))
    if isinstance(exc, (OSError, asyncio.TimeoutError)):
        return DocumentStoreError(StoreErrorKind.UNAVAILABLE, str(exc))
    return DocumentStoreError(StoreErrorKind.UNKNOWN, str(exc))


class SqliteDocumentStore:
    """Document store over a single SQLite table of JSON documents."""

    backend_name = "sqlite"

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._init_lock = asyncio.Lock()
        self._initialized = False

    @property
    def configured(self) -> bool:
        return bool(str(self.db_path).strip())

    async def init(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                async with _sqlite_connection(self.db_path) as db:
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS documents (
                            collection TEXT NOT NULL,
                            doc_id TEXT NOT NULL,
                            data TEXT NOT NULL,
                            seq INTEGER PRIMARY KEY AUTOINCREMENT,
                            UNIQUE (collection, doc_id)
                        )
                        """
                    )
                    await db.execute(
                        "CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents (collection)"
                    )
                    await db.commit()
            except Exception as exc:
                raise _classify(exc) from exc
            self._initialized = True

    async def close(self) -> None:
        self._initialized = False

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid4().hex
        await self.set(collection, doc_id, data)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        await self.init()
        try:
            async with _sqlite_connection(self.db_path) as db:
                await db.execute(
                    """
                    INSERT INTO documents (collection, doc_id, data)
                    VALUES (?, ?, ?)
                    ON CONFLICT(collection, doc_id) DO UPDATE SET data = excluded.data
                    """,
                    (collection, doc_id, encode_document(data)),
                )
                await db.commit()
        except Exception as exc:
            raise _classify(exc) from exc

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        await self.init()
        try:
            async with _sqlite_connection(self.db_path) as db:
                async with db.execute(
                    "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, doc_id),
                ) as cursor:
                    row = await cursor.fetchone()
        except Exception as exc:
            raise _classify(exc) from exc
        if row is None:
            return None
        return Document(id=doc_id, data=decode_document(row[0]))

    async def update(self, collection: str, doc_id: str, updates: Dict[str, Any]) -> None:
        await self.init()
        try:
            async with _sqlite_connection(self.db_path) as db:
                async with db.execute(
                    "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, doc_id),
                ) as cursor:
                    row = await cursor.fetchone()
                if row is None:
                    raise DocumentStoreError(
                        StoreErrorKind.NOT_FOUND,
                        f"No document {collection}/{doc_id}",
                    )
                merged = decode_document(row[0])
                merged.update(updates)
                await db.execute(
                    "UPDATE documents SET data = ? WHERE collection = ? AND doc_id = ?",
                    (encode_document(merged), collection, doc_id),
                )
                await db.commit()
        except DocumentStoreError:
            raise
        except Exception as exc:
            raise _classify(exc) from exc

    async def delete(self, collection: str, doc_id: str) -> None:
        await self.init()
        try:
            async with _sqlite_connection(self.db_path) as db:
                await db.execute(
                    "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, doc_id),
                )
                await db.commit()
        except Exception as exc:
            raise _classify(exc) from exc

    async def query(self, collection: str, query: Query) -> List[Document]:
        await self.init()
        clauses = ["collection = ?"]
        params: List[Any] = [collection]
        for item in query.filters:
            clauses.append(f"json_extract(data, ?) {'=' if item.op == '==' else item.op} ?")
            params.extend([_json_path(item.field), encode_value(item.value)])

        sql = f"SELECT doc_id, data FROM documents WHERE {' AND '.join(clauses)}"
        if query.order_by:
            direction = "DESC" if query.descending else "ASC"
            sql += f" ORDER BY json_extract(data, ?) {direction}, seq ASC"
            params.append(_json_path(query.order_by))
        else:
            sql += " ORDER BY seq ASC"
        if query.limit is not None:
            sql += " LIMIT ?"
            params.append(max(0, int(query.limit)))

        try:
            async with _sqlite_connection(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(sql, params) as cursor:
                    rows = await cursor.fetchall()
        except Exception as exc:
            raise _classify(exc) from exc
        return [Document(id=str(row["doc_id"]), data=decode_document(row["data"])) for row in rows]
