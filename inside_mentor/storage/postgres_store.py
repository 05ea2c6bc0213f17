from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

import asyncpg

from .base import Document, Query
from .errors import DocumentStoreError, StoreErrorKind
from .utils import decode_document, encode_document, encode_value


logger = logging.getLogger("inside_mentor.storage")

_PERMISSION_STATES = {"42501", "28000", "28P01"}
_UNAVAILABLE_PREFIXES = ("08", "53", "57P")
_PRECONDITION_PREFIXES = ("55",)


def _classify(exc: BaseException) -> DocumentStoreError:
    if isinstance(exc, asyncpg.PostgresError):
        sqlstate = str(getattr(exc, "sqlstate", "") or "")
        if sqlstate in _PERMISSION_STATES:
            kind = StoreErrorKind.PERMISSION_DENIED
        elif sqlstate.startswith(_UNAVAILABLE_PREFIXES):
            kind = StoreErrorKind.UNAVAILABLE
        elif sqlstate.startswith(_PRECONDITION_PREFIXES):
            kind = StoreErrorKind.FAILED_PRECONDITION
        elif sqlstate.startswith("22"):
            kind = StoreErrorKind.INVALID_ARGUMENT
        else:
            kind = StoreErrorKind.UNKNOWN
        return DocumentStoreError(kind, f"[{sqlstate}] {exc}")
    if isinstance(exc, (OSError, asyncio.TimeoutError, asyncpg.InterfaceError)):
        return DocumentStoreError(StoreErrorKind.UNAVAILABLE, str(exc))
    return DocumentStoreError(StoreErrorKind.UNKNOWN, str(exc))


class PostgresDocumentStore:
    """Postgres-backed document store keeping each document as one JSONB row."""

    backend_name = "postgres"

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn.strip()
        if not self.dsn:
            raise ValueError("DOCUMENT_STORE_POSTGRES_DSN cannot be empty")
        self._pool: "asyncpg.Pool | None" = None
        self._init_lock = asyncio.Lock()
        self._initialized = False

    @property
    def configured(self) -> bool:
        return bool(self.dsn)

    async def _ensure_pool(self) -> "asyncpg.Pool":
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=1,
                max_size=6,
                command_timeout=30.0,
            )
        return self._pool

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        self._initialized = False

    async def init(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return
            try:
                pool = await self._ensure_pool()
                async with pool.acquire() as conn:
                    await conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS documents (
                            collection TEXT NOT NULL,
                            doc_id TEXT NOT NULL,
                            data JSONB NOT NULL,
                            seq BIGSERIAL,
                            PRIMARY KEY (collection, doc_id)
                        )
                        """
                    )
                    await conn.execute(
                        "CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents (collection, (data ->> 'userId'))"
                    )
            except Exception as exc:
                raise _classify(exc) from exc
            self._initialized = True
            logger.info("Postgres document store initialized")

    async def _pool_ready(self) -> "asyncpg.Pool":
        await self.init()
        assert self._pool is not None
        return self._pool

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid4().hex
        await self.set(collection, doc_id, data)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        pool = await self._pool_ready()
        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO documents (collection, doc_id, data)
                    VALUES ($1, $2, $3::jsonb)
                    ON CONFLICT (collection, doc_id) DO UPDATE SET data = EXCLUDED.data
                    """,
                    collection,
                    doc_id,
                    encode_document(data),
                )
        except Exception as exc:
            raise _classify(exc) from exc

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        pool = await self._pool_ready()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT data::text AS data FROM documents WHERE collection = $1 AND doc_id = $2",
                    collection,
                    doc_id,
                )
        except Exception as exc:
            raise _classify(exc) from exc
        if row is None:
            return None
        return Document(id=doc_id, data=decode_document(row["data"]))

    async def update(self, collection: str, doc_id: str, updates: Dict[str, Any]) -> None:
        pool = await self._pool_ready()
        try:
            async with pool.acquire() as conn:
                status = await conn.execute(
                    """
                    UPDATE documents
                    SET data = data || $3::jsonb
                    WHERE collection = $1 AND doc_id = $2
                    """,
                    collection,
                    doc_id,
                    encode_document(updates),
                )
        except Exception as exc:
            raise _classify(exc) from exc
        if str(status).strip().endswith(" 0"):
            raise DocumentStoreError(StoreErrorKind.NOT_FOUND, f"No document {collection}/{doc_id}")

    async def delete(self, collection: str, doc_id: str) -> None:
        pool = await self._pool_ready()
        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    "DELETE FROM documents WHERE collection = $1 AND doc_id = $2",
                    collection,
                    doc_id,
                )
        except Exception as exc:
            raise _classify(exc) from exc

    async def query(self, collection: str, query: Query) -> List[Document]:
        pool = await self._pool_ready()
        clauses = ["collection = $1"]
        params: List[Any] = [collection]
        for item in query.filters:
            params.append(item.field)
            field_ref = f"${len(params)}"
            params.append(json.dumps(encode_value(item.value)))
            value_ref = f"${len(params)}::jsonb"
            operator = "=" if item.op == "==" else item.op
            clauses.append(f"(data -> {field_ref}) {operator} {value_ref}")

        sql = f"SELECT doc_id, data::text AS data FROM documents WHERE {' AND '.join(clauses)}"
        if query.order_by:
            params.append(query.order_by)
            direction = "DESC" if query.descending else "ASC"
            sql += f" ORDER BY (data -> ${len(params)}) {direction}, seq ASC"
        else:
            sql += " ORDER BY seq ASC"
        if query.limit is not None:
            params.append(max(0, int(query.limit)))
            sql += f" LIMIT ${len(params)}"

        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(sql, *params)
        except Exception as exc:
            raise _classify(exc) from exc
        return [Document(id=str(row["doc_id"]), data=decode_document(row["data"])) for row in rows]
