from __future__ import annotations

import logging
from typing import Optional

from ..config import Settings, is_placeholder
from .base import DocumentStore
from .sqlite_store import SqliteDocumentStore

logger = logging.getLogger("inside_mentor.storage")


def build_document_store(settings: Settings) -> Optional[DocumentStore]:
    """Return the configured remote store, or None to run from the mirror only."""
    backend = settings.document_store_backend
    if backend == "none":
        return None
    if backend == "sqlite":
        return SqliteDocumentStore(settings.document_store_sqlite_path)
    if backend != "postgres":
        raise ValueError("DOCUMENT_STORE_BACKEND must be 'sqlite', 'postgres' or 'none'")

    if is_placeholder(settings.document_store_postgres_dsn):
        logger.warning("DOCUMENT_STORE_POSTGRES_DSN is missing or a placeholder; remote storage disabled")
        return None

    from .postgres_store import PostgresDocumentStore

    return PostgresDocumentStore(settings.document_store_postgres_dsn)
