from .base import Document, DocumentStore, FieldFilter, Query
from .errors import DocumentStoreError, IdentityRequiredError, StoreErrorKind
from .factory import build_document_store
from .mirror import MirrorStore
from .sqlite_store import SqliteDocumentStore

__all__ = [
    "Document",
    "DocumentStore",
    "DocumentStoreError",
    "FieldFilter",
    "IdentityRequiredError",
    "MirrorStore",
    "Query",
    "SqliteDocumentStore",
    "StoreErrorKind",
    "build_document_store",
]
