from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

FILTER_OPERATORS = ("==", "<", "<=", ">", ">=")


@dataclass(frozen=True, slots=True)
class FieldFilter:
    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op!r}")


@dataclass(frozen=True, slots=True)
class Query:
    filters: tuple[FieldFilter, ...] = ()
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None

    def unordered(self) -> "Query":
        """Same filters, no ordering clause and no limit."""
        return Query(filters=self.filters)


@dataclass(slots=True)
class Document:
    id: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> Dict[str, Any]:
        return {"id": self.id, **self.data}


class DocumentStore(Protocol):
    """Collection CRUD + query primitives of a remote document store.

    Implementations raise ``DocumentStoreError`` for every failure.
    """

    backend_name: str

    @property
    def configured(self) -> bool: ...

    async def init(self) -> None: ...

    async def close(self) -> None: ...

    async def add(self, collection: str, data: Dict[str, Any]) -> str: ...

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None: ...

    async def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

    async def update(self, collection: str, doc_id: str, updates: Dict[str, Any]) -> None: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...

    async def query(self, collection: str, query: Query) -> List[Document]: ...
