from __future__ import annotations

import logging
import operator
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from ..models import OWNER_FIELD, EntityKind
from ..storage.base import DocumentStore, FieldFilter, Query
from ..storage.errors import DocumentStoreError, StoreErrorKind
from ..storage.mirror import MirrorStore
from ..storage.utils import normalize_record, sort_records, strip_absent, utcnow

logger = logging.getLogger("inside_mentor.storage")

_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _matches(record: Dict[str, Any], item: FieldFilter) -> bool:
    if item.field not in record:
        return False
    try:
        return bool(_COMPARATORS[item.op](record[item.field], item.value))
    except TypeError:
        return False


class Repository:
    """Remote-or-mirror CRUD for one entity kind.

    The remote/mirror decision is taken once per call: an unconfigured store
    sends the whole call to the mirror without any I/O.
    """

    def __init__(
        self,
        kind: EntityKind,
        store: Optional[DocumentStore],
        mirror: MirrorStore,
        *,
        mirror_on_create: FrozenSet[StoreErrorKind] = frozenset(),
    ) -> None:
        self.kind = kind
        self.store = store
        self.mirror = mirror
        self.mirror_on_create = mirror_on_create

    @property
    def collection(self) -> str:
        return self.kind.collection

    def remote_available(self) -> bool:
        return self.store is not None and bool(self.store.configured)

    def _normalize(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return normalize_record(record, self.kind.timestamp_fields, required=self.kind.order_field)

    def _prepare(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = strip_absent(payload)
        data.pop("id", None)
        return data

    async def create(self, owner: str, payload: Dict[str, Any]) -> str:
        data = self._prepare({**payload, OWNER_FIELD: owner})
        if self.kind.order_field and self.kind.order_field not in data:
            data[self.kind.order_field] = utcnow()

        if not self.remote_available():
            return self.create_local(owner, data)

        assert self.store is not None
        try:
            return await self.store.add(self.collection, data)
        except DocumentStoreError as exc:
            if exc.kind not in self.mirror_on_create:
                logger.error("Failed to add %s: %s", self.kind.name, exc)
                raise
            logger.warning("Remote %s write rejected (%s); storing in local mirror", self.kind.name, exc.kind.value)
            return self.create_local(owner, data)

    def create_local(self, owner: str, data: Dict[str, Any]) -> str:
        return self.mirror.insert(self.collection, owner, self._prepare(data))

    async def put(self, key: str, payload: Dict[str, Any]) -> None:
        data = self._prepare(payload)
        if not self.remote_available():
            self.mirror.put(self.collection, key, data)
            return
        assert self.store is not None
        await self.store.set(self.collection, key, data)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        if not self.remote_available():
            record = self.mirror.get(self.collection, key)
            return self._normalize(record) if record is not None else None
        assert self.store is not None
        try:
            document = await self.store.get(self.collection, key)
        except Exception:
            logger.exception("Failed to read %s %s", self.kind.name, key)
            return None
        if document is None:
            return None
        return self._normalize(document.to_record())

    async def list(
        self,
        owner: str,
        *,
        limit: Optional[int] = None,
        filters: Iterable[FieldFilter] = (),
    ) -> List[Dict[str, Any]]:
        extra = tuple(filters)
        if not self.remote_available():
            records = [
                record
                for record in self.mirror.records(self.collection, owner)
                if all(_matches(record, item) for item in extra)
            ]
            records = self._order(records)
            if limit is not None:
                records = records[: max(0, limit)]
            return [self._normalize(record) for record in records]

        query = Query(
            filters=(FieldFilter(OWNER_FIELD, "==", owner), *extra),
            order_by=self.kind.order_field,
            descending=self.kind.descending,
            limit=limit,
        )
        try:
            records = await self._remote_list(query)
        except Exception:
            logger.exception("Failed to list %s entries for %s", self.kind.name, owner)
            return []
        return [self._normalize(record) for record in records]

    async def _remote_list(self, query: Query) -> List[Dict[str, Any]]:
        assert self.store is not None
        try:
            documents = await self.store.query(self.collection, query)
            return [document.to_record() for document in documents]
        except DocumentStoreError as exc:
            if exc.kind is not StoreErrorKind.FAILED_PRECONDITION or not query.order_by:
                raise
            logger.warning(
                "Ordered %s query needs a missing index (%s); sorting in memory instead",
                self.kind.name,
                exc.message,
            )

        documents = await self.store.query(self.collection, query.unordered())
        records = self._order([document.to_record() for document in documents])
        if query.limit is not None:
            records = records[: max(0, query.limit)]
        return records

    def _order(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not self.kind.order_field:
            return records
        return sort_records(records, self.kind.order_field, descending=self.kind.descending)

    async def update(self, doc_id: str, updates: Dict[str, Any]) -> None:
        data = self._prepare(updates)
        if not data:
            return
        # Local ids only ever live in the mirror, even when the remote is up.
        if not self.remote_available() or doc_id.startswith("local-"):
            if not self.mirror.update(self.collection, doc_id, data):
                logger.warning("No local %s with id %s to update", self.kind.name, doc_id)
            return
        assert self.store is not None
        try:
            await self.store.update(self.collection, doc_id, data)
        except DocumentStoreError as exc:
            logger.error("Failed to update %s %s: %s", self.kind.name, doc_id, exc)
            raise

    async def delete(self, doc_id: str) -> None:
        if not self.remote_available() or doc_id.startswith("local-"):
            self.mirror.remove(self.collection, doc_id)
            return
        assert self.store is not None
        try:
            await self.store.delete(self.collection, doc_id)
        except DocumentStoreError as exc:
            logger.error("Failed to delete %s %s: %s", self.kind.name, doc_id, exc)
            raise

    async def clear(self, owner: str) -> int:
        removed = self.mirror.clear(self.collection, owner)
        if not self.remote_available():
            return removed
        assert self.store is not None
        documents = await self.store.query(self.collection, Query(filters=(FieldFilter(OWNER_FIELD, "==", owner),)))
        for document in documents:
            await self.store.delete(self.collection, document.id)
        return removed + len(documents)
