from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional
from uuid import uuid4


def new_local_id() -> str:
    return f"local-{uuid4().hex}"


class MirrorStore:
    """In-process stand-in for the remote store, keyed by collection and owner.

    Not a cache: nothing here is ever reconciled with the remote store.
    Mutations are plain list edits, so concurrent writers are last-write-wins.
    """

    def __init__(self) -> None:
        self._owned: Dict[str, Dict[str, List[Dict[str, Any]]]] = defaultdict(dict)
        self._keyed: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)

    def insert(self, collection: str, owner: str, record: Dict[str, Any]) -> str:
        doc_id = str(record.get("id") or new_local_id())
        stored = {**record, "id": doc_id}
        self._owned[collection].setdefault(owner, []).append(stored)
        return doc_id

    def records(self, collection: str, owner: str) -> List[Dict[str, Any]]:
        return [dict(item) for item in self._owned[collection].get(owner, [])]

    def update(self, collection: str, doc_id: str, updates: Dict[str, Any]) -> bool:
        for bucket in self._owned[collection].values():
            for index, item in enumerate(bucket):
                if item.get("id") == doc_id:
                    bucket[index] = {**item, **updates, "id": doc_id}
                    return True
        keyed = self._keyed[collection].get(doc_id)
        if keyed is not None:
            self._keyed[collection][doc_id] = {**keyed, **updates, "id": doc_id}
            return True
        return False

    def remove(self, collection: str, doc_id: str) -> bool:
        removed = False
        for owner, bucket in self._owned[collection].items():
            kept = [item for item in bucket if item.get("id") != doc_id]
            if len(kept) != len(bucket):
                self._owned[collection][owner] = kept
                removed = True
        if self._keyed[collection].pop(doc_id, None) is not None:
            removed = True
        return removed

    def clear(self, collection: str, owner: str) -> int:
        bucket = self._owned[collection].pop(owner, [])
        return len(bucket)

    def put(self, collection: str, key: str, record: Dict[str, Any]) -> None:
        self._keyed[collection][key] = {**record, "id": key}

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        record = self._keyed[collection].get(key)
        return dict(record) if record is not None else None

    def reset(self) -> None:
        self._owned.clear()
        self._keyed.clear()
