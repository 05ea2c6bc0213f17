from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..models import TASKS, check_task_fields
from ..storage.utils import utcnow
from .ownership import OwnershipMixin
from .repository import Repository


class TasksMixin(OwnershipMixin):
    _tasks: Repository

    async def add_task(self, task: Dict[str, Any], user_id: Optional[str] = None) -> str:
        owner = self._require_owner(TASKS, user_id)
        payload = {"status": "todo", "priority": "medium", **task}
        check_task_fields(payload)
        return await self._tasks.create(owner, payload)

    async def get_tasks(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        owner = self._resolve_owner(user_id)
        if not owner:
            return []
        return await self._tasks.list(owner)

    async def update_task(self, task_id: str, updates: Dict[str, Any]) -> None:
        check_task_fields(updates)
        changes = dict(updates)
        if changes.get("status") == "done" and "completedAt" not in changes:
            changes["completedAt"] = utcnow()
        await self._tasks.update(task_id, changes)

    async def move_task(self, task_id: str, status: str) -> None:
        # Any explicit move is allowed, including reopening a done task.
        await self.update_task(task_id, {"status": status})

    async def delete_task(self, task_id: str) -> None:
        await self._tasks.delete(task_id)
