from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..models import PROGRESS_REPORTS, USER_ANALYTICS, WEEKLY_REPORTS
from ..storage.utils import utcnow
from .ownership import OwnershipMixin
from .repository import Repository


class ReportsMixin(OwnershipMixin):
    _progress_reports: Repository
    _weekly_reports: Repository
    _analytics: Repository

    async def save_progress_report(self, report: Dict[str, Any], user_id: Optional[str] = None) -> str:
        owner = self._require_owner(PROGRESS_REPORTS, user_id)
        return await self._progress_reports.create(owner, report)

    async def get_progress_reports(self, user_id: Optional[str] = None, limit: Optional[int] = 5) -> List[Dict[str, Any]]:
        owner = self._resolve_owner(user_id)
        if not owner:
            return []
        return await self._progress_reports.list(owner, limit=limit)

    async def save_weekly_report(self, report: Dict[str, Any], user_id: Optional[str] = None) -> str:
        owner = self._require_owner(WEEKLY_REPORTS, user_id)
        return await self._weekly_reports.create(owner, report)

    async def get_weekly_reports(self, user_id: Optional[str] = None, limit: Optional[int] = 4) -> List[Dict[str, Any]]:
        owner = self._resolve_owner(user_id)
        if not owner:
            return []
        return await self._weekly_reports.list(owner, limit=limit)

    async def save_user_analytics(self, snapshot: Dict[str, Any], user_id: Optional[str] = None) -> None:
        owner = self._require_owner(USER_ANALYTICS, user_id)
        await self._analytics.put(owner, {**snapshot, "userId": owner, "updatedAt": utcnow()})

    async def get_user_analytics(self, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        owner = self._resolve_owner(user_id)
        if not owner:
            return None
        return await self._analytics.get(owner)
