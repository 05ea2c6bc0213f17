from __future__ import annotations

import logging
from typing import Optional, Protocol

from ..models import EntityKind
from ..storage.errors import IdentityRequiredError

logger = logging.getLogger("inside_mentor.storage")


class IdentityProvider(Protocol):
    def current_user_id(self) -> Optional[str]: ...


class OwnershipMixin:
    session: Optional[IdentityProvider]

    def _resolve_owner(self, user_id: Optional[str] = None) -> Optional[str]:
        if user_id:
            return user_id
        if self.session is None:
            return None
        return self.session.current_user_id() or None

    def _require_owner(self, kind: EntityKind, user_id: Optional[str] = None) -> str:
        owner = self._resolve_owner(user_id)
        if not owner:
            logger.warning("Rejected %s write: no signed-in user", kind.name)
            raise IdentityRequiredError(f"Cannot write a {kind.name} without a signed-in user")
        return owner
