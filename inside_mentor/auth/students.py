from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..storage.errors import DocumentStoreError
from .identity_toolkit import AuthError, IdentityToolkitClient
from .session import AuthSession, AuthUser

if TYPE_CHECKING:
    from ..persistence.gateway import PersistenceGateway

logger = logging.getLogger("inside_mentor.auth")

_INSTITUTE_RECORDS: List[Dict[str, str]] = [
    {
        "studentId": "STU001",
        "name": "John Doe",
        "dateOfBirth": "2000-05-15",
        "institute": "Tech University",
        "department": "Computer Science",
        "year": "3rd Year",
    },
    {
        "studentId": "STU002",
        "name": "Jane Smith",
        "dateOfBirth": "1999-08-22",
        "institute": "Tech University",
        "department": "Engineering",
        "year": "4th Year",
    },
    {
        "studentId": "STU003",
        "name": "Mike Johnson",
        "dateOfBirth": "2001-03-10",
        "institute": "Tech University",
        "department": "Mathematics",
        "year": "2nd Year",
    },
]

INSTITUTES = ("Tech University", "Science College", "Engineering Institute", "Medical University", "Arts College")
DEPARTMENTS = (
    "Computer Science",
    "Engineering",
    "Mathematics",
    "Physics",
    "Chemistry",
    "Biology",
    "Economics",
    "Psychology",
    "Literature",
    "History",
)


class StudentDirectory:
    """Institute roster used for student-id sign-in."""

    def __init__(self, records: Optional[List[Dict[str, str]]] = None) -> None:
        self._records = copy.deepcopy(records if records is not None else _INSTITUTE_RECORDS)

    async def lookup(self, student_id: str, date_of_birth: str) -> Optional[Dict[str, Any]]:
        for record in self._records:
            if record["studentId"] == student_id.strip() and record["dateOfBirth"] == date_of_birth.strip():
                return self._to_user(record)
        return None

    async def register(self, data: Dict[str, Any]) -> Dict[str, Any]:
        student_id = str(data.get("studentId") or "").strip()
        if not student_id:
            raise ValueError("studentId is required")
        return self._to_user(
            {
                "studentId": student_id,
                "name": str(data.get("name") or ""),
                "dateOfBirth": str(data.get("dateOfBirth") or ""),
                "institute": data.get("institute") or "Default Institute",
                "department": data.get("department") or "General",
                "year": data.get("year") or "1st Year",
            }
        )

    @staticmethod
    def _to_user(record: Dict[str, Any]) -> Dict[str, Any]:
        return {"id": record["studentId"], **record}


@dataclass(slots=True)
class AuthResult:
    success: bool
    user: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class AuthService:
    def __init__(
        self,
        persistence: "PersistenceGateway",
        session: AuthSession,
        *,
        identity: Optional[IdentityToolkitClient] = None,
        directory: Optional[StudentDirectory] = None,
    ) -> None:
        self.persistence = persistence
        self.session = session
        self.identity = identity
        self.directory = directory or StudentDirectory()

    async def _store_best_effort(self, user: Dict[str, Any]) -> None:
        try:
            await self.persistence.create_user(user)
        except DocumentStoreError as exc:
            logger.info("User %s not stored remotely (%s); continuing with local session", user.get("id"), exc)

    async def authenticate_student(self, student_id: str, date_of_birth: str) -> AuthResult:
        user = await self.directory.lookup(student_id, date_of_birth)
        if user is None:
            return AuthResult(False, error="Invalid student ID or date of birth")
        await self._store_best_effort(user)
        self.session.set_user(AuthUser(uid=user["id"]))
        return AuthResult(True, user=user)

    async def register_student(self, data: Dict[str, Any]) -> AuthResult:
        try:
            user = await self.directory.register(data)
        except ValueError as exc:
            logger.warning("Student registration rejected: %s", exc)
            return AuthResult(False, error="Registration failed")
        await self._store_best_effort(user)
        self.session.set_user(AuthUser(uid=user["id"]))
        return AuthResult(True, user=user)

    async def sign_in_with_email(self, email: str, password: str) -> AuthResult:
        if self.identity is None:
            return AuthResult(False, error="Email sign-in is not configured")
        try:
            account = await self.identity.sign_in(email, password)
        except AuthError as exc:
            logger.warning("Email sign-in failed: %s", exc.code)
            return AuthResult(False, error="Invalid email or password", details={"code": exc.code})

        user = await self.persistence.get_user(account.uid)
        if user is None:
            return AuthResult(False, error="User data not found")
        self.session.set_user(account)
        return AuthResult(True, user=user)

    async def register_with_email(self, email: str, password: str, user_data: Dict[str, Any]) -> AuthResult:
        if self.identity is None:
            return AuthResult(False, error="Email sign-in is not configured")
        try:
            account = await self.identity.register(email, password)
        except AuthError as exc:
            logger.warning("Email registration failed: %s", exc.code)
            return AuthResult(False, error="Registration failed", details={"code": exc.code})

        user = {**user_data, "id": account.uid, "email": email}
        try:
            await self.persistence.create_user(user)
        except DocumentStoreError as exc:
            logger.error("Failed to store profile for %s: %s", account.uid, exc)
            return AuthResult(False, error="Registration failed")
        self.session.set_user(account)
        return AuthResult(True, user=user)

    async def sign_out(self) -> None:
        self.session.set_user(None)
