from __future__ import annotations

import asyncio
import json
from typing import Any, Dict

import aiohttp

from .session import AuthUser


class AuthError(RuntimeError):
    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(f"{code}: {message}" if message else code)
        self.code = code
        self.message = message


class IdentityToolkitClient:
    """Email/password accounts over the Identity Toolkit REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://identitytoolkit.googleapis.com",
        timeout_seconds: int = 20,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def _endpoint(self, action: str) -> str:
        return f"{self.base_url}/v1/accounts:{action}?key={self.api_key}"

    async def _post(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self._session is None or self._session.closed:
            await self.start()
        assert self._session is not None

        try:
            async with self._session.post(self._endpoint(action), json=payload) as response:
                text = await response.text()
                status = response.status
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise AuthError("NETWORK_ERROR", str(exc)) from exc

        try:
            data = json.loads(text) if text else {}
        except json.JSONDecodeError as exc:
            raise AuthError("INVALID_RESPONSE", text[:200]) from exc

        if status != 200:
            error = data.get("error") if isinstance(data, dict) else None
            raw_code = str((error or {}).get("message") or f"HTTP_{status}")
            # Messages look like "WEAK_PASSWORD : Password should be at least 6 characters".
            code, _, detail = raw_code.partition(" : ")
            raise AuthError(code.strip(), detail.strip())
        if not isinstance(data, dict):
            raise AuthError("INVALID_RESPONSE", "expected a JSON object")
        return data

    @staticmethod
    def _to_user(data: Dict[str, Any]) -> AuthUser:
        uid = str(data.get("localId") or "")
        if not uid:
            raise AuthError("INVALID_RESPONSE", "missing localId")
        return AuthUser(
            uid=uid,
            email=str(data.get("email") or ""),
            id_token=str(data.get("idToken") or ""),
            refresh_token=str(data.get("refreshToken") or ""),
        )

    async def sign_in(self, email: str, password: str) -> AuthUser:
        data = await self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._to_user(data)

    async def register(self, email: str, password: str) -> AuthUser:
        data = await self._post(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._to_user(data)
