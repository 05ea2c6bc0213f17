from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()


_PLACEHOLDER_EXACT = {"changeme", "change_me", "placeholder", "xxx"}


def _env_lookup(name: str, aliases: tuple[str, ...] = ()) -> str | None:
    for key in (name, *aliases):
        # Be tolerant to UTF-8 BOM accidentally saved in .env key names.
        for candidate in (key, f"\ufeff{key}"):
            raw = os.getenv(candidate)
            if raw is not None:
                return raw
    return None


def _env_int(name: str, default: int, aliases: tuple[str, ...] = ()) -> int:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float, aliases: tuple[str, ...] = ()) -> float:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _clean_secret(value: str) -> str:
    cleaned = value.strip()
    if (cleaned.startswith('"') and cleaned.endswith('"')) or (
        cleaned.startswith("'") and cleaned.endswith("'")
    ):
        cleaned = cleaned[1:-1].strip()
    return cleaned


def _env_str(name: str, default: str, aliases: tuple[str, ...] = ()) -> str:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    value = raw.strip()
    return value if value else default


def is_placeholder(value: str | None) -> bool:
    """True when a credential is empty or still carries a template value."""
    cleaned = (value or "").strip().lower()
    if not cleaned:
        return True
    if cleaned in _PLACEHOLDER_EXACT:
        return True
    return cleaned.startswith(("put_your_", "your_")) and cleaned.endswith("_here")


@dataclass(slots=True)
class Settings:
    gemini_api_key: str
    gemini_base_url: str
    gemini_model: str
    gemini_timeout_seconds: int
    gemini_temperature: float
    gemini_max_output_tokens: int

    ai_cache_ttl_seconds: float
    ai_min_request_interval_seconds: float
    ai_max_attempts: int
    ai_backoff_base_seconds: float

    document_store_backend: str
    document_store_sqlite_path: Path
    document_store_postgres_dsn: str

    identity_api_key: str
    identity_base_url: str
    auth_ready_timeout_seconds: float

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            gemini_api_key=_clean_secret(_env_lookup("GEMINI_API_KEY", aliases=("VITE_GEMINI_API_KEY",)) or ""),
            gemini_base_url=_env_str("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com"),
            gemini_model=_env_str("GEMINI_MODEL", "gemini-2.5-pro"),
            gemini_timeout_seconds=_env_int("GEMINI_TIMEOUT_SECONDS", 60),
            gemini_temperature=_env_float("GEMINI_TEMPERATURE", 0.7),
            gemini_max_output_tokens=_env_int("GEMINI_MAX_OUTPUT_TOKENS", 0),
            ai_cache_ttl_seconds=_env_float("AI_CACHE_TTL_SECONDS", 300.0),
            ai_min_request_interval_seconds=_env_float("AI_MIN_REQUEST_INTERVAL_SECONDS", 2.0),
            ai_max_attempts=_env_int("AI_MAX_ATTEMPTS", 3),
            ai_backoff_base_seconds=_env_float("AI_BACKOFF_BASE_SECONDS", 2.0),
            document_store_backend=_env_str("DOCUMENT_STORE_BACKEND", "sqlite").lower(),
            document_store_sqlite_path=Path(
                _env_str("DOCUMENT_STORE_SQLITE_PATH", "./data/inside_mentor.db")
            ).expanduser(),
            document_store_postgres_dsn=_clean_secret(_env_lookup("DOCUMENT_STORE_POSTGRES_DSN") or ""),
            identity_api_key=_clean_secret(
                _env_lookup("IDENTITY_API_KEY", aliases=("FIREBASE_API_KEY", "VITE_FIREBASE_API_KEY")) or ""
            ),
            identity_base_url=_env_str("IDENTITY_BASE_URL", "https://identitytoolkit.googleapis.com"),
            auth_ready_timeout_seconds=_env_float("AUTH_READY_TIMEOUT_SECONDS", 5.0),
        )

    @property
    def ai_configured(self) -> bool:
        return not is_placeholder(self.gemini_api_key)

    @property
    def identity_configured(self) -> bool:
        return not is_placeholder(self.identity_api_key)

    def validate(self) -> None:
        # Missing credentials are not errors: each gateway degrades on its own.
        if self.gemini_timeout_seconds < 5:
            raise ValueError("GEMINI_TIMEOUT_SECONDS must be >= 5")
        if self.gemini_max_output_tokens < 0:
            raise ValueError("GEMINI_MAX_OUTPUT_TOKENS must be >= 0 (0 disables explicit cap)")
        if self.gemini_temperature < 0.0 or self.gemini_temperature > 2.0:
            raise ValueError("GEMINI_TEMPERATURE must be in [0, 2]")

        if self.ai_cache_ttl_seconds < 0:
            raise ValueError("AI_CACHE_TTL_SECONDS must be >= 0")
        if self.ai_min_request_interval_seconds < 0:
            raise ValueError("AI_MIN_REQUEST_INTERVAL_SECONDS must be >= 0")
        if self.ai_max_attempts < 1 or self.ai_max_attempts > 3:
            raise ValueError("AI_MAX_ATTEMPTS must be in [1, 3]")
        if self.ai_backoff_base_seconds < 0:
            raise ValueError("AI_BACKOFF_BASE_SECONDS must be >= 0")

        if self.document_store_backend not in {"sqlite", "postgres", "none"}:
            raise ValueError("DOCUMENT_STORE_BACKEND must be 'sqlite', 'postgres' or 'none'")
        if self.auth_ready_timeout_seconds <= 0:
            raise ValueError("AUTH_READY_TIMEOUT_SECONDS must be > 0")
