from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from inside_mentor.app import build_services  # noqa: E402
from inside_mentor.config import Settings  # noqa: E402


def _settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, **env: str) -> Settings:
    for key in ("GEMINI_API_KEY", "VITE_GEMINI_API_KEY", "IDENTITY_API_KEY", "FIREBASE_API_KEY", "VITE_FIREBASE_API_KEY"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DOCUMENT_STORE_SQLITE_PATH", str(tmp_path / "docs.db"))
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    settings = Settings.from_env()
    settings.validate()
    return settings


def test_unconfigured_services_degrade_to_fallbacks_and_mirror(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    services = build_services(_settings(monkeypatch, tmp_path, DOCUMENT_STORE_BACKEND="none"))

    async def scenario() -> dict:
        await services.start()
        try:
            ready = await services.session.wait_until_ready(0.01)
            assert ready is True
            await services.persistence.add_task({"title": "Read Ch.3"}, user_id="u1")
            return await services.ai.break_down_task("Read Ch.3")
        finally:
            await services.close()

    result = asyncio.run(scenario())

    assert services.gemini is None
    assert services.identity is None
    assert services.persistence.storage_mode() == "mirror"
    assert result["subtasks"][0] == "Research the topic"


def test_configured_ai_shares_one_policy(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    services = build_services(
        _settings(monkeypatch, tmp_path, GEMINI_API_KEY="AIzaSyD-example", AI_MIN_REQUEST_INTERVAL_SECONDS="3.5")
    )

    assert services.gemini is not None
    assert services.ai.client is services.gemini
    assert services.ai.policy is services.policy
    assert services.policy.min_interval_seconds == 3.5
    assert services.persistence.storage_mode() == "remote"
