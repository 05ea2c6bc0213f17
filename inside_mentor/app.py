from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Optional

from .auth import AuthService, AuthSession, IdentityToolkitClient
from .config import Settings
from .persistence import PersistenceGateway
from .services import AIGateway, GeminiClient, ResiliencePolicy
from .storage import build_document_store

logger = logging.getLogger("inside_mentor")


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


@dataclass(slots=True)
class Services:
    settings: Settings
    policy: ResiliencePolicy
    ai: AIGateway
    persistence: PersistenceGateway
    session: AuthSession
    auth: AuthService
    gemini: Optional[GeminiClient] = None
    identity: Optional[IdentityToolkitClient] = None

    async def start(self) -> None:
        await self.persistence.init()
        if self.gemini is not None:
            await self.gemini.start()
        if self.identity is not None:
            await self.identity.start()
        else:
            # Nothing will ever report a signed-in account.
            self.session.mark_ready()
        logger.info(
            "InsideMentor services ready (ai=%s, storage=%s, identity=%s)",
            "gemini" if self.ai.configured else "fallback",
            self.persistence.storage_mode(),
            "on" if self.identity is not None else "off",
        )

    async def close(self) -> None:
        for closer in (
            self.gemini.close if self.gemini is not None else None,
            self.identity.close if self.identity is not None else None,
            self.persistence.close,
        ):
            if closer is None:
                continue
            with contextlib.suppress(Exception):
                await asyncio.wait_for(closer(), timeout=10.0)


def build_services(settings: Settings) -> Services:
    """Production wiring: one resilience policy shared by every AI operation."""
    policy = ResiliencePolicy(
        cache_ttl_seconds=settings.ai_cache_ttl_seconds,
        min_interval_seconds=settings.ai_min_request_interval_seconds,
        max_attempts=settings.ai_max_attempts,
        backoff_base_seconds=settings.ai_backoff_base_seconds,
    )

    gemini: Optional[GeminiClient] = None
    if settings.ai_configured:
        gemini = GeminiClient(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout_seconds=settings.gemini_timeout_seconds,
            temperature=settings.gemini_temperature,
            max_output_tokens=settings.gemini_max_output_tokens,
            base_url=settings.gemini_base_url,
        )
    else:
        logger.warning("GEMINI_API_KEY not configured; AI features return fallback content")

    identity: Optional[IdentityToolkitClient] = None
    if settings.identity_configured:
        identity = IdentityToolkitClient(settings.identity_api_key, base_url=settings.identity_base_url)

    session = AuthSession()
    persistence = PersistenceGateway(build_document_store(settings), session=session)
    return Services(
        settings=settings,
        policy=policy,
        ai=AIGateway(gemini, policy),
        persistence=persistence,
        session=session,
        auth=AuthService(persistence, session, identity=identity),
        gemini=gemini,
        identity=identity,
    )


async def open_services(settings: Optional[Settings] = None) -> Services:
    settings = settings or Settings.from_env()
    settings.validate()
    services = build_services(settings)
    await services.start()
    await services.session.wait_until_ready(settings.auth_ready_timeout_seconds)
    return services
