"""Build the protocol stack from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from authgrid.config import AuthgridSettings
from authgrid.core.challenge_store import ChallengeStore
from authgrid.core.identity_registry import IdentityRegistry
from authgrid.core.protocol import AuthProtocol
from authgrid.core.session_issuer import SessionIssuer
from authgrid.models.common import Clock, utc_now
from authgrid.persistence import (
    InMemoryChallengeStorage,
    InMemoryIdentityStore,
    InMemorySessionStore,
    SQLiteChallengeStorage,
    SQLiteIdentityStore,
    SQLiteSessionStore,
    run_migrations,
)
from authgrid.protocols import ChallengeStorage, IdentityStore, SessionStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthServices:
    registry: IdentityRegistry
    challenges: ChallengeStore
    sessions: SessionIssuer
    protocol: AuthProtocol

    async def prune(self) -> tuple[int, int]:
        return await self.challenges.prune_expired(), await self.sessions.prune_expired()


def build_services(
    settings: AuthgridSettings,
    *,
    identity_store: IdentityStore,
    challenge_storage: ChallengeStorage,
    session_store: SessionStore,
    clock: Clock = utc_now,
) -> AuthServices:
    registry = IdentityRegistry(identity_store, domain=settings.handle_domain, clock=clock)
    challenges = ChallengeStore(
        challenge_storage,
        registry,
        ttl=settings.challenges.ttl,
        clock=clock,
    )
    sessions = SessionIssuer(session_store, ttl=settings.sessions.ttl, clock=clock)
    return AuthServices(
        registry=registry,
        challenges=challenges,
        sessions=sessions,
        protocol=AuthProtocol(registry, challenges, sessions),
    )


async def create_services(settings: AuthgridSettings, *, clock: Clock = utc_now) -> AuthServices:
    if settings.storage.backend == "sqlite":
        db_path = settings.storage.db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        await run_migrations(str(db_path))
        # No storage call may outlive the challenge window.
        timeout_s = float(settings.challenges.ttl_s)
        logger.info("Using SQLite storage at %s", db_path)
        return build_services(
            settings,
            identity_store=SQLiteIdentityStore(str(db_path), timeout_s=timeout_s),
            challenge_storage=SQLiteChallengeStorage(str(db_path), timeout_s=timeout_s),
            session_store=SQLiteSessionStore(str(db_path), timeout_s=timeout_s),
            clock=clock,
        )

    logger.info("Using in-memory storage; state is lost on restart")
    return build_services(
        settings,
        identity_store=InMemoryIdentityStore(),
        challenge_storage=InMemoryChallengeStorage(),
        session_store=InMemorySessionStore(),
        clock=clock,
    )


__all__ = ["AuthServices", "build_services", "create_services"]
