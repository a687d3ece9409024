"""Opaque session tokens bound to a handle and an expiry."""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta

from authgrid.errors import ExpiredToken, InvalidToken
from authgrid.models.common import Clock, utc_now
from authgrid.models.session import Session, SessionRecord
from authgrid.protocols.sessions import SessionStore

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
DEFAULT_SESSION_TTL = timedelta(hours=24)


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionIssuer:
    """Mints random bearer tokens and tracks them by digest.

    The store never sees a usable token, so a leaked session table cannot
    be replayed against the API.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Clock = utc_now,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("session ttl must be positive")
        self._store = store
        self._ttl = ttl
        self._clock = clock

    async def issue(self, handle: str) -> Session:
        issued_at = self._clock()
        session = Session(
            handle=handle,
            token=secrets.token_urlsafe(TOKEN_BYTES),
            issued_at=issued_at,
            expires_at=issued_at + self._ttl,
        )
        await self._store.save(
            SessionRecord(
                token_digest=token_digest(session.token),
                handle=handle,
                issued_at=session.issued_at,
                expires_at=session.expires_at,
            ),
        )
        logger.info("Issued session for %s", handle)
        return session

    async def validate(self, token: str) -> str:
        if not token:
            raise InvalidToken()

        digest = token_digest(token)
        record = await self._store.get(digest)
        if record is None:
            raise InvalidToken()
        if self._clock() >= record.expires_at:
            await self._store.delete(digest)
            raise ExpiredToken()
        return record.handle

    async def revoke(self, token: str) -> bool:
        if not token:
            return False
        revoked = await self._store.delete(token_digest(token))
        if revoked:
            logger.info("Revoked session")
        return revoked

    async def prune_expired(self) -> int:
        return await self._store.prune_expired(self._clock())


__all__ = ["DEFAULT_SESSION_TTL", "SessionIssuer", "token_digest"]
