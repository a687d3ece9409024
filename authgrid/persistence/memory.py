"""In-process storage backends.

State lives on the instance, never in module globals, so tests and
single-process deployments can hold as many independent stores as needed.
"""

from __future__ import annotations

import hmac
from datetime import datetime

from authgrid.models.challenge import Challenge
from authgrid.models.identity import Identity
from authgrid.models.session import SessionRecord


class InMemoryIdentityStore:
    def __init__(self) -> None:
        self._identities: dict[str, Identity] = {}

    async def insert(self, identity: Identity) -> bool:
        if identity.handle in self._identities:
            return False
        self._identities[identity.handle] = identity
        return True

    async def get(self, handle: str) -> Identity | None:
        return self._identities.get(handle)

    async def touch_login(self, handle: str, at: datetime) -> None:
        identity = self._identities.get(handle)
        if identity is not None:
            self._identities[handle] = identity.model_copy(update={"last_login_at": at})


class InMemoryChallengeStorage:
    def __init__(self) -> None:
        self._challenges: dict[str, Challenge] = {}

    async def put(self, challenge: Challenge) -> None:
        self._challenges[challenge.handle] = challenge

    async def get(self, handle: str) -> Challenge | None:
        challenge = self._challenges.get(handle)
        return challenge.model_copy() if challenge is not None else None

    async def mark_consumed(self, handle: str, nonce: bytes) -> bool:
        challenge = self._challenges.get(handle)
        if challenge is None or challenge.consumed:
            return False
        if not hmac.compare_digest(challenge.nonce, nonce):
            return False
        self._challenges[handle] = challenge.model_copy(update={"consumed": True})
        return True

    async def prune_expired(self, now: datetime) -> int:
        stale = [
            handle
            for handle, challenge in self._challenges.items()
            if challenge.consumed or challenge.is_expired(now)
        ]
        for handle in stale:
            del self._challenges[handle]
        return len(stale)


class InMemorySessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, SessionRecord] = {}

    async def save(self, record: SessionRecord) -> None:
        self._sessions[record.token_digest] = record

    async def get(self, token_digest: str) -> SessionRecord | None:
        return self._sessions.get(token_digest)

    async def delete(self, token_digest: str) -> bool:
        return self._sessions.pop(token_digest, None) is not None

    async def prune_expired(self, now: datetime) -> int:
        stale = [digest for digest, record in self._sessions.items() if now >= record.expires_at]
        for digest in stale:
            del self._sessions[digest]
        return len(stale)


__all__ = ["InMemoryChallengeStorage", "InMemoryIdentityStore", "InMemorySessionStore"]
