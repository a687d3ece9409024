"""Single-use, time-bounded challenges keyed by handle."""

from __future__ import annotations

import asyncio
import hmac
import logging
import secrets
from datetime import timedelta

from authgrid.core.identity_registry import IdentityRegistry
from authgrid.errors import (
    ChallengeAlreadyConsumed,
    ChallengeExpired,
    ChallengeNotFound,
    NonceMismatch,
    UnknownHandle,
)
from authgrid.models.challenge import Challenge
from authgrid.models.common import Clock, utc_now
from authgrid.protocols.challenges import ChallengeStorage

logger = logging.getLogger(__name__)

NONCE_BYTES = 32
DEFAULT_CHALLENGE_TTL = timedelta(seconds=120)


class ChallengeStore:
    """Issues and consumes challenges; at most one is live per handle.

    Per-handle locks serialise issue/consume inside this process. The
    storage's conditional ``mark_consumed`` settles races between
    processes that share a backend.
    """

    def __init__(
        self,
        storage: ChallengeStorage,
        registry: IdentityRegistry,
        *,
        ttl: timedelta = DEFAULT_CHALLENGE_TTL,
        clock: Clock = utc_now,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("challenge ttl must be positive")
        self._storage = storage
        self._registry = registry
        self._ttl = ttl
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def _lock_for(self, handle: str) -> asyncio.Lock:
        lock = self._locks.get(handle)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[handle] = lock
        return lock

    async def issue(self, handle: str) -> Challenge:
        if not await self._registry.exists(handle):
            raise UnknownHandle()

        async with self._lock_for(handle):
            issued_at = self._clock()
            challenge = Challenge(
                handle=handle,
                nonce=secrets.token_bytes(NONCE_BYTES),
                issued_at=issued_at,
                expires_at=issued_at + self._ttl,
            )
            await self._storage.put(challenge)

        logger.debug("Issued challenge for %s expiring at %s", handle, challenge.expires_at.isoformat())
        return challenge

    async def consume(self, handle: str, nonce: bytes) -> Challenge:
        async with self._lock_for(handle):
            current = await self._storage.get(handle)
            if current is None:
                raise ChallengeNotFound()
            if not hmac.compare_digest(current.nonce, nonce):
                raise NonceMismatch()
            if current.consumed:
                raise ChallengeAlreadyConsumed()
            if current.is_expired(self._clock()):
                raise ChallengeExpired()
            if not await self._storage.mark_consumed(handle, nonce):
                raise ChallengeAlreadyConsumed()

        return current.model_copy(update={"consumed": True})

    async def prune_expired(self) -> int:
        removed = await self._storage.prune_expired(self._clock())
        for handle in [h for h, lock in self._locks.items() if not lock.locked()]:
            del self._locks[handle]
        if removed:
            logger.info("Pruned %d stale challenge(s)", removed)
        return removed


__all__ = ["DEFAULT_CHALLENGE_TTL", "NONCE_BYTES", "ChallengeStore"]
