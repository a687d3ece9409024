"""Handle -> public key registry."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime

from authgrid.core.signatures import load_public_key
from authgrid.errors import DuplicateHandle, UnknownHandle
from authgrid.models.common import Clock, utc_now
from authgrid.models.identity import Identity, KeyAlgorithm
from authgrid.protocols.identities import IdentityStore

logger = logging.getLogger(__name__)

DEFAULT_HANDLE_DOMAIN = "authgrid.net"
_HANDLE_ID_LENGTH = 10


def derive_handle(public_key: bytes, domain: str = DEFAULT_HANDLE_DOMAIN) -> str:
    """``<first 10 hex chars of sha256(key)>@<domain>``; stable per key."""
    identifier = hashlib.sha256(public_key).hexdigest()[:_HANDLE_ID_LENGTH]
    return f"{identifier}@{domain}"


class IdentityRegistry:
    def __init__(
        self,
        store: IdentityStore,
        *,
        domain: str = DEFAULT_HANDLE_DOMAIN,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._domain = domain
        self._clock = clock

    async def register(self, public_key: bytes, algorithm: KeyAlgorithm) -> Identity:
        load_public_key(algorithm, public_key)

        identity = Identity(
            handle=derive_handle(public_key, self._domain),
            public_key=public_key,
            algorithm=algorithm,
            created_at=self._clock(),
        )
        if not await self._store.insert(identity):
            raise DuplicateHandle()

        logger.info("Registered %s identity %s", algorithm.value, identity.handle)
        return identity

    async def lookup(self, handle: str) -> Identity:
        identity = await self._store.get(handle)
        if identity is None:
            raise UnknownHandle()
        return identity

    async def exists(self, handle: str) -> bool:
        return await self._store.get(handle) is not None

    async def touch_login(self, handle: str, at: datetime | None = None) -> None:
        await self._store.touch_login(handle, at or self._clock())


__all__ = ["DEFAULT_HANDLE_DOMAIN", "IdentityRegistry", "derive_handle"]
