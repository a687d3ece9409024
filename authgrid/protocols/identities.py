from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from authgrid.models.identity import Identity


@runtime_checkable
class IdentityStore(Protocol):
    async def insert(self, identity: Identity) -> bool:
        """Store ``identity`` unless its handle exists; False on conflict."""
        ...

    async def get(self, handle: str) -> Identity | None: ...

    async def touch_login(self, handle: str, at: datetime) -> None: ...


__all__ = ["IdentityStore"]
