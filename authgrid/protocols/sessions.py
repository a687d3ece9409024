from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from authgrid.models.session import SessionRecord


@runtime_checkable
class SessionStore(Protocol):
    async def save(self, record: SessionRecord) -> None: ...

    async def get(self, token_digest: str) -> SessionRecord | None: ...

    async def delete(self, token_digest: str) -> bool: ...

    async def prune_expired(self, now: datetime) -> int: ...


__all__ = ["SessionStore"]
