from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from authgrid.models.challenge import Challenge


@runtime_checkable
class ChallengeStorage(Protocol):
    async def put(self, challenge: Challenge) -> None:
        """Replace whatever challenge is outstanding for the handle."""
        ...

    async def get(self, handle: str) -> Challenge | None: ...

    async def mark_consumed(self, handle: str, nonce: bytes) -> bool:
        """Flip ``consumed`` for the matching unconsumed row.

        Returns False when no such row exists, so concurrent callers
        sharing the storage observe exactly one winner.
        """
        ...

    async def prune_expired(self, now: datetime) -> int: ...


__all__ = ["ChallengeStorage"]
