"""SQLite storage for outstanding challenges."""

from __future__ import annotations

from datetime import datetime

import aiosqlite

from authgrid.core import key_codec
from authgrid.models.challenge import Challenge
from authgrid.persistence._sqlite import DEFAULT_TIMEOUT_S, parse_dt, to_iso


class SQLiteChallengeStorage:
    def __init__(self, db_path: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        self.db_path = db_path
        self.timeout_s = timeout_s

    async def put(self, challenge: Challenge) -> None:
        async with aiosqlite.connect(self.db_path, timeout=self.timeout_s) as db:
            await db.execute(
                """INSERT OR REPLACE INTO challenges (
                    handle, nonce, issued_at, expires_at, consumed
                ) VALUES (?, ?, ?, ?, ?)""",
                (
                    challenge.handle,
                    key_codec.encode(challenge.nonce),
                    to_iso(challenge.issued_at),
                    to_iso(challenge.expires_at),
                    int(challenge.consumed),
                ),
            )
            await db.commit()

    async def get(self, handle: str) -> Challenge | None:
        async with aiosqlite.connect(self.db_path, timeout=self.timeout_s) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM challenges WHERE handle = ?", (handle,))
            row = await cursor.fetchone()
            if row is None:
                return None
            return Challenge(
                handle=row["handle"],
                nonce=key_codec.decode(row["nonce"]),
                issued_at=parse_dt(row["issued_at"]),
                expires_at=parse_dt(row["expires_at"]),
                consumed=bool(row["consumed"]),
            )

    async def mark_consumed(self, handle: str, nonce: bytes) -> bool:
        # The consumed = 0 guard makes this the cross-process arbiter.
        async with aiosqlite.connect(self.db_path, timeout=self.timeout_s) as db:
            cursor = await db.execute(
                "UPDATE challenges SET consumed = 1 WHERE handle = ? AND nonce = ? AND consumed = 0",
                (handle, key_codec.encode(nonce)),
            )
            await db.commit()
            return cursor.rowcount == 1

    async def prune_expired(self, now: datetime) -> int:
        async with aiosqlite.connect(self.db_path, timeout=self.timeout_s) as db:
            cursor = await db.execute(
                "DELETE FROM challenges WHERE expires_at <= ? OR consumed = 1",
                (to_iso(now),),
            )
            await db.commit()
            return cursor.rowcount


__all__ = ["SQLiteChallengeStorage"]
