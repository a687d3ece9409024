"""SQLite storage for issued sessions, keyed by token digest."""

from __future__ import annotations

from datetime import datetime

import aiosqlite

from authgrid.models.session import SessionRecord
from authgrid.persistence._sqlite import DEFAULT_TIMEOUT_S, parse_dt, to_iso


class SQLiteSessionStore:
    def __init__(self, db_path: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        self.db_path = db_path
        self.timeout_s = timeout_s

    async def save(self, record: SessionRecord) -> None:
        async with aiosqlite.connect(self.db_path, timeout=self.timeout_s) as db:
            await db.execute(
                "INSERT OR REPLACE INTO sessions (token_digest, handle, issued_at, expires_at) "
                "VALUES (?, ?, ?, ?)",
                (
                    record.token_digest,
                    record.handle,
                    to_iso(record.issued_at),
                    to_iso(record.expires_at),
                ),
            )
            await db.commit()

    async def get(self, token_digest: str) -> SessionRecord | None:
        async with aiosqlite.connect(self.db_path, timeout=self.timeout_s) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM sessions WHERE token_digest = ?",
                (token_digest,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return SessionRecord(
                token_digest=row["token_digest"],
                handle=row["handle"],
                issued_at=parse_dt(row["issued_at"]),
                expires_at=parse_dt(row["expires_at"]),
            )

    async def delete(self, token_digest: str) -> bool:
        async with aiosqlite.connect(self.db_path, timeout=self.timeout_s) as db:
            cursor = await db.execute(
                "DELETE FROM sessions WHERE token_digest = ?",
                (token_digest,),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def prune_expired(self, now: datetime) -> int:
        async with aiosqlite.connect(self.db_path, timeout=self.timeout_s) as db:
            cursor = await db.execute(
                "DELETE FROM sessions WHERE expires_at <= ?",
                (to_iso(now),),
            )
            await db.commit()
            return cursor.rowcount


__all__ = ["SQLiteSessionStore"]
