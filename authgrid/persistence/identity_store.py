"""SQLite persistence for registered identities."""

from __future__ import annotations

from datetime import datetime

import aiosqlite

from authgrid.core import key_codec
from authgrid.models.identity import Identity, KeyAlgorithm
from authgrid.persistence._sqlite import DEFAULT_TIMEOUT_S, parse_dt, to_iso


class SQLiteIdentityStore:
    def __init__(self, db_path: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        self.db_path = db_path
        self.timeout_s = timeout_s

    async def insert(self, identity: Identity) -> bool:
        async with aiosqlite.connect(self.db_path, timeout=self.timeout_s) as db:
            cursor = await db.execute(
                """INSERT OR IGNORE INTO identities (
                    handle, id, public_key, algorithm, created_at, last_login_at
                ) VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    identity.handle,
                    identity.id,
                    key_codec.encode(identity.public_key),
                    identity.algorithm.value,
                    to_iso(identity.created_at),
                    to_iso(identity.last_login_at) if identity.last_login_at else None,
                ),
            )
            await db.commit()
            return cursor.rowcount == 1

    async def get(self, handle: str) -> Identity | None:
        async with aiosqlite.connect(self.db_path, timeout=self.timeout_s) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM identities WHERE handle = ?", (handle,))
            row = await cursor.fetchone()
            if row is None:
                return None
            return _row_to_identity(row)

    async def touch_login(self, handle: str, at: datetime) -> None:
        async with aiosqlite.connect(self.db_path, timeout=self.timeout_s) as db:
            await db.execute(
                "UPDATE identities SET last_login_at = ? WHERE handle = ?",
                (to_iso(at), handle),
            )
            await db.commit()


def _row_to_identity(row: aiosqlite.Row) -> Identity:
    return Identity(
        id=row["id"],
        handle=row["handle"],
        public_key=key_codec.decode(row["public_key"]),
        algorithm=KeyAlgorithm(row["algorithm"]),
        created_at=parse_dt(row["created_at"]),
        last_login_at=parse_dt(row["last_login_at"]),
    )


__all__ = ["SQLiteIdentityStore"]
