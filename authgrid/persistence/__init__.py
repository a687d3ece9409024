"""Persistence: in-memory and SQLite backends for identities, challenges and sessions."""

from authgrid.persistence.challenge_store import SQLiteChallengeStorage
from authgrid.persistence.identity_store import SQLiteIdentityStore
from authgrid.persistence.memory import (
    InMemoryChallengeStorage,
    InMemoryIdentityStore,
    InMemorySessionStore,
)
from authgrid.persistence.migrations import run_migrations
from authgrid.persistence.session_store import SQLiteSessionStore

__all__ = [
    "InMemoryChallengeStorage",
    "InMemoryIdentityStore",
    "InMemorySessionStore",
    "SQLiteChallengeStorage",
    "SQLiteIdentityStore",
    "SQLiteSessionStore",
    "run_migrations",
]
