"""SQLite backends, including two protocol stacks sharing one database."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import timedelta
from pathlib import Path

import pytest
from authgrid.client.keys import Keypair, sign
from authgrid.config import AuthgridSettings
from authgrid.factory import AuthServices, build_services, create_services
from authgrid.models.challenge import Challenge
from authgrid.models.identity import Identity, KeyAlgorithm
from authgrid.persistence import (
    SQLiteChallengeStorage,
    SQLiteIdentityStore,
    SQLiteSessionStore,
    run_migrations,
)

from tests.helpers import FakeClock

pytestmark = pytest.mark.asyncio


@pytest.fixture
async def db_path(tmp_path: Path) -> str:
    db = tmp_path / "authgrid.db"
    await run_migrations(str(db))
    return str(db)


def _sqlite_services(settings: AuthgridSettings, db_path: str, clock: FakeClock) -> AuthServices:
    return build_services(
        settings,
        identity_store=SQLiteIdentityStore(db_path),
        challenge_storage=SQLiteChallengeStorage(db_path),
        session_store=SQLiteSessionStore(db_path),
        clock=clock,
    )


async def test_migrations_are_idempotent(db_path: str) -> None:
    assert await run_migrations(db_path) == []

    conn = sqlite3.connect(db_path)
    try:
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    finally:
        conn.close()
    assert {"identities", "challenges", "sessions", "_migrations"} <= tables


async def test_modified_migration_fails_fast(tmp_path: Path) -> None:
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    script = migrations / "001_init.sql"
    script.write_text("CREATE TABLE t (id INTEGER);", encoding="utf-8")
    db = str(tmp_path / "m.db")
    await run_migrations(db, migrations)

    script.write_text("CREATE TABLE t (id INTEGER, extra TEXT);", encoding="utf-8")
    with pytest.raises(RuntimeError, match="checksum mismatch"):
        await run_migrations(db, migrations)


async def test_identity_store_round_trip(db_path: str, ed25519_keypair: Keypair, clock: FakeClock) -> None:
    store = SQLiteIdentityStore(db_path)
    identity = Identity(
        handle="abc@authgrid.net",
        public_key=ed25519_keypair.public_key_bytes(),
        algorithm=KeyAlgorithm.ed25519,
        created_at=clock.now,
    )

    assert await store.insert(identity) is True
    assert await store.insert(identity) is False

    loaded = await store.get("abc@authgrid.net")
    assert loaded == identity
    assert await store.get("missing@authgrid.net") is None

    await store.touch_login("abc@authgrid.net", clock.now + timedelta(minutes=5))
    touched = await store.get("abc@authgrid.net")
    assert touched is not None
    assert touched.last_login_at == clock.now + timedelta(minutes=5)


async def test_challenge_storage_replaces_and_consumes_once(db_path: str, clock: FakeClock) -> None:
    storage = SQLiteChallengeStorage(db_path)
    first = Challenge(
        handle="abc@authgrid.net",
        nonce=b"\x01" * 32,
        issued_at=clock.now,
        expires_at=clock.now + timedelta(seconds=120),
    )
    second = first.model_copy(update={"nonce": b"\x02" * 32})

    await storage.put(first)
    await storage.put(second)

    loaded = await storage.get("abc@authgrid.net")
    assert loaded == second
    assert await storage.mark_consumed("abc@authgrid.net", first.nonce) is False
    assert await storage.mark_consumed("abc@authgrid.net", second.nonce) is True
    assert await storage.mark_consumed("abc@authgrid.net", second.nonce) is False

    assert await storage.prune_expired(clock.now) == 1
    assert await storage.get("abc@authgrid.net") is None


async def test_two_instances_sharing_database_admit_one_verify(
    db_path: str,
    settings: AuthgridSettings,
    clock: FakeClock,
    ed25519_keypair: Keypair,
) -> None:
    node_a = _sqlite_services(settings, db_path, clock)
    node_b = _sqlite_services(settings, db_path, clock)

    identity = await node_a.protocol.register(ed25519_keypair.public_key_bytes(), KeyAlgorithm.ed25519)
    challenge = await node_b.protocol.challenge(identity.handle)
    signature = sign(challenge.nonce, ed25519_keypair)

    results = await asyncio.gather(
        node_a.protocol.verify(identity.handle, challenge.nonce, signature),
        node_b.protocol.verify(identity.handle, challenge.nonce, signature),
    )
    assert sorted(r.verified for r in results) == [False, True]

    token = next(r.token for r in results if r.verified)
    assert token is not None
    assert await node_b.protocol.authenticate(token) == identity.handle
    assert await node_a.protocol.logout(token) is True


async def test_create_services_runs_migrations_for_sqlite_backend(tmp_path: Path, ecdsa_keypair: Keypair) -> None:
    settings = AuthgridSettings(storage={"backend": "sqlite", "db_path": tmp_path / "nested" / "auth.db"})
    services = await create_services(settings)

    identity = await services.protocol.register(ecdsa_keypair.public_key_bytes(), "ecdsa")
    challenge = await services.protocol.challenge(identity.handle)
    result = await services.protocol.verify(identity.handle, challenge.nonce, sign(challenge.nonce, ecdsa_keypair))

    assert result.verified is True
    assert (tmp_path / "nested" / "auth.db").exists()
