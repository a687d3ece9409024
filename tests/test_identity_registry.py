from __future__ import annotations

import hashlib

import pytest
from authgrid.client.keys import Keypair
from authgrid.core.identity_registry import derive_handle
from authgrid.errors import DuplicateHandle, InvalidKeyEncoding, UnknownHandle
from authgrid.factory import AuthServices
from authgrid.models.identity import KeyAlgorithm

from tests.helpers import FakeClock

pytestmark = pytest.mark.asyncio


def test_derive_handle_is_hash_prefix_at_domain() -> None:
    key = b"\x07" * 32
    handle = derive_handle(key, "example.org")

    assert handle == f"{hashlib.sha256(key).hexdigest()[:10]}@example.org"
    assert handle[10] == "@"


def test_derive_handle_is_deterministic() -> None:
    assert derive_handle(b"k" * 32) == derive_handle(b"k" * 32)
    assert derive_handle(b"k" * 32).endswith("@authgrid.net")


async def test_register_returns_identity_with_generated_handle(
    services: AuthServices,
    ed25519_keypair: Keypair,
    clock: FakeClock,
) -> None:
    public_key = ed25519_keypair.public_key_bytes()
    identity = await services.registry.register(public_key, KeyAlgorithm.ed25519)

    assert identity.handle == derive_handle(public_key)
    assert identity.public_key == public_key
    assert identity.algorithm is KeyAlgorithm.ed25519
    assert identity.created_at == clock.now
    assert identity.id


async def test_register_same_key_twice_is_duplicate(services: AuthServices, ed25519_keypair: Keypair) -> None:
    public_key = ed25519_keypair.public_key_bytes()
    await services.registry.register(public_key, KeyAlgorithm.ed25519)

    with pytest.raises(DuplicateHandle):
        await services.registry.register(public_key, KeyAlgorithm.ed25519)


async def test_register_rejects_key_not_matching_algorithm(
    services: AuthServices,
    ecdsa_keypair: Keypair,
) -> None:
    with pytest.raises(InvalidKeyEncoding):
        await services.registry.register(ecdsa_keypair.public_key_bytes(), KeyAlgorithm.ed25519)


async def test_register_rejects_garbage_ecdsa_key(services: AuthServices) -> None:
    with pytest.raises(InvalidKeyEncoding):
        await services.registry.register(b"\x04" + b"\x00" * 10, KeyAlgorithm.ecdsa)


async def test_lookup_unknown_handle_fails(services: AuthServices) -> None:
    with pytest.raises(UnknownHandle):
        await services.registry.lookup("nonexistent-handle")


async def test_touch_login_records_timestamp(
    services: AuthServices,
    ed25519_keypair: Keypair,
    clock: FakeClock,
) -> None:
    identity = await services.registry.register(ed25519_keypair.public_key_bytes(), KeyAlgorithm.ed25519)
    assert identity.last_login_at is None

    await services.registry.touch_login(identity.handle)

    reloaded = await services.registry.lookup(identity.handle)
    assert reloaded.last_login_at == clock.now
    assert reloaded.public_key == identity.public_key
