"""End-to-end behaviour of register -> challenge -> verify."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import pytest
from authgrid.client.keys import Keypair, generate_keypair, sign
from authgrid.core import key_codec
from authgrid.errors import InvalidToken, UnknownHandle, UnsupportedAlgorithm
from authgrid.factory import AuthServices
from authgrid.models.identity import KeyAlgorithm

from tests.helpers import FakeClock

pytestmark = pytest.mark.asyncio


async def _registered(services: AuthServices, keypair: Keypair) -> str:
    identity = await services.protocol.register(keypair.public_key_bytes(), keypair.algorithm)
    return identity.handle


async def test_ed25519_scenario_verifies_once(
    services: AuthServices,
    ed25519_keypair: Keypair,
    clock: FakeClock,
) -> None:
    handle = await _registered(services, ed25519_keypair)
    challenge = await services.protocol.challenge(handle)
    assert len(challenge.nonce) == 32

    signature = sign(challenge.nonce, ed25519_keypair)
    result = await services.protocol.verify(handle, challenge.nonce, signature)

    assert result.verified is True
    assert result.token
    assert result.expires_at == clock.now + timedelta(hours=24)
    assert await services.protocol.authenticate(result.token) == handle

    replay = await services.protocol.verify(handle, challenge.nonce, signature)
    assert replay.verified is False
    assert replay.token is None
    assert replay.expires_at is None


async def test_ecdsa_identity_verifies(services: AuthServices, ecdsa_keypair: Keypair) -> None:
    handle = await _registered(services, ecdsa_keypair)
    challenge = await services.protocol.challenge(handle)

    result = await services.protocol.verify(handle, challenge.nonce, sign(challenge.nonce, ecdsa_keypair))
    assert result.verified is True


async def test_register_accepts_wire_algorithm_names(services: AuthServices, ed25519_keypair: Keypair) -> None:
    identity = await services.protocol.register(ed25519_keypair.public_key_bytes(), "ED25519")
    assert identity.algorithm is KeyAlgorithm.ed25519


@pytest.mark.parametrize("algorithm", ["rsa", "", "ecdsa-p384"])
async def test_register_rejects_unsupported_algorithm(
    services: AuthServices,
    ed25519_keypair: Keypair,
    algorithm: str,
) -> None:
    with pytest.raises(UnsupportedAlgorithm):
        await services.protocol.register(ed25519_keypair.public_key_bytes(), algorithm)


async def test_challenge_for_unknown_handle_fails(services: AuthServices) -> None:
    with pytest.raises(UnknownHandle):
        await services.protocol.challenge("nonexistent-handle")


async def test_verify_for_unknown_handle_fails(services: AuthServices) -> None:
    with pytest.raises(UnknownHandle):
        await services.protocol.verify("nonexistent-handle", b"\x00" * 32, b"sig")


async def test_bad_signature_is_rejected_and_burns_challenge(
    services: AuthServices,
    ed25519_keypair: Keypair,
) -> None:
    handle = await _registered(services, ed25519_keypair)
    challenge = await services.protocol.challenge(handle)
    impostor = generate_keypair(KeyAlgorithm.ed25519)

    bad = await services.protocol.verify(handle, challenge.nonce, sign(challenge.nonce, impostor))
    assert bad.verified is False

    good = await services.protocol.verify(handle, challenge.nonce, sign(challenge.nonce, ed25519_keypair))
    assert good.verified is False


async def test_expired_challenge_is_rejected(
    services: AuthServices,
    ed25519_keypair: Keypair,
    clock: FakeClock,
) -> None:
    handle = await _registered(services, ed25519_keypair)
    challenge = await services.protocol.challenge(handle)
    clock.advance(timedelta(seconds=120))

    result = await services.protocol.verify(handle, challenge.nonce, sign(challenge.nonce, ed25519_keypair))
    assert result.verified is False


async def test_signature_over_unissued_nonce_is_rejected_without_signature_check(
    services: AuthServices,
    ed25519_keypair: Keypair,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    handle = await _registered(services, ed25519_keypair)
    await services.protocol.challenge(handle)
    forged_nonce = b"\x01" * 32

    calls: list[object] = []
    monkeypatch.setattr(
        "authgrid.core.protocol.verify_signature",
        lambda *args: calls.append(args) or True,
    )

    result = await services.protocol.verify(handle, forged_nonce, sign(forged_nonce, ed25519_keypair))
    assert result.verified is False
    assert calls == []


async def test_algorithm_is_taken_from_registration(
    services: AuthServices,
    ed25519_keypair: Keypair,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    handle = await _registered(services, ed25519_keypair)
    challenge = await services.protocol.challenge(handle)

    seen: list[KeyAlgorithm] = []

    def _spy(algorithm: KeyAlgorithm, *args: object) -> bool:
        seen.append(algorithm)
        return False

    monkeypatch.setattr("authgrid.core.protocol.verify_signature", _spy)
    await services.protocol.verify(handle, challenge.nonce, b"x" * 64)
    assert seen == [KeyAlgorithm.ed25519]


async def test_concurrent_verify_exactly_one_succeeds(services: AuthServices, ed25519_keypair: Keypair) -> None:
    handle = await _registered(services, ed25519_keypair)
    challenge = await services.protocol.challenge(handle)
    signature = sign(challenge.nonce, ed25519_keypair)

    results = await asyncio.gather(
        services.protocol.verify(handle, challenge.nonce, signature),
        services.protocol.verify(handle, challenge.nonce, signature),
    )

    assert sorted(r.verified for r in results) == [False, True]


async def test_independent_handles_verify_in_parallel(services: AuthServices) -> None:
    keypairs = [generate_keypair(KeyAlgorithm.ed25519) for _ in range(5)]
    handles = [await _registered(services, kp) for kp in keypairs]
    challenges = [await services.protocol.challenge(h) for h in handles]

    results = await asyncio.gather(
        *(
            services.protocol.verify(h, c.nonce, sign(c.nonce, kp))
            for h, c, kp in zip(handles, challenges, keypairs, strict=True)
        ),
    )
    assert all(r.verified for r in results)


async def test_logout_revokes_session(services: AuthServices, ed25519_keypair: Keypair) -> None:
    handle = await _registered(services, ed25519_keypair)
    challenge = await services.protocol.challenge(handle)
    result = await services.protocol.verify(handle, challenge.nonce, sign(challenge.nonce, ed25519_keypair))
    assert result.token is not None

    assert await services.protocol.logout(result.token) is True
    with pytest.raises(InvalidToken):
        await services.protocol.authenticate(result.token)


async def test_successful_verify_records_last_login(
    services: AuthServices,
    ed25519_keypair: Keypair,
    clock: FakeClock,
) -> None:
    handle = await _registered(services, ed25519_keypair)
    challenge = await services.protocol.challenge(handle)
    await services.protocol.verify(handle, challenge.nonce, sign(challenge.nonce, ed25519_keypair))

    identity = await services.protocol.lookup(handle)
    assert identity.last_login_at == clock.now


async def test_nonce_never_logged(
    services: AuthServices,
    ed25519_keypair: Keypair,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.DEBUG, logger="authgrid")
    handle = await _registered(services, ed25519_keypair)
    challenge = await services.protocol.challenge(handle)
    result = await services.protocol.verify(handle, challenge.nonce, sign(challenge.nonce, ed25519_keypair))

    assert challenge.nonce.hex() not in caplog.text
    assert key_codec.encode(challenge.nonce) not in caplog.text
    assert result.token is not None
    assert result.token not in caplog.text
