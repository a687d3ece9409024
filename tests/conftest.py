from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from authgrid.client.keys import Keypair, generate_keypair
from authgrid.config import AuthgridSettings
from authgrid.factory import AuthServices, build_services
from authgrid.models.identity import KeyAlgorithm
from authgrid.persistence import InMemoryChallengeStorage, InMemoryIdentityStore, InMemorySessionStore

from tests.helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def settings() -> AuthgridSettings:
    return AuthgridSettings(
        challenges={"ttl_s": 120},
        sessions={"ttl_s": int(timedelta(hours=24).total_seconds())},
    )


@pytest.fixture
def services(settings: AuthgridSettings, clock: FakeClock) -> AuthServices:
    return build_services(
        settings,
        identity_store=InMemoryIdentityStore(),
        challenge_storage=InMemoryChallengeStorage(),
        session_store=InMemorySessionStore(),
        clock=clock,
    )


@pytest.fixture
def ed25519_keypair() -> Keypair:
    return generate_keypair(KeyAlgorithm.ed25519)


@pytest.fixture
def ecdsa_keypair() -> Keypair:
    return generate_keypair(KeyAlgorithm.ecdsa)
