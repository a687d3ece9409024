"""Consumer-side driver for register / challenge / verify."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from authgrid.client.http import ApiError, AuthClient
from authgrid.client.keys import Keypair, generate_keypair, sign
from authgrid.models.identity import KeyAlgorithm
from authgrid.protocols.keystore import KeyStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Registration:
    handle: str
    id: str
    algorithm: KeyAlgorithm


@dataclass(frozen=True, slots=True)
class LoginResult:
    handle: str
    token: str
    expires_at: datetime | None


class ClientAgent:
    def __init__(
        self,
        client: AuthClient,
        keystore: KeyStore,
        *,
        allow_fallback: bool = True,
    ) -> None:
        self._client = client
        self._keystore = keystore
        self._allow_fallback = allow_fallback

    def generate_keypair(self, algorithm: KeyAlgorithm | None = None) -> Keypair:
        return generate_keypair(algorithm, allow_fallback=self._allow_fallback)

    def register(self, algorithm: KeyAlgorithm | None = None) -> Registration:
        keypair = self.generate_keypair(algorithm)
        response = self._client.register(keypair.public_key_bytes(), keypair.algorithm)

        handle = response.get("handle")
        if not isinstance(handle, str) or not handle:
            raise ApiError("invalid response from server", 502)

        # The keypair's algorithm is persisted with it and reused at every login.
        self._keystore.save(handle, keypair)
        logger.info("Registered %s with %s key", handle, keypair.algorithm.value)
        return Registration(handle=handle, id=str(response.get("id", "")), algorithm=keypair.algorithm)

    def login(self, handle: str) -> LoginResult:
        keypair = self._keystore.load(handle)
        nonce = self._client.challenge(handle)
        response = self._client.verify(handle, nonce, sign(nonce, keypair))

        if response.get("verified") is not True:
            raise ApiError("Authentication failed", 401)

        token = response.get("token")
        if not isinstance(token, str) or not token:
            raise ApiError("invalid verify response", 502)
        raw_expiry = response.get("expires_at")
        expires_at = datetime.fromisoformat(raw_expiry) if isinstance(raw_expiry, str) else None
        return LoginResult(handle=handle, token=token, expires_at=expires_at)

    def logout(self, token: str) -> None:
        self._client.logout(token)

    def list_handles(self) -> list[str]:
        return self._keystore.list_handles()

    def remove(self, handle: str) -> bool:
        return self._keystore.remove(handle)


__all__ = ["ClientAgent", "LoginResult", "Registration"]
