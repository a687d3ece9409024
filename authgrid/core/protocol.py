"""Register / challenge / verify orchestration.

An authentication attempt moves ``Registered -> ChallengeIssued`` and then
ends in ``Verified`` or ``Rejected``. A rejected attempt has burned its
challenge and must start again with a fresh one.
"""

from __future__ import annotations

import logging

from authgrid.core.challenge_store import ChallengeStore
from authgrid.core.identity_registry import IdentityRegistry
from authgrid.core.session_issuer import SessionIssuer
from authgrid.core.signatures import verify_signature
from authgrid.errors import ChallengeError, UnsupportedAlgorithm
from authgrid.models.challenge import Challenge
from authgrid.models.identity import Identity, KeyAlgorithm
from authgrid.models.session import VerifyResult

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS: frozenset[KeyAlgorithm] = frozenset(KeyAlgorithm)


def parse_algorithm(value: KeyAlgorithm | str) -> KeyAlgorithm:
    if isinstance(value, KeyAlgorithm):
        algorithm = value
    else:
        try:
            algorithm = KeyAlgorithm(str(value).strip().lower())
        except ValueError as exc:
            raise UnsupportedAlgorithm() from exc
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise UnsupportedAlgorithm()
    return algorithm


class AuthProtocol:
    def __init__(
        self,
        registry: IdentityRegistry,
        challenges: ChallengeStore,
        sessions: SessionIssuer,
    ) -> None:
        self._registry = registry
        self._challenges = challenges
        self._sessions = sessions

    async def register(self, public_key: bytes, algorithm: KeyAlgorithm | str) -> Identity:
        return await self._registry.register(public_key, parse_algorithm(algorithm))

    async def challenge(self, handle: str) -> Challenge:
        await self._registry.lookup(handle)
        return await self._challenges.issue(handle)

    async def verify(self, handle: str, nonce: bytes, signature: bytes) -> VerifyResult:
        identity = await self._registry.lookup(handle)

        # Consume before any signature work: a dead challenge must not let a
        # caller learn whether the signature would have been accepted.
        try:
            await self._challenges.consume(handle, nonce)
        except ChallengeError as exc:
            logger.debug("Verify rejected for %s: %s", handle, exc.message)
            return VerifyResult.rejected()

        # The algorithm comes from registration, never from the request.
        if not verify_signature(identity.algorithm, identity.public_key, nonce, signature):
            logger.debug("Verify rejected for %s: invalid signature", handle)
            return VerifyResult.rejected()

        session = await self._sessions.issue(handle)
        try:
            await self._registry.touch_login(handle, session.issued_at)
        except Exception:  # noqa: BLE001
            logger.warning("Could not record last login for %s", handle, exc_info=True)

        logger.info("Verified %s", handle)
        return VerifyResult(verified=True, token=session.token, expires_at=session.expires_at)

    async def authenticate(self, token: str) -> str:
        return await self._sessions.validate(token)

    async def logout(self, token: str) -> bool:
        return await self._sessions.revoke(token)

    async def lookup(self, handle: str) -> Identity:
        return await self._registry.lookup(handle)


__all__ = ["SUPPORTED_ALGORITHMS", "AuthProtocol", "parse_algorithm"]
