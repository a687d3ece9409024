"""Client-side keypairs and challenge signing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TypeAlias

from cryptography.exceptions import UnsupportedAlgorithm as CryptoUnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from authgrid.errors import InvalidKeyEncoding, UnsupportedAlgorithm
from authgrid.models.identity import KeyAlgorithm

logger = logging.getLogger(__name__)

PrivateKey: TypeAlias = Ed25519PrivateKey | ec.EllipticCurvePrivateKey


@dataclass(frozen=True, slots=True)
class Keypair:
    algorithm: KeyAlgorithm
    private_key: PrivateKey

    def public_key_bytes(self) -> bytes:
        """Raw 32 bytes for Ed25519, SubjectPublicKeyInfo DER for ECDSA."""
        public_key = self.private_key.public_key()
        if self.algorithm is KeyAlgorithm.ed25519:
            return public_key.public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
        return public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def private_key_bytes(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    @classmethod
    def from_private_bytes(cls, algorithm: KeyAlgorithm, der: bytes) -> Keypair:
        try:
            private_key = serialization.load_der_private_key(der, password=None)
        except (ValueError, TypeError, CryptoUnsupportedAlgorithm) as exc:
            raise InvalidKeyEncoding("stored private key has invalid format") from exc

        expected = Ed25519PrivateKey if algorithm is KeyAlgorithm.ed25519 else ec.EllipticCurvePrivateKey
        if not isinstance(private_key, expected):
            raise InvalidKeyEncoding(f"stored private key is not {algorithm.value}")
        return cls(algorithm=algorithm, private_key=private_key)


def ed25519_available() -> bool:
    try:
        Ed25519PrivateKey.generate()
    except CryptoUnsupportedAlgorithm:
        return False
    return True


def generate_keypair(
    algorithm: KeyAlgorithm | None = None,
    *,
    allow_fallback: bool = True,
) -> Keypair:
    """Create a fresh keypair, preferring Ed25519.

    With no explicit algorithm, ECDSA P-256 is used only when the local
    crypto backend lacks Ed25519 and ``allow_fallback`` permits it. The
    returned ``Keypair.algorithm`` records the choice.
    """
    if algorithm is None:
        if ed25519_available():
            algorithm = KeyAlgorithm.ed25519
        elif allow_fallback:
            logger.warning("Ed25519 not supported by the crypto backend, using ECDSA P-256")
            algorithm = KeyAlgorithm.ecdsa
        else:
            raise UnsupportedAlgorithm("Ed25519 is unavailable and algorithm fallback is disabled")

    if algorithm is KeyAlgorithm.ed25519:
        try:
            return Keypair(algorithm=algorithm, private_key=Ed25519PrivateKey.generate())
        except CryptoUnsupportedAlgorithm as exc:
            raise UnsupportedAlgorithm("Ed25519 is not supported by the crypto backend") from exc
    return Keypair(algorithm=algorithm, private_key=ec.generate_private_key(ec.SECP256R1()))


def sign(nonce: bytes, keypair: Keypair) -> bytes:
    """Sign exactly ``nonce`` with no framing under the keypair's algorithm."""
    if keypair.algorithm is KeyAlgorithm.ed25519:
        return keypair.private_key.sign(nonce)
    return keypair.private_key.sign(nonce, ec.ECDSA(hashes.SHA256()))


__all__ = ["Keypair", "ed25519_available", "generate_keypair", "sign"]
