"""Signature verification dispatched on the registered key algorithm."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeAlias

from cryptography.exceptions import InvalidSignature
from cryptography.exceptions import UnsupportedAlgorithm as CryptoUnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from authgrid.errors import InvalidKeyEncoding
from authgrid.models.identity import KeyAlgorithm

logger = logging.getLogger(__name__)

ED25519_PUBLIC_KEY_SIZE = 32
P256_RAW_SIGNATURE_SIZE = 64
_P256_COORDINATE_SIZE = 32

PublicKey: TypeAlias = Ed25519PublicKey | ec.EllipticCurvePublicKey

_KEY_ERRORS = (ValueError, TypeError, CryptoUnsupportedAlgorithm)


def _load_ed25519(raw: bytes) -> Ed25519PublicKey:
    if len(raw) == ED25519_PUBLIC_KEY_SIZE:
        try:
            return Ed25519PublicKey.from_public_bytes(raw)
        except _KEY_ERRORS as exc:
            raise InvalidKeyEncoding("Invalid Ed25519 public key") from exc

    # Browsers export SubjectPublicKeyInfo rather than the raw 32 bytes.
    try:
        key = serialization.load_der_public_key(raw)
    except _KEY_ERRORS as exc:
        raise InvalidKeyEncoding(
            f"Invalid Ed25519 key length: got {len(raw)}, want {ED25519_PUBLIC_KEY_SIZE}",
        ) from exc
    if not isinstance(key, Ed25519PublicKey):
        raise InvalidKeyEncoding("public key is not Ed25519")
    return key


def _load_p256(raw: bytes) -> ec.EllipticCurvePublicKey:
    try:
        key = serialization.load_der_public_key(raw)
    except _KEY_ERRORS:
        try:
            key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), raw)
        except _KEY_ERRORS as exc:
            raise InvalidKeyEncoding("failed to parse ECDSA public key") from exc

    if not isinstance(key, ec.EllipticCurvePublicKey):
        raise InvalidKeyEncoding("public key is not ECDSA")
    if not isinstance(key.curve, ec.SECP256R1):
        raise InvalidKeyEncoding(f"unsupported ECDSA curve: {key.curve.name}")
    return key


_LOADERS: dict[KeyAlgorithm, Callable[[bytes], PublicKey]] = {
    KeyAlgorithm.ed25519: _load_ed25519,
    KeyAlgorithm.ecdsa: _load_p256,
}


def load_public_key(algorithm: KeyAlgorithm, raw: bytes) -> PublicKey:
    """Parse ``raw`` as a public key for ``algorithm`` or raise InvalidKeyEncoding."""
    return _LOADERS[algorithm](raw)


def _verify_ed25519(raw_key: bytes, message: bytes, signature: bytes) -> None:
    key = _load_ed25519(raw_key)
    key.verify(signature, message)


def _verify_p256(raw_key: bytes, message: bytes, signature: bytes) -> None:
    key = _load_p256(raw_key)
    # WebCrypto emits r||s; everything else is expected to be DER.
    if len(signature) == P256_RAW_SIGNATURE_SIZE:
        r = int.from_bytes(signature[:_P256_COORDINATE_SIZE], "big")
        s = int.from_bytes(signature[_P256_COORDINATE_SIZE:], "big")
        signature = encode_dss_signature(r, s)
    key.verify(signature, message, ec.ECDSA(hashes.SHA256()))


_VERIFIERS: dict[KeyAlgorithm, Callable[[bytes, bytes, bytes], None]] = {
    KeyAlgorithm.ed25519: _verify_ed25519,
    KeyAlgorithm.ecdsa: _verify_p256,
}


def verify_signature(
    algorithm: KeyAlgorithm,
    public_key: bytes,
    message: bytes,
    signature: bytes,
) -> bool:
    """Return True only if ``signature`` is valid over exactly ``message``.

    Never raises for bad input: malformed keys, malformed signatures and
    signatures produced under another scheme all yield False.
    """
    verifier = _VERIFIERS.get(algorithm)
    if verifier is None:
        return False
    try:
        verifier(public_key, message, signature)
    except InvalidSignature:
        return False
    except (InvalidKeyEncoding, *_KEY_ERRORS) as exc:
        logger.debug("signature check failed on malformed input: %s", exc)
        return False
    return True


__all__ = [
    "ED25519_PUBLIC_KEY_SIZE",
    "PublicKey",
    "load_public_key",
    "verify_signature",
]
