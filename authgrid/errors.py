"""Exception taxonomy for the authentication core.

Every error is scoped to a single request. ``status_code`` is the HTTP
status the web layer answers with when the error escapes to a client.
"""

from __future__ import annotations


class AuthgridError(Exception):
    status_code: int = 400
    default_message: str = "authentication error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class UnknownHandle(AuthgridError):
    status_code = 404
    default_message = "Handle not found"


class DuplicateHandle(AuthgridError):
    status_code = 409
    default_message = "Handle already exists"


class InvalidKeyEncoding(AuthgridError):
    default_message = "Invalid public key encoding"


class UnsupportedAlgorithm(AuthgridError):
    default_message = "Only ed25519 and ecdsa key types are supported"


class MalformedEncoding(AuthgridError):
    default_message = "Malformed base64 encoding"


class ChallengeError(AuthgridError):
    default_message = "Challenge rejected"


class ChallengeNotFound(ChallengeError):
    status_code = 404
    default_message = "Challenge not found"


class ChallengeExpired(ChallengeError):
    default_message = "Challenge expired"


class ChallengeAlreadyConsumed(ChallengeError):
    default_message = "Challenge already used"


class NonceMismatch(ChallengeError):
    default_message = "Challenge does not match"


class SignatureInvalid(AuthgridError):
    status_code = 401
    default_message = "Invalid signature"


class TokenError(AuthgridError):
    status_code = 401
    default_message = "Invalid session token"


class InvalidToken(TokenError):
    pass


class ExpiredToken(TokenError):
    default_message = "Session token expired"


__all__ = [
    "AuthgridError",
    "ChallengeAlreadyConsumed",
    "ChallengeError",
    "ChallengeExpired",
    "ChallengeNotFound",
    "DuplicateHandle",
    "ExpiredToken",
    "InvalidKeyEncoding",
    "InvalidToken",
    "MalformedEncoding",
    "NonceMismatch",
    "SignatureInvalid",
    "TokenError",
    "UnknownHandle",
    "UnsupportedAlgorithm",
]
