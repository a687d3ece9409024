from authgrid.client.agent import ClientAgent, LoginResult, Registration
from authgrid.client.http import ApiError, AuthClient
from authgrid.client.keys import Keypair, generate_keypair, sign
from authgrid.client.keystore import FileKeyStore, KeyringKeyStore

__all__ = [
    "ApiError",
    "AuthClient",
    "ClientAgent",
    "FileKeyStore",
    "Keypair",
    "KeyringKeyStore",
    "LoginResult",
    "Registration",
    "generate_keypair",
    "sign",
]
