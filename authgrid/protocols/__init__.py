from authgrid.protocols.challenges import ChallengeStorage
from authgrid.protocols.identities import IdentityStore
from authgrid.protocols.keystore import KeyStore
from authgrid.protocols.sessions import SessionStore

__all__ = ["ChallengeStorage", "IdentityStore", "KeyStore", "SessionStore"]
