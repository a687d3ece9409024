from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from authgrid.client.keys import Keypair


@runtime_checkable
class KeyStore(Protocol):
    """Capability boundary around client-side private key material."""

    def save(self, handle: str, keypair: Keypair) -> None: ...

    def load(self, handle: str) -> Keypair: ...

    def list_handles(self) -> list[str]: ...

    def remove(self, handle: str) -> bool: ...


__all__ = ["KeyStore"]
