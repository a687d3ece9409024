"""Local persistence of client keypairs, scoped by handle.

Private keys are the most sensitive material in the system, so they are
reached only through the ``KeyStore`` protocol and a stricter backend can
replace these without touching the signing flow.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path

import keyring
import keyring.errors

from authgrid.client.keys import Keypair
from authgrid.core import key_codec
from authgrid.errors import InvalidKeyEncoding
from authgrid.models.identity import KeyAlgorithm

logger = logging.getLogger(__name__)

_KEYFILE_SUFFIX = ".key"
_DIR_MODE = 0o700
_FILE_MODE = 0o600


def _serialize(handle: str, keypair: Keypair) -> str:
    return json.dumps(
        {
            "handle": handle,
            "algorithm": keypair.algorithm.value,
            "private_key": key_codec.encode(keypair.private_key_bytes()),
            "public_key": key_codec.encode(keypair.public_key_bytes()),
            "saved_at": datetime.now(UTC).isoformat(),
        },
        sort_keys=True,
    )


def _deserialize(raw: str) -> Keypair:
    try:
        data = json.loads(raw)
        algorithm = KeyAlgorithm(data["algorithm"])
        private_der = key_codec.decode(data["private_key"])
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        raise InvalidKeyEncoding("invalid keyfile") from exc
    return Keypair.from_private_bytes(algorithm, private_der)


def _check_handle(handle: str) -> str:
    if not handle or handle.startswith(".") or any(sep in handle for sep in ("/", "\\", "\0")):
        raise ValueError(f"invalid handle for key storage: {handle!r}")
    return handle


class FileKeyStore:
    """One JSON keyfile per handle inside a private directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()

    def _path(self, handle: str) -> Path:
        return self.directory / f"{_check_handle(handle)}{_KEYFILE_SUFFIX}"

    def save(self, handle: str, keypair: Keypair) -> None:
        self.directory.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)
        path = self._path(handle)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as handle_file:
            handle_file.write(_serialize(handle, keypair))
        # O_CREAT's mode is ignored for pre-existing files.
        os.chmod(path, _FILE_MODE)

    def load(self, handle: str) -> Keypair:
        path = self._path(handle)
        if not path.is_file():
            raise KeyError(f"no keypair stored for handle '{handle}'")
        return _deserialize(path.read_text(encoding="utf-8"))

    def list_handles(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(
            path.name.removesuffix(_KEYFILE_SUFFIX)
            for path in self.directory.iterdir()
            if path.is_file() and path.name.endswith(_KEYFILE_SUFFIX)
        )

    def remove(self, handle: str) -> bool:
        path = self._path(handle)
        if not path.exists():
            return False
        path.unlink()
        return True


class KeyringKeyStore:
    """Keypairs in the OS keyring, with an index entry for listing."""

    _INDEX_NAME = "__handles__"

    def __init__(self, service_name: str = "authgrid") -> None:
        self._service_name = service_name

    def _credential_name(self, handle: str) -> str:
        return f"{_check_handle(handle)}:keypair"

    def save(self, handle: str, keypair: Keypair) -> None:
        keyring.set_password(self._service_name, self._credential_name(handle), _serialize(handle, keypair))
        handles = set(self.list_handles())
        handles.add(handle)
        self._write_index(handles)

    def load(self, handle: str) -> Keypair:
        raw = keyring.get_password(self._service_name, self._credential_name(handle))
        if raw is None:
            raise KeyError(f"no keypair stored for handle '{handle}'")
        return _deserialize(raw)

    def list_handles(self) -> list[str]:
        raw = keyring.get_password(self._service_name, self._INDEX_NAME)
        if not raw:
            return []
        try:
            handles = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Keyring handle index is corrupted; treating as empty")
            return []
        return sorted(h for h in handles if isinstance(h, str))

    def remove(self, handle: str) -> bool:
        handles = set(self.list_handles())
        existed = keyring.get_password(self._service_name, self._credential_name(handle)) is not None
        with contextlib.suppress(keyring.errors.PasswordDeleteError):
            keyring.delete_password(self._service_name, self._credential_name(handle))
        if handle in handles:
            handles.discard(handle)
            self._write_index(handles)
        return existed

    def _write_index(self, handles: set[str]) -> None:
        keyring.set_password(self._service_name, self._INDEX_NAME, json.dumps(sorted(handles)))


__all__ = ["FileKeyStore", "KeyringKeyStore"]
