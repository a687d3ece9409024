"""Transport-safe textual encoding for keys, nonces and signatures."""

from __future__ import annotations

import base64
from binascii import Error as BinasciiError
from typing import Annotated

from pydantic import PlainSerializer, PlainValidator

from authgrid.errors import MalformedEncoding


def encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def decode(text: str) -> bytes:
    """Decode standard padded base64, rejecting anything outside the alphabet."""
    if not isinstance(text, str):
        raise MalformedEncoding("base64 value must be a string")
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (BinasciiError, UnicodeEncodeError) as exc:
        raise MalformedEncoding() from exc


def _validate_base64_bytes(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        try:
            return decode(value)
        except MalformedEncoding as exc:
            raise ValueError("invalid base64 data") from exc
    raise TypeError("Base64Bytes must be provided as bytes or base64 string")


Base64Bytes = Annotated[
    bytes,
    PlainValidator(_validate_base64_bytes),
    PlainSerializer(encode, return_type=str, when_used="json"),
]


__all__ = ["Base64Bytes", "decode", "encode"]
