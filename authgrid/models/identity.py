from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from authgrid.core.key_codec import Base64Bytes
from authgrid.models.common import ensure_timezone_aware, utc_now


class KeyAlgorithm(StrEnum):
    """Signature schemes an identity can register with.

    The value doubles as the ``key_type`` wire field.
    """

    ed25519 = "ed25519"
    ecdsa = "ecdsa"


class Identity(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    handle: str
    public_key: Base64Bytes
    algorithm: KeyAlgorithm
    created_at: datetime = Field(default_factory=utc_now)
    last_login_at: datetime | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("created_at")
    @classmethod
    def _ensure_timezone_aware(cls, value: datetime) -> datetime:
        return ensure_timezone_aware(value)

    @field_validator("last_login_at")
    @classmethod
    def _ensure_timezone_aware_optional(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return ensure_timezone_aware(value)


__all__ = ["Identity", "KeyAlgorithm"]
