from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from authgrid.core.key_codec import Base64Bytes
from authgrid.models.common import ensure_timezone_aware, utc_now


class Challenge(BaseModel):
    handle: str
    nonce: Base64Bytes
    issued_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    consumed: bool = False

    @field_validator("issued_at", "expires_at")
    @classmethod
    def _ensure_timezone_aware(cls, value: datetime) -> datetime:
        return ensure_timezone_aware(value)

    @model_validator(mode="after")
    def _validate_window(self) -> Challenge:
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be greater than issued_at")
        return self

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


__all__ = ["Challenge"]
