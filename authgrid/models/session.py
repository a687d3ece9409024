from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from authgrid.models.common import ensure_timezone_aware, utc_now


class Session(BaseModel):
    handle: str
    token: str
    issued_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime

    @field_validator("issued_at", "expires_at")
    @classmethod
    def _ensure_timezone_aware(cls, value: datetime) -> datetime:
        return ensure_timezone_aware(value)

    @model_validator(mode="after")
    def _validate_window(self) -> Session:
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be greater than issued_at")
        return self


class SessionRecord(BaseModel):
    """Server-side view of a session; holds only the token digest."""

    token_digest: str
    handle: str
    issued_at: datetime
    expires_at: datetime

    @field_validator("issued_at", "expires_at")
    @classmethod
    def _ensure_timezone_aware(cls, value: datetime) -> datetime:
        return ensure_timezone_aware(value)


class VerifyResult(BaseModel):
    verified: bool
    token: str | None = None
    expires_at: datetime | None = None

    @classmethod
    def rejected(cls) -> VerifyResult:
        return cls(verified=False)


__all__ = ["Session", "SessionRecord", "VerifyResult"]
