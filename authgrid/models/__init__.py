from __future__ import annotations

from authgrid.models.challenge import Challenge
from authgrid.models.common import Clock, utc_now
from authgrid.models.identity import Identity, KeyAlgorithm
from authgrid.models.session import Session, SessionRecord, VerifyResult

__all__ = [
    "Challenge",
    "Clock",
    "Identity",
    "KeyAlgorithm",
    "Session",
    "SessionRecord",
    "VerifyResult",
    "utc_now",
]
