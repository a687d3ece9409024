from __future__ import annotations

from datetime import UTC, datetime

DEFAULT_TIMEOUT_S = 5.0


def to_iso(value: datetime) -> str:
    # Fixed-width UTC text keeps lexicographic order equal to time order.
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_dt(value: str | None) -> datetime | None:
    if value is None:
        return None

    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)
