"""Clock abstraction used to stamp sync rounds."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_aware(value: datetime | None) -> datetime | None:
    """Return ``value`` converted to UTC, rejecting naive datetimes."""

    if value is None:
        return None
    if value.tzinfo is None:
        raise ValueError("Sync timestamps must include timezone information")
    return value.astimezone(UTC)


__all__ = ["Clock", "ensure_aware", "utcnow"]
