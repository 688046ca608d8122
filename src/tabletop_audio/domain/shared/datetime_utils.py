"""Date/time helpers.

Goal: centralize all date/time serialization + parsing.

- Always store and operate on timezone-aware UTC datetimes.
- SQLite rows hold ISO 8601 strings with an explicit ``+00:00`` offset.

This module is dependency-free and safe to use in any layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from .messages import ErrorMessages


@dataclass(frozen=True, slots=True)
class UtcDateTime:
    """A tiny value-object wrapper around a timezone-aware UTC `datetime`."""

    dt: datetime

    def __post_init__(self) -> None:
        if self.dt.tzinfo is None:
            raise ValueError(ErrorMessages.TIMEZONE_REQUIRED_UTC_DATETIME)
        object.__setattr__(self, "dt", self.dt.astimezone(UTC))

    # ---- Constructors ----

    @classmethod
    def now(cls) -> UtcDateTime:
        return cls(datetime.now(UTC))

    @classmethod
    def from_iso(cls, value: str) -> UtcDateTime:
        # Accepts: '...+00:00', '...Z' or a naive value written by SQLite defaults
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return cls(parsed)

    # ---- Computed fields / formats ----

    @property
    def iso(self) -> str:
        """RFC3339/ISO8601 with explicit offset (+00:00)."""
        return self.dt.isoformat()

    @property
    def unix_millis(self) -> int:
        return int(self.dt.timestamp() * 1000)

    @property
    def human_utc(self) -> str:
        return self.dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def utcnow() -> datetime:
    """Return a timezone-aware datetime in UTC."""
    return datetime.now(UTC)
