"""Reusable Pydantic Annotated types for domain-wide validation.

Every constrained type used across bounded contexts is defined here once,
so models can simply annotate their fields::

    from tabletop_audio.domain.shared.types import EntityId, NonEmptyStr

    class MyModel(BaseModel):
        folder_id: EntityId
        name: NonEmptyStr
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from pydantic import BeforeValidator, Field, StringConstraints

# ── Numeric constraints ─────────────────────────────────────────────

EntityId = Annotated[int, Field(gt=0)]
"""Positive database row id."""

NonNegativeInt = Annotated[int, Field(ge=0)]
"""Integer >= 0."""

NonNegativeFloat = Annotated[float, Field(ge=0.0)]
"""Float >= 0.0."""

UnitInterval = Annotated[float, Field(ge=0.0, le=1.0)]
"""Float in [0.0, 1.0], used for volume levels."""

DurationSeconds = Annotated[float, Field(ge=0.0, le=86_400.0)]
"""Audio duration in seconds: 0 … 86 400 (24 hours)."""

DelayMs = Annotated[int, Field(ge=0, le=600_000)]
"""Macro cue offset in milliseconds: 0 … 10 minutes."""

# ── String constraints ──────────────────────────────────────────────

NonEmptyStr = Annotated[str, Field(min_length=1)]
"""String with at least one character."""

NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
"""Folder, file or collection name: 1-255 characters after stripping."""

SessionIdStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=128)]
"""Logical session identifier."""

# ── Datetime constraints ────────────────────────────────────────────

def _ensure_utc(v: datetime) -> datetime:
    """Validate that a datetime is timezone-aware and normalise to UTC."""
    if v.tzinfo is None:
        raise ValueError("datetime must be timezone-aware (UTC)")
    return v.astimezone(UTC)

UtcDatetimeField = Annotated[datetime, BeforeValidator(_ensure_utc)]
"""Timezone-aware datetime, normalised to UTC on input."""
