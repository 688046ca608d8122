"""Value objects for the session playback bounded context."""

from __future__ import annotations

from tabletop_audio.domain.shared.enums import AudioCategory

DEFAULT_VOLUME = 1.0
MIN_VOLUME = 0.0
MAX_VOLUME = 1.0

__all__ = ["AudioCategory", "DEFAULT_VOLUME", "MIN_VOLUME", "MAX_VOLUME", "is_valid_volume"]


def is_valid_volume(level: float) -> bool:
    """True for levels inside ``[0, 1]``; NaN and infinities are rejected."""
    try:
        return MIN_VOLUME <= float(level) <= MAX_VOLUME
    except (TypeError, ValueError):
        return False
