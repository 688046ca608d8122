"""Shared string enumerations used across bounded contexts."""

from __future__ import annotations

from enum import StrEnum


class AudioCategory(StrEnum):
    """Independently mixed audio channels of a session."""

    PLAYLIST = "playlist"
    AMBIENCE = "ambience"
    SFX = "sfx"


class OverflowPolicy(StrEnum):
    """What a subscription does when its bounded queue is full."""

    DROP_OLDEST = "drop_oldest"
    DISCONNECT = "disconnect"
