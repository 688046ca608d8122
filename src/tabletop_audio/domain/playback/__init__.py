"""
Playback Bounded Context

Per-session volumes, active items and playlist state.
"""

from tabletop_audio.domain.playback.entities import PlaybackStateKeeper, SessionAudioState
from tabletop_audio.domain.playback.value_objects import AudioCategory

__all__ = [
    "AudioCategory",
    "SessionAudioState",
    "PlaybackStateKeeper",
]
