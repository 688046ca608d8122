"""
Sync Bounded Context

Typed audio events and broadcast namespaces.
"""

from tabletop_audio.domain.sync.events import (
    AudioEvent,
    AudioEventPayload,
    AudioEventType,
    Namespace,
)

__all__ = [
    "AudioEvent",
    "AudioEventPayload",
    "AudioEventType",
    "Namespace",
]
