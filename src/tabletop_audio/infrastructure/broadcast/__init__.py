"""In-process broadcast channel implementation."""

from tabletop_audio.infrastructure.broadcast.memory_channel import (
    InMemoryBroadcastChannel,
    InMemorySubscription,
)

__all__ = [
    "InMemoryBroadcastChannel",
    "InMemorySubscription",
]
