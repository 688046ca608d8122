"""Infrastructure layer - external systems integration.

This layer contains implementations for:
- Persistence (SQLite database and repositories)
- Broadcast (in-process event channel)
"""

from tabletop_audio.infrastructure.broadcast.memory_channel import InMemoryBroadcastChannel
from tabletop_audio.infrastructure.persistence.database import Database

__all__ = [
    "InMemoryBroadcastChannel",
    "Database",
]
