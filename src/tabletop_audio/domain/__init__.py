"""
Domain Layer

Contains pure business logic organized by bounded contexts:
- shared/: Constrained types, exceptions and message constants
- library/: Folders, files, collections and ordering
- playback/: Per-session volume and selection state
- sync/: Real-time audio events
"""

from tabletop_audio.domain.shared.exceptions import DomainError

__all__ = [
    "DomainError",
]
