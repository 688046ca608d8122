"""
Library Bounded Context

Folders, audio files, ordered collections and the rules that keep them
consistent.
"""

from tabletop_audio.domain.library.entities import (
    AudioCollection,
    AudioFile,
    CollectionItem,
    Folder,
)
from tabletop_audio.domain.library.ordering import InsertPlan, PositionAllocator
from tabletop_audio.domain.library.repository import (
    AudioFileRepository,
    CollectionRepository,
    FolderRepository,
)
from tabletop_audio.domain.library.services import CollectionGraph, CollectionRules, FolderTree
from tabletop_audio.domain.library.value_objects import (
    AudioType,
    CollectionType,
    FolderType,
    ItemKind,
    ItemRef,
)

__all__ = [
    # Entities
    "Folder",
    "AudioFile",
    "AudioCollection",
    "CollectionItem",
    # Value Objects
    "AudioType",
    "FolderType",
    "CollectionType",
    "ItemKind",
    "ItemRef",
    # Ordering
    "PositionAllocator",
    "InsertPlan",
    # Repositories
    "FolderRepository",
    "AudioFileRepository",
    "CollectionRepository",
    # Services
    "CollectionRules",
    "CollectionGraph",
    "FolderTree",
]
