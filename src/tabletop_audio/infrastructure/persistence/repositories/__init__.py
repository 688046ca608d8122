"""SQLite repository implementations."""

from tabletop_audio.infrastructure.persistence.repositories.collection_repository import (
    SQLiteCollectionRepository,
)
from tabletop_audio.infrastructure.persistence.repositories.file_repository import (
    SQLiteAudioFileRepository,
)
from tabletop_audio.infrastructure.persistence.repositories.folder_repository import (
    SQLiteFolderRepository,
)

__all__ = [
    "SQLiteFolderRepository",
    "SQLiteAudioFileRepository",
    "SQLiteCollectionRepository",
]
