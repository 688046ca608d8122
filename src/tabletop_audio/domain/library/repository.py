"""
Library Domain Repository Interfaces

Abstract base classes defining the contracts for library persistence.
Implementations live in the infrastructure layer.

Methods that take a ``reposition`` mapping apply it (row id -> new position)
in the same transaction as the primary write, so a renumber and the insert
or move that triggered it commit together.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping

from tabletop_audio.domain.library.entities import AudioCollection, AudioFile, CollectionItem, Folder
from tabletop_audio.domain.library.value_objects import AudioType, CollectionType


class FolderRepository(ABC):
    """Abstract repository for the folder tree."""

    @abstractmethod
    async def get(self, folder_id: int) -> Folder | None:
        """Retrieve a folder (without children) by id."""
        ...

    @abstractmethod
    async def get_root(self) -> Folder | None:
        """Retrieve the first root folder, if any."""
        ...

    @abstractmethod
    async def list_all(self) -> list[Folder]:
        """Every folder as a flat list (children left empty)."""
        ...

    @abstractmethod
    async def add(self, folder: Folder, reposition: Mapping[int, float] | None = None) -> Folder:
        """Insert a folder and return it with its id assigned."""
        ...

    @abstractmethod
    async def rename(self, folder_id: int, name: str) -> bool:
        """Rename a folder.

        Returns:
            True if the folder existed.
        """
        ...

    @abstractmethod
    async def move(
        self,
        folder_id: int,
        parent_id: int,
        position: float,
        reposition: Mapping[int, float] | None = None,
    ) -> None:
        """Re-parent a folder and set its position among its new siblings."""
        ...

    @abstractmethod
    async def delete_subtree(self, folder_id: int) -> tuple[int, int]:
        """Delete a folder, its descendants and their files.

        Collection memberships that reference the deleted files are dropped
        in the same transaction.

        Returns:
            ``(folders_deleted, files_deleted)``.
        """
        ...


class AudioFileRepository(ABC):
    """Abstract repository for registered audio files."""

    @abstractmethod
    async def get(self, file_id: int) -> AudioFile | None:
        ...

    @abstractmethod
    async def list_by_folder(self, folder_id: int) -> list[AudioFile]:
        """Files directly inside a folder, ordered by name."""
        ...

    @abstractmethod
    async def audio_types_in_folders(self, folder_ids: Iterable[int]) -> set[AudioType]:
        """Distinct audio types of every file held by the given folders."""
        ...

    @abstractmethod
    async def add(self, file: AudioFile) -> AudioFile:
        """Insert a file and return it with its id assigned."""
        ...

    @abstractmethod
    async def rename(self, file_id: int, name: str) -> bool:
        ...

    @abstractmethod
    async def move(self, file_id: int, folder_id: int) -> bool:
        ...

    @abstractmethod
    async def delete_many(self, file_ids: Iterable[int]) -> tuple[int, int]:
        """Delete files and every membership referencing them.

        Returns:
            ``(files_deleted, memberships_dropped)``.
        """
        ...


class CollectionRepository(ABC):
    """Abstract repository for AudioCollection aggregates and their items."""

    @abstractmethod
    async def get(self, collection_id: int) -> AudioCollection | None:
        """Load a collection with all of its items from one read snapshot."""
        ...

    @abstractmethod
    async def list_all(self, collection_type: CollectionType | None = None) -> list[AudioCollection]:
        """Collections (with items) in read order, optionally of one type."""
        ...

    @abstractmethod
    async def add(
        self, collection: AudioCollection, reposition: Mapping[int, float] | None = None
    ) -> AudioCollection:
        """Insert a collection (without items) and return it with its id."""
        ...

    @abstractmethod
    async def update(self, collection: AudioCollection) -> None:
        """Persist name, description, duration and volume."""
        ...

    @abstractmethod
    async def reposition(self, positions: Mapping[int, float]) -> None:
        """Set positions of collections, keyed by collection id."""
        ...

    @abstractmethod
    async def delete(self, collection_id: int) -> int:
        """Delete a collection and every membership referencing it elsewhere.

        Returns:
            Number of memberships dropped from other collections.
        """
        ...

    @abstractmethod
    async def nesting_edges(self) -> dict[int, list[int]]:
        """Map of collection id to the ids of collections nested in it."""
        ...

    @abstractmethod
    async def insert_item(
        self, item: CollectionItem, reposition: Mapping[int, float] | None = None
    ) -> CollectionItem | None:
        """Insert a membership row.

        The insert only happens while the referenced file or collection
        still exists.

        Returns:
            The stored item, or None if the referenced entity is gone.
        """
        ...

    @abstractmethod
    async def update_item(self, item: CollectionItem) -> None:
        """Persist volume, active flag and delay of a membership row."""
        ...

    @abstractmethod
    async def reposition_items(self, positions: Mapping[int, float]) -> None:
        """Set positions of membership rows, keyed by item id."""
        ...

    @abstractmethod
    async def delete_item(self, item_id: int) -> bool:
        ...
