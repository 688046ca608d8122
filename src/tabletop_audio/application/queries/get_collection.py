"""Query for a snapshot of one collection."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from tabletop_audio.domain.library.entities import AudioCollection
from tabletop_audio.domain.shared.exceptions import NotFoundError
from tabletop_audio.domain.shared.types import EntityId, NonNegativeFloat, NonNegativeInt

if TYPE_CHECKING:
    from ...domain.library.repository import AudioFileRepository, CollectionRepository


class GetCollectionQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    collection_id: EntityId


class CollectionInfo(BaseModel):

    collection: AudioCollection
    item_count: NonNegativeInt = 0
    total_duration_seconds: NonNegativeFloat | None = None


class GetCollectionHandler:

    def __init__(
        self,
        *,
        collection_repository: CollectionRepository,
        file_repository: AudioFileRepository,
    ) -> None:
        self._collection_repo = collection_repository
        self._file_repo = file_repository

    async def handle(self, query: GetCollectionQuery) -> CollectionInfo:
        collection = await self._collection_repo.get(query.collection_id)
        if collection is None:
            raise NotFoundError("AudioCollection", query.collection_id)

        return CollectionInfo(
            collection=collection,
            item_count=collection.item_count,
            total_duration_seconds=await self._total_duration(collection),
        )

    async def _total_duration(self, collection: AudioCollection) -> float | None:
        """Sum of member durations, or None if any of them is unknown."""
        total = 0.0
        for ref in collection.refs():
            if ref.is_file:
                member = await self._file_repo.get(ref.id)
            else:
                member = await self._collection_repo.get(ref.id)
            if member is None or member.duration_seconds is None:
                return None
            total += member.duration_seconds
        return total
