"""Core domain entities for the audio library bounded context."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tabletop_audio.domain.library.value_objects import (
    AudioType,
    CollectionType,
    FolderType,
    ItemRef,
    ItemRefField,
)
from tabletop_audio.domain.shared.datetime_utils import utcnow
from tabletop_audio.domain.shared.messages import ErrorMessages
from tabletop_audio.domain.shared.types import (
    DelayMs,
    DurationSeconds,
    EntityId,
    NameStr,
    NonEmptyStr,
    UnitInterval,
    UtcDatetimeField,
)


def read_order_key(position: float, row_id: int | None) -> tuple[float, int]:
    """Deterministic read order: position first, ties broken by id ascending."""
    return (position, row_id or 0)


class Folder(BaseModel):
    """A node of the library folder tree."""

    id: EntityId | None = None
    name: NameStr
    folder_type: FolderType = FolderType.ANY
    parent_id: EntityId | None = None
    position: float = 0.0
    children: list[Folder] = Field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.folder_type == FolderType.ROOT

    def sorted_children(self) -> list[Folder]:
        return sorted(self.children, key=lambda f: read_order_key(f.position, f.id))

    def walk(self):
        """Yield this folder and every descendant depth-first in read order."""
        yield self
        for child in self.sorted_children():
            yield from child.walk()


class AudioFile(BaseModel):
    """A registered audio asset owned by exactly one folder."""

    id: EntityId | None = None
    name: NameStr
    audio_type: AudioType
    duration_seconds: DurationSeconds | None = None
    source: NonEmptyStr
    folder_id: EntityId
    added_at: UtcDatetimeField = Field(default_factory=utcnow)

    @property
    def is_remote(self) -> bool:
        return self.source.startswith(("http://", "https://"))

    @property
    def duration_formatted(self) -> str:
        """Format duration as MM:SS or HH:MM:SS."""
        if self.duration_seconds is None:
            return "Unknown"

        hours, remainder = divmod(int(self.duration_seconds), 3600)
        minutes, seconds = divmod(remainder, 60)

        if hours > 0:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes}:{seconds:02d}"


class CollectionItem(BaseModel):
    """Membership row linking a collection to a file or nested collection."""

    model_config = ConfigDict(frozen=True)

    id: EntityId | None = None
    collection_id: EntityId
    ref: ItemRefField
    position: float
    volume: UnitInterval | None = None
    active: bool = False
    delay_ms: DelayMs = 0


class AudioCollection(BaseModel):
    """Aggregate root: an ordered, typed group of audio items."""

    id: EntityId | None = None
    collection_type: CollectionType
    name: NameStr
    description: str | None = None
    position: float = 0.0
    duration_seconds: DurationSeconds | None = None
    volume: UnitInterval | None = None
    items: list[CollectionItem] = Field(default_factory=list)
    created_at: UtcDatetimeField = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _macro_fields(self) -> AudioCollection:
        if self.collection_type != CollectionType.MACRO and (
            self.duration_seconds is not None or self.volume is not None
        ):
            raise ValueError(ErrorMessages.MACRO_FIELDS_ONLY)
        return self

    @property
    def is_pack(self) -> bool:
        return self.collection_type == CollectionType.PACK

    @property
    def is_macro(self) -> bool:
        return self.collection_type == CollectionType.MACRO

    @property
    def item_count(self) -> int:
        return len(self.items)

    def ordered_items(self) -> list[CollectionItem]:
        return sorted(self.items, key=lambda i: read_order_key(i.position, i.id))

    def refs(self) -> list[ItemRef]:
        """Member references in read order."""
        return [item.ref for item in self.ordered_items()]

    def find_item(self, ref: ItemRef) -> CollectionItem | None:
        return next((item for item in self.items if item.ref == ref), None)

    def has_member(self, ref: ItemRef) -> bool:
        return self.find_item(ref) is not None

    def nested_refs(self) -> list[ItemRef]:
        return [ref for ref in self.refs() if ref.is_collection]
