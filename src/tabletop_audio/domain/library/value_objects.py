"""Immutable value objects for the audio library bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Annotated, Any

from pydantic import PlainSerializer, PlainValidator

from tabletop_audio.domain.shared.exceptions import ValidationError
from tabletop_audio.domain.shared.messages import ErrorMessages


class AudioType(StrEnum):
    """Kind of audio a file holds."""

    MUSIC = "music"
    SFX = "sfx"
    AMBIENCE = "ambience"


class FolderType(StrEnum):
    """Folder typing; ``any`` and ``root`` impose no constraint on descendants."""

    MUSIC = "music"
    SFX = "sfx"
    AMBIENCE = "ambience"
    ANY = "any"
    ROOT = "root"

    @property
    def constrains(self) -> bool:
        return self not in {FolderType.ANY, FolderType.ROOT}

    @property
    def audio_type(self) -> AudioType | None:
        """The audio type descendants must have, or None when unconstrained."""
        if not self.constrains:
            return None
        return AudioType(self.value)


class CollectionType(StrEnum):
    """Closed set of collection kinds."""

    PLAYLIST = "playlist"
    SFX = "sfx"
    AMBIENCE = "ambience"
    PACK = "pack"
    MACRO = "macro"

    @classmethod
    def parse(cls, value: str | CollectionType) -> CollectionType:
        """Parse a collection type, raising the domain ValidationError on failure."""
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                ErrorMessages.INVALID_COLLECTION_TYPE.format(
                    value=value, valid=[t.value for t in cls]
                ),
                field="type",
            ) from None


class ItemKind(StrEnum):
    """What a collection membership points at."""

    FILE = "file"
    COLLECTION = "collection"


@dataclass(frozen=True)
class ItemRef:
    """Reference to a file or collection, serialized as ``"<kind>:<id>"``."""

    kind: ItemKind
    id: int

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ItemKind):
            object.__setattr__(self, "kind", ItemKind(self.kind))
        if self.id <= 0:
            raise ValueError(ErrorMessages.INVALID_ITEM_ID)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"

    @property
    def is_file(self) -> bool:
        return self.kind == ItemKind.FILE

    @property
    def is_collection(self) -> bool:
        return self.kind == ItemKind.COLLECTION

    @classmethod
    def file(cls, file_id: int) -> ItemRef:
        return cls(ItemKind.FILE, file_id)

    @classmethod
    def collection(cls, collection_id: int) -> ItemRef:
        return cls(ItemKind.COLLECTION, collection_id)

    @classmethod
    def parse(cls, value: str) -> ItemRef:
        """Parse ``"file:12"`` / ``"collection:3"``."""
        kind, sep, raw_id = value.partition(":")
        if not sep:
            raise ValueError(ErrorMessages.INVALID_ITEM_REF.format(value=value))
        try:
            return cls(ItemKind(kind.strip()), int(raw_id))
        except ValueError:
            raise ValueError(ErrorMessages.INVALID_ITEM_REF.format(value=value)) from None

    @classmethod
    def coerce(cls, value: ItemRef | str) -> ItemRef:
        """Accept an ItemRef or its string form, raising the domain ValidationError."""
        if isinstance(value, ItemRef):
            return value
        if not isinstance(value, str):
            raise ValidationError(
                ErrorMessages.INVALID_ITEM_REF.format(value=value), field="item_ref"
            )
        try:
            return cls.parse(value)
        except ValueError as e:
            raise ValidationError(str(e), field="item_ref") from None


def _coerce_item_ref(value: Any) -> ItemRef:
    if isinstance(value, ItemRef):
        return value
    if isinstance(value, str):
        return ItemRef.parse(value)
    if isinstance(value, dict):
        return ItemRef(ItemKind(value["kind"]), int(value["id"]))
    raise ValueError(ErrorMessages.INVALID_ITEM_REF.format(value=value))


# Pydantic-compatible type aliases for ItemRef fields.
# Serializes as "kind:id" in JSON, stores as ItemRef in the model.
ItemRefField = Annotated[
    ItemRef,
    PlainValidator(_coerce_item_ref),
    PlainSerializer(lambda v: str(v), return_type=str),
]

OptionalItemRefField = Annotated[
    ItemRef | None,
    PlainValidator(lambda v: None if v is None else _coerce_item_ref(v)),
    PlainSerializer(lambda v: str(v) if v is not None else None, return_type=str | None),
]
