"""Real-time audio events exchanged between session participants.

Events are transient deltas; they are never persisted.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from tabletop_audio.domain.library.value_objects import OptionalItemRefField
from tabletop_audio.domain.shared.enums import AudioCategory
from tabletop_audio.domain.shared.datetime_utils import utcnow
from tabletop_audio.domain.shared.types import (
    NonEmptyStr,
    NonNegativeInt,
    SessionIdStr,
    UnitInterval,
    UtcDatetimeField,
)


class Namespace(StrEnum):
    """Isolated broadcast channels."""

    AUDIO = "audio"
    DOWNLOAD = "download"


class AudioEventType(StrEnum):
    """Event types with their wire names."""

    JOIN_SESSION = "audio:join_session"
    PLAYLIST_CHANGE = "audio:playlist_change"
    PLAYLIST_STATE_CHANGE = "audio:playlist_state_change"
    AMBIENCE_CHANGE = "audio:ambience_change"
    SFX_PLAY = "audio:sfx_play"
    VOLUME_CHANGE = "audio:volume_change"
    FILE_DOWNLOADED = "audio:file_downloaded"

    @classmethod
    def for_selection(cls, category: AudioCategory) -> AudioEventType:
        """Event emitted when the active item of ``category`` changes."""
        return _SELECTION_EVENTS[category]


_SELECTION_EVENTS: dict[AudioCategory, AudioEventType] = {
    AudioCategory.PLAYLIST: AudioEventType.PLAYLIST_CHANGE,
    AudioCategory.AMBIENCE: AudioEventType.AMBIENCE_CHANGE,
    AudioCategory.SFX: AudioEventType.SFX_PLAY,
}


class AudioEventPayload(BaseModel):
    """Delta carried by an audio event; unset fields mean "unchanged"."""

    model_config = ConfigDict(frozen=True)

    session_id: SessionIdStr
    category: AudioCategory | None = None
    item_ref: OptionalItemRefField = None
    level: UnitInterval | None = None
    playing: bool | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialize with the unset fields left out."""
        return self.model_dump(mode="json", exclude_none=True)


class AudioEvent(BaseModel):
    """A typed event plus its transport metadata."""

    model_config = ConfigDict(frozen=True)

    type: AudioEventType
    payload: AudioEventPayload
    namespace: Namespace = Namespace.AUDIO
    event_id: NonEmptyStr = Field(default_factory=lambda: str(uuid4()))
    origin_id: str | None = None
    sequence: NonNegativeInt = 0
    occurred_at: UtcDatetimeField = Field(default_factory=utcnow)

    @property
    def session_id(self) -> str:
        return self.payload.session_id
