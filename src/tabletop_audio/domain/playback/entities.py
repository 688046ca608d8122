"""Per-session playback state: volumes, active items and the playlist flag."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, Field

from tabletop_audio.domain.library.value_objects import ItemRef, OptionalItemRefField
from tabletop_audio.domain.playback.value_objects import (
    DEFAULT_VOLUME,
    AudioCategory,
    is_valid_volume,
)
from tabletop_audio.domain.shared.messages import LogTemplates
from tabletop_audio.domain.shared.types import SessionIdStr, UnitInterval
from tabletop_audio.domain.shared.validators import parse_enum
from tabletop_audio.domain.sync.events import AudioEvent, AudioEventPayload, AudioEventType

logger = logging.getLogger(__name__)

StateListener = Callable[[AudioEvent], None]
ItemResolver = Callable[[ItemRef], Awaitable[Any]]


def _default_volumes() -> dict[AudioCategory, float]:
    return {category: DEFAULT_VOLUME for category in AudioCategory}


def _default_active() -> dict[AudioCategory, ItemRef | None]:
    return {category: None for category in AudioCategory}


class SessionAudioState(BaseModel):
    """Snapshot of what a session is hearing."""

    session_id: SessionIdStr
    volumes: dict[AudioCategory, UnitInterval] = Field(default_factory=_default_volumes)
    active: dict[AudioCategory, OptionalItemRefField] = Field(default_factory=_default_active)
    playlist_playing: bool = False

    def volume(self, category: AudioCategory) -> float:
        return self.volumes.get(category, DEFAULT_VOLUME)

    def active_item(self, category: AudioCategory) -> ItemRef | None:
        return self.active.get(category)


class PlaybackStateKeeper:
    """Owns one session's SessionAudioState and notifies local listeners.

    Local mutations (``set_*``) and remote events (``apply``) both end up
    notifying listeners; the keeper itself never talks to the network.
    """

    def __init__(self, session_id: str, resolver: ItemResolver | None = None) -> None:
        self._state = SessionAudioState(session_id=session_id)
        self._resolver = resolver
        self._listeners: list[StateListener] = []

    @property
    def session_id(self) -> str:
        return self._state.session_id

    @property
    def state(self) -> SessionAudioState:
        """A copy of the current state."""
        return self._state.model_copy(deep=True)

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_volume(self, category: AudioCategory, level: float) -> bool:
        """Set a category volume.

        Returns:
            False (state unchanged, nothing emitted) if ``level`` is outside
            ``[0, 1]``; True after emitting one VOLUME_CHANGE otherwise.

        Raises:
            ValidationError: ``category`` is not an audio category.
        """
        category = parse_enum(AudioCategory, category, "category")
        if not is_valid_volume(level):
            logger.debug(LogTemplates.VOLUME_REJECTED, level, category.value, self.session_id)
            return False

        self._state.volumes[category] = float(level)
        self._emit(AudioEventType.VOLUME_CHANGE, category=category, level=float(level))
        return True

    async def set_active(self, category: AudioCategory, item_ref: ItemRef | str | None) -> AudioEvent:
        """Select the active item of a category; ``None`` clears it.

        Raises:
            NotFoundError: the resolver could not find ``item_ref``.
            ValidationError: ``category`` or ``item_ref`` is malformed.
        """
        category = parse_enum(AudioCategory, category, "category")
        ref = ItemRef.coerce(item_ref) if item_ref is not None else None
        if ref is not None and self._resolver is not None:
            await self._resolver(ref)

        self._state.active[category] = ref
        return self._emit(AudioEventType.for_selection(category), category=category, item_ref=ref)

    def set_playlist_state(self, playing: bool) -> AudioEvent | None:
        """Flip the playlist play/pause flag; emits only when it changes."""
        if self._state.playlist_playing == playing:
            return None
        self._state.playlist_playing = playing
        return self._emit(
            AudioEventType.PLAYLIST_STATE_CHANGE, category=AudioCategory.PLAYLIST, playing=playing
        )

    def apply(self, event: AudioEvent) -> bool:
        """Apply a remote event to local state.

        Events for other sessions are ignored. Listeners are notified but
        nothing is re-emitted towards the network.

        Returns:
            True if the event belonged to this session.
        """
        if event.session_id != self.session_id:
            return False

        payload = event.payload
        match event.type:
            case AudioEventType.VOLUME_CHANGE:
                if payload.category is not None and payload.level is not None:
                    self._state.volumes[payload.category] = payload.level
            case AudioEventType.PLAYLIST_CHANGE:
                self._state.active[AudioCategory.PLAYLIST] = payload.item_ref
            case AudioEventType.AMBIENCE_CHANGE:
                self._state.active[AudioCategory.AMBIENCE] = payload.item_ref
            case AudioEventType.SFX_PLAY:
                self._state.active[AudioCategory.SFX] = payload.item_ref
            case AudioEventType.PLAYLIST_STATE_CHANGE:
                if payload.playing is not None:
                    self._state.playlist_playing = payload.playing
            case _:
                pass

        self._notify(event)
        return True

    def _emit(self, event_type: AudioEventType, **fields: Any) -> AudioEvent:
        event = AudioEvent(
            type=event_type,
            payload=AudioEventPayload(session_id=self.session_id, **fields),
        )
        self._notify(event)
        return event

    def _notify(self, event: AudioEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.exception("Error in state listener for %s: %s", event.type.value, e)
