"""Query for the current audio state of a session (used by new joiners)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from tabletop_audio.domain.playback.entities import SessionAudioState
from tabletop_audio.domain.shared.types import SessionIdStr

if TYPE_CHECKING:
    from ..services.session_state_service import SessionStateRegistry


class GetSessionStateQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: SessionIdStr


class GetSessionStateHandler:

    def __init__(self, *, registry: SessionStateRegistry) -> None:
        self._registry = registry

    async def handle(self, query: GetSessionStateQuery) -> SessionAudioState:
        return self._registry.snapshot(query.session_id)
