"""Server-side mirror of every session's playback state.

New participants receive no history from the channel; they fetch the
current state from here and then follow live events.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from ...domain.playback.entities import PlaybackStateKeeper, SessionAudioState
from ...domain.shared.messages import LogTemplates
from ...domain.sync.events import AudioEvent, AudioEventType, Namespace

if TYPE_CHECKING:
    from ..interfaces.broadcast_channel import BroadcastChannel, Subscription

logger = logging.getLogger(__name__)


class SessionStateRegistry:
    """Follows the ``audio`` namespace and keeps one keeper per session."""

    def __init__(self, *, channel: BroadcastChannel) -> None:
        self._channel = channel
        self._keepers: dict[str, PlaybackStateKeeper] = {}
        self._subscription: Subscription | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sessions(self) -> list[str]:
        return sorted(self._keepers)

    def keeper(self, session_id: str) -> PlaybackStateKeeper:
        """The keeper mirroring ``session_id``, created on first use."""
        keeper = self._keepers.get(session_id)
        if keeper is None:
            keeper = PlaybackStateKeeper(session_id)
            self._keepers[session_id] = keeper
        return keeper

    def snapshot(self, session_id: str) -> SessionAudioState:
        """Current state of a session; defaults for sessions never seen."""
        return self.keeper(session_id).state

    async def start(self) -> None:
        if self.running:
            return
        self._subscription = await self._channel.subscribe(Namespace.AUDIO)
        self._task = asyncio.create_task(self._consume(self._subscription))
        logger.info(LogTemplates.SESSION_STATE_STARTED)

    async def stop(self) -> None:
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info(LogTemplates.SESSION_STATE_STOPPED)

    async def _consume(self, subscription: Subscription) -> None:
        async for event in subscription:
            self.handle(event)

    def handle(self, event: AudioEvent) -> None:
        """Apply one event to the matching session mirror."""
        if event.type == AudioEventType.JOIN_SESSION:
            logger.info(LogTemplates.SESSION_JOINED, event.origin_id, event.session_id)
        try:
            self.keeper(event.session_id).apply(event)
        except Exception:
            logger.exception(LogTemplates.REMOTE_EVENT_FAILED, event.type.value, event.session_id)
