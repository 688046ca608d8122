"""Client Sync Adapter - keeps one participant's state in step with the session."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from types import TracebackType
from typing import TYPE_CHECKING
from uuid import uuid4

from ...domain.library.value_objects import ItemRef
from ...domain.playback.entities import (
    ItemResolver,
    PlaybackStateKeeper,
    SessionAudioState,
    StateListener,
)
from ...domain.shared.enums import AudioCategory
from ...domain.shared.messages import LogTemplates
from ...domain.shared.validators import parse_enum
from ...domain.sync.events import AudioEvent, AudioEventPayload, AudioEventType, Namespace
from ...utils.debounce import Debouncer

if TYPE_CHECKING:
    from ..interfaces.broadcast_channel import BroadcastChannel, Subscription

logger = logging.getLogger(__name__)


class ClientSyncAdapter:
    """Applies local actions immediately and publishes them; mirrors remote ones.

    Remote events are never re-published, and events carrying this
    adapter's own origin id are ignored. Volume publishes are trailing-edge
    debounced per category; local state and listeners update at once.
    """

    def __init__(
        self,
        *,
        channel: BroadcastChannel,
        session_id: str,
        resolver: ItemResolver | None = None,
        volume_debounce_ms: int = 200,
        client_id: str | None = None,
    ) -> None:
        self._channel = channel
        self._client_id = client_id or str(uuid4())
        self._keeper = PlaybackStateKeeper(session_id, resolver=resolver)
        self._debounce_s = volume_debounce_ms / 1000
        self._volume_debouncers: dict[AudioCategory, Debouncer] = {}
        self._subscription: Subscription | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def session_id(self) -> str:
        return self._keeper.session_id

    @property
    def state(self) -> SessionAudioState:
        return self._keeper.state

    @property
    def started(self) -> bool:
        return self._subscription is not None

    def add_listener(self, listener: StateListener) -> None:
        self._keeper.subscribe(listener)

    def remove_listener(self, listener: StateListener) -> None:
        self._keeper.unsubscribe(listener)

    # === Lifecycle ===

    async def start(self) -> None:
        """Subscribe to the session channel and announce this participant."""
        if self._subscription is not None:
            return
        self._subscription = await self._channel.subscribe(Namespace.AUDIO)
        self._task = asyncio.create_task(self._consume(self._subscription))
        await self._publish(AudioEventType.JOIN_SESSION, AudioEventPayload(session_id=self.session_id))
        logger.info(LogTemplates.SYNC_ADAPTER_STARTED, self._client_id, self.session_id)

    async def stop(self) -> None:
        """Flush pending volume publishes, then detach from the channel."""
        for debouncer in self._volume_debouncers.values():
            await debouncer.flush()

        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info(LogTemplates.SYNC_ADAPTER_STOPPED, self._client_id)

    async def __aenter__(self) -> ClientSyncAdapter:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    # === Local actions ===

    def set_volume(self, category: AudioCategory, level: float) -> bool:
        """Set a volume locally now; publish it once the slider settles.

        Returns:
            False if ``level`` is outside ``[0, 1]`` (nothing changes).
        """
        category = parse_enum(AudioCategory, category, "category")
        if not self._keeper.set_volume(category, level):
            return False
        self._debouncer(category).call(category, float(level))
        return True

    async def set_active(self, category: AudioCategory, item_ref: ItemRef | str | None) -> AudioEvent:
        """Select the active item of a category and publish the change.

        Raises:
            NotFoundError: ``item_ref`` does not resolve.
        """
        event = await self._keeper.set_active(category, item_ref)
        await self._publish(event.type, event.payload)
        return event

    async def set_playlist_state(self, playing: bool) -> AudioEvent | None:
        event = self._keeper.set_playlist_state(playing)
        if event is not None:
            await self._publish(event.type, event.payload)
        return event

    # === Internals ===

    def _debouncer(self, category: AudioCategory) -> Debouncer:
        debouncer = self._volume_debouncers.get(category)
        if debouncer is None:
            debouncer = Debouncer(self._debounce_s, self._publish_volume)
            self._volume_debouncers[category] = debouncer
        return debouncer

    async def _publish_volume(self, category: AudioCategory, level: float) -> None:
        await self._publish(
            AudioEventType.VOLUME_CHANGE,
            AudioEventPayload(session_id=self.session_id, category=category, level=level),
        )

    async def _publish(self, event_type: AudioEventType, payload: AudioEventPayload) -> int:
        exclude = self._subscription.id if self._subscription is not None else None
        return await self._channel.publish(
            Namespace.AUDIO,
            event_type,
            payload,
            origin_id=self._client_id,
            exclude=exclude,
        )

    async def _consume(self, subscription: Subscription) -> None:
        async for event in subscription:
            if event.origin_id == self._client_id or event.session_id != self.session_id:
                continue
            try:
                self._keeper.apply(event)
            except Exception:
                logger.exception(LogTemplates.REMOTE_EVENT_FAILED, event.type.value, event.session_id)
