"""In-process broadcast channel with bounded per-subscriber queues."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator, Collection
from typing import TYPE_CHECKING
from uuid import uuid4

from tabletop_audio.application.interfaces.broadcast_channel import BroadcastChannel, Subscription
from tabletop_audio.domain.shared.enums import OverflowPolicy
from tabletop_audio.domain.shared.messages import LogTemplates
from tabletop_audio.domain.sync.events import (
    AudioEvent,
    AudioEventPayload,
    AudioEventType,
    Namespace,
)

if TYPE_CHECKING:
    from ...config.settings import SyncSettings

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


class InMemorySubscription(Subscription):
    """Subscription backed by a bounded deque and a wakeup event."""

    def __init__(
        self,
        channel: InMemoryBroadcastChannel,
        namespace: Namespace,
        max_queue: int,
        policy: OverflowPolicy,
    ) -> None:
        self._channel = channel
        self._namespace = namespace
        self._id = str(uuid4())
        self._max_queue = max_queue
        self._policy = policy
        self._queue: deque[AudioEvent] = deque()
        self._wakeup = asyncio.Event()
        self._closed = False
        self.dropped = 0

    @property
    def id(self) -> str:
        return self._id

    @property
    def namespace(self) -> Namespace:
        return self._namespace

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return len(self._queue)

    def deliver(self, event: AudioEvent) -> bool:
        """Enqueue without blocking; returns False if the event was not queued."""
        if self._closed:
            return False

        if len(self._queue) >= self._max_queue:
            if self._policy == OverflowPolicy.DISCONNECT:
                logger.warning(LogTemplates.SUBSCRIBER_OVERFLOW, self._id)
                self._detach()
                return False
            self._queue.popleft()
            self.dropped += 1
            logger.debug(LogTemplates.EVENT_DROPPED, self._id)

        self._queue.append(event)
        self._wakeup.set()
        return True

    async def close(self) -> None:
        self._detach()

    def _detach(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.clear()
        self._wakeup.set()
        self._channel._remove(self)

    def __aiter__(self) -> AsyncIterator[AudioEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[AudioEvent]:
        while True:
            if self._queue:
                yield self._queue.popleft()
                continue
            if self._closed:
                return
            self._wakeup.clear()
            await self._wakeup.wait()


class InMemoryBroadcastChannel(BroadcastChannel):
    """Fan-out channel for a single process.

    Publishing never awaits a subscriber: each event is appended to every
    subscriber queue synchronously, so events from one publisher reach each
    subscriber in publish order. Sequence numbers are assigned per namespace.
    """

    def __init__(
        self,
        settings: SyncSettings | None = None,
        *,
        queue_size: int | None = None,
        overflow_policy: OverflowPolicy | str | None = None,
    ) -> None:
        self._queue_size = queue_size or (
            settings.subscriber_queue_size if settings else DEFAULT_QUEUE_SIZE
        )
        self._policy = OverflowPolicy(
            overflow_policy or (settings.overflow_policy if settings else OverflowPolicy.DROP_OLDEST)
        )
        self._subscribers: dict[Namespace, dict[str, InMemorySubscription]] = {
            namespace: {} for namespace in Namespace
        }
        self._sequences: dict[Namespace, int] = {namespace: 0 for namespace in Namespace}

    def subscriber_count(self, namespace: Namespace | None = None) -> int:
        if namespace is None:
            return sum(len(subs) for subs in self._subscribers.values())
        return len(self._subscribers[Namespace(namespace)])

    async def publish(
        self,
        namespace: Namespace,
        event_type: AudioEventType,
        payload: AudioEventPayload,
        *,
        origin_id: str | None = None,
        exclude: Collection[str] | str | None = None,
    ) -> int:
        namespace = Namespace(namespace)
        self._sequences[namespace] += 1
        event = AudioEvent(
            type=AudioEventType(event_type),
            payload=payload,
            namespace=namespace,
            origin_id=origin_id,
            sequence=self._sequences[namespace],
        )

        if exclude is None:
            excluded: set[str] = set()
        elif isinstance(exclude, str):
            excluded = {exclude}
        else:
            excluded = set(exclude)

        delivered = 0
        for subscription in list(self._subscribers[namespace].values()):
            if subscription.id in excluded:
                continue
            try:
                if subscription.deliver(event):
                    delivered += 1
            except Exception:
                logger.exception(LogTemplates.DELIVERY_FAILED, event.type.value, subscription.id)

        logger.debug(
            LogTemplates.EVENT_PUBLISHED, event.type.value, event.sequence, delivered, namespace.value
        )
        return delivered

    async def subscribe(self, namespace: Namespace) -> InMemorySubscription:
        namespace = Namespace(namespace)
        subscription = InMemorySubscription(self, namespace, self._queue_size, self._policy)
        self._subscribers[namespace][subscription.id] = subscription
        logger.debug(LogTemplates.SUBSCRIBER_ATTACHED, subscription.id, namespace.value)
        return subscription

    async def close(self) -> None:
        for subs in self._subscribers.values():
            for subscription in list(subs.values()):
                await subscription.close()

    def _remove(self, subscription: InMemorySubscription) -> None:
        if self._subscribers[subscription.namespace].pop(subscription.id, None) is not None:
            logger.debug(LogTemplates.SUBSCRIBER_DETACHED, subscription.id, subscription.namespace.value)
