"""Port interface for the namespaced real-time event channel."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Collection
from types import TracebackType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ...domain.sync.events import AudioEvent, AudioEventPayload, AudioEventType, Namespace


class Subscription(ABC):
    """A live, non-restartable stream of events from one namespace.

    Iteration ends once the subscription is closed, either by the holder or
    by the channel (e.g. overflow under the ``disconnect`` policy).
    """

    @property
    @abstractmethod
    def id(self) -> str:
        ...

    @property
    @abstractmethod
    def namespace(self) -> Namespace:
        ...

    @property
    @abstractmethod
    def closed(self) -> bool:
        ...

    @abstractmethod
    async def close(self) -> None:
        """Detach from the channel and drop any queued events."""
        ...

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[AudioEvent]:
        ...

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class BroadcastChannel(ABC):
    """Interface for fanning out audio events to session participants."""

    @abstractmethod
    async def publish(
        self,
        namespace: Namespace,
        event_type: AudioEventType,
        payload: AudioEventPayload,
        *,
        origin_id: str | None = None,
        exclude: Collection[str] | str | None = None,
    ) -> int:
        """Deliver an event to every subscriber of ``namespace``.

        Best effort, at most once per subscriber. Delivery failures are
        logged, never raised.

        Args:
            origin_id: Identifier of the publishing participant.
            exclude: Subscription id(s) that must not receive the event.

        Returns:
            Number of subscribers the event was delivered to.
        """
        ...

    @abstractmethod
    async def subscribe(self, namespace: Namespace) -> Subscription:
        """Open a new subscription on ``namespace``."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close every open subscription."""
        ...
