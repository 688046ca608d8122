"""Trailing-edge debouncing for high-frequency async actions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class Debouncer:
    """Runs ``callback`` once, ``delay_s`` after the last ``call()``.

    Only the arguments of the most recent call are used. ``flush()`` runs a
    pending call immediately; ``cancel()`` discards it.
    """

    def __init__(self, delay_s: float, callback: Callable[..., Awaitable[Any]]) -> None:
        self._delay_s = max(0.0, delay_s)
        self._callback = callback
        self._pending: tuple[tuple[Any, ...], dict[str, Any]] | None = None
        self._timer: asyncio.Task[None] | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def call(self, *args: Any, **kwargs: Any) -> None:
        self._pending = (args, kwargs)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._wait_then_fire())

    async def flush(self) -> None:
        self._cancel_timer()
        await self._fire()

    def cancel(self) -> None:
        self._cancel_timer()
        self._pending = None

    async def _wait_then_fire(self) -> None:
        await asyncio.sleep(self._delay_s)
        # Detach before firing so a call() during the callback schedules a new
        # timer instead of cancelling this one mid-flight.
        self._timer = None
        await self._fire()

    async def _fire(self) -> None:
        pending, self._pending = self._pending, None
        if pending is None:
            return
        args, kwargs = pending
        try:
            await self._callback(*args, **kwargs)
        except Exception:
            logger.exception("Debounced callback %r failed", self._callback)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
