"""Per-aggregate asyncio locks serializing structural mutations."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter, defaultdict
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from typing import TYPE_CHECKING

from ...domain.shared.exceptions import ConcurrencyConflict
from ...domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ...config.settings import ConcurrencySettings

logger = logging.getLogger(__name__)


class AggregateLockRegistry:
    """Lazily created locks keyed by aggregate id (``collection:7``, ``folder-tree``).

    Multiple keys are always acquired in sorted order so two writers that
    need overlapping sets of aggregates cannot deadlock.
    """

    def __init__(
        self,
        settings: ConcurrencySettings | None = None,
        *,
        timeout_s: float | None = None,
        retries: int | None = None,
    ) -> None:
        if timeout_s is None:
            timeout_s = settings.lock_timeout_s if settings else 2.0
        if retries is None:
            retries = settings.lock_retries if settings else 3
        self._timeout_s = timeout_s
        self._retries = retries
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        # Holders plus queued waiters per key.
        self._users: Counter[str] = Counter()

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncIterator[None]:
        """Hold the locks for every key for the duration of the block.

        Raises:
            ConcurrencyConflict: a lock could not be acquired within the
                configured timeout and retry budget.
        """
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                lock = await self._acquire(key)
                stack.callback(self._release, key, lock)
            yield

    async def _acquire(self, key: str) -> asyncio.Lock:
        lock = self._locks[key]
        self._users[key] += 1
        try:
            for attempt in range(1, self._retries + 1):
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=self._timeout_s)
                    return lock
                except TimeoutError:
                    if attempt < self._retries:
                        logger.debug(LogTemplates.LOCK_RETRY, key, attempt, self._retries)

            logger.warning(LogTemplates.LOCK_CONFLICT, key, self._retries)
            raise ConcurrencyConflict(key)
        except BaseException:
            self._leave(key)
            raise

    def _release(self, key: str, lock: asyncio.Lock) -> None:
        lock.release()
        self._leave(key)

    def _leave(self, key: str) -> None:
        self._users[key] -= 1
        if self._users[key] <= 0:
            del self._users[key]

    def discard(self, key: str) -> None:
        """Forget the lock of a deleted aggregate once nobody holds or awaits it."""
        lock = self._locks.get(key)
        if lock is not None and not lock.locked() and not self._users.get(key):
            del self._locks[key]
