"""Process-lifetime state shared by the consumer, pipeline and scheduler.

A ``CopySession`` is created once at startup and closed at shutdown.  It
owns the global enable switch, the one-shot simulation flag, the pause
gate the redemption scheduler uses to hold back new executions, and a
count of in-flight executions per ledger key so a sweep can wait for
them to finish.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from mirror_trader.apps.copy_bot.models import HoldingKey

logger = logging.getLogger(__name__)


class CopySession:
    """Mutable run state with an explicit lifecycle.

    Args:
        enabled: Initial value of the global copy-trading switch.

    """

    def __init__(self, *, enabled: bool = True) -> None:
        """Initialize an unpaused session."""
        self.enabled = enabled
        self._simulated = False
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._inflight: dict[HoldingKey, int] = {}
        self._inflight_changed = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        """Return whether ``close`` has been called."""
        return self._closed

    def claim_simulation(self) -> bool:
        """Return ``True`` exactly once per session, for the first order."""
        if self._simulated:
            return False
        self._simulated = True
        return True

    @property
    def paused(self) -> bool:
        """Return whether new executions are currently held back."""
        return not self._resumed.is_set()

    def pause(self) -> None:
        """Hold back new executions until ``resume`` is called."""
        logger.info("Copy trading paused")
        self._resumed.clear()

    def resume(self) -> None:
        """Release executions deferred by ``pause``."""
        self._resumed.set()
        logger.info("Copy trading resumed")

    async def wait_until_resumed(self) -> None:
        """Block while the session is paused."""
        await self._resumed.wait()

    def begin(self, key: HoldingKey) -> None:
        """Count one more execution on ``key`` as in flight.

        Synchronous so a caller that has just checked ``paused`` is visible
        to ``wait_for_drain`` before it next yields to the event loop.
        """
        self._inflight[key] = self._inflight.get(key, 0) + 1

    def end(self, key: HoldingKey) -> None:
        """Mark one execution on ``key`` as finished."""
        remaining = self._inflight.get(key, 0) - 1
        if remaining > 0:
            self._inflight[key] = remaining
        else:
            self._inflight.pop(key, None)
        self._inflight_changed.set()

    @asynccontextmanager
    async def track(self, key: HoldingKey) -> AsyncIterator[None]:
        """Count an execution on ``key`` as in flight for the duration of the block."""
        self.begin(key)
        try:
            yield
        finally:
            self.end(key)

    def inflight(self, keys: Iterable[HoldingKey] | None = None) -> int:
        """Return the number of in-flight executions on ``keys`` (all keys if ``None``)."""
        if keys is None:
            return sum(self._inflight.values())
        return sum(self._inflight.get(key, 0) for key in keys)

    async def wait_for_drain(self, keys: Iterable[HoldingKey] | None = None) -> None:
        """Wait until no execution on ``keys`` is in flight.

        Args:
            keys: Ledger keys to wait on, or ``None`` for every key.

        """
        watched = list(keys) if keys is not None else None
        while self.inflight(watched):
            self._inflight_changed.clear()
            await self._inflight_changed.wait()

    def close(self) -> None:
        """End the session and release anything waiting on the pause gate."""
        self._closed = True
        self.enabled = False
        self._resumed.set()
        logger.info("Copy session closed")
