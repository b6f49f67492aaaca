"""Dispatch observed trades to the execution pipeline.

Read trades from the bounded feed queue, drop duplicates by source event
id, respect the session's enable switch and pause gate, and run each
remaining trade as its own task.  Trades on different market/token keys
execute concurrently; the ledger's per-key lock, taken inside the
pipeline, serializes trades on the same key.  A failing execution is
logged and never stops consumption.
"""

import asyncio
import logging
from collections import OrderedDict

from mirror_trader.apps.copy_bot.execution import ExecutionPipeline
from mirror_trader.apps.copy_bot.models import DeferPolicy, ObservedTrade
from mirror_trader.apps.copy_bot.session import CopySession

logger = logging.getLogger(__name__)

_SEEN_EVENTS_CAPACITY = 10_000


class TradeFeedConsumer:
    """Turn a stream of observed trades into pipeline executions.

    Args:
        pipeline: Execution pipeline invoked once per accepted trade.
        session: Run state providing the enable switch and pause gate.
        defer_policy: Whether trades arriving during a pause wait or are dropped.
        seen_capacity: Number of recent event ids remembered for de-duplication.

    """

    def __init__(
        self,
        pipeline: ExecutionPipeline,
        session: CopySession,
        *,
        defer_policy: DeferPolicy = DeferPolicy.QUEUE,
        seen_capacity: int = _SEEN_EVENTS_CAPACITY,
    ) -> None:
        """Initialize the consumer."""
        self._pipeline = pipeline
        self._session = session
        self._defer_policy = defer_policy
        self._seen_capacity = seen_capacity
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._tasks: set[asyncio.Task[None]] = set()

    def _is_duplicate(self, event_id: str) -> bool:
        if event_id in self._seen:
            self._seen.move_to_end(event_id)
            return True
        self._seen[event_id] = None
        if len(self._seen) > self._seen_capacity:
            self._seen.popitem(last=False)
        return False

    async def submit(self, trade: ObservedTrade) -> asyncio.Task[None] | None:
        """Accept one observed trade and start executing it.

        Args:
            trade: Trade delivered by the activity feed.

        Returns:
            The execution task, or ``None`` when the trade was a duplicate,
            copy trading is disabled, or it was dropped during a pause.

        """
        if self._is_duplicate(trade.event_id):
            logger.debug("Duplicate event %s ignored", trade.event_id)
            return None
        if not self._session.enabled:
            logger.info("Copy trading disabled; ignoring %s", trade.event_id)
            return None

        while self._session.paused:
            if self._defer_policy is DeferPolicy.DROP:
                logger.info("Redemption in progress; dropping %s", trade.event_id)
                return None
            logger.info("Redemption in progress; deferring %s", trade.event_id)
            await self._session.wait_until_resumed()
            if not self._session.enabled:
                return None

        # No await between the pause check and begin().
        self._session.begin(trade.key)
        task = asyncio.create_task(self._execute(trade), name=f"copy-{trade.event_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda _: self._session.end(trade.key))
        return task

    async def _execute(self, trade: ObservedTrade) -> None:
        try:
            result = await self._pipeline.execute(trade)
        except Exception:
            logger.exception("Unexpected error executing %s", trade.event_id)
        else:
            if not result.success and not result.skipped:
                logger.warning("Trade %s not mirrored: %s", trade.event_id, result.error)

    async def run(self, queue: asyncio.Queue[ObservedTrade]) -> None:
        """Consume trades from ``queue`` until cancelled.

        Args:
            queue: Bounded queue filled by the activity feed.

        """
        while True:
            trade = await queue.get()
            try:
                await self.submit(trade)
            finally:
                queue.task_done()

    async def drain(self) -> None:
        """Wait for every outstanding execution task to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    @property
    def pending(self) -> int:
        """Return the number of execution tasks still running."""
        return len(self._tasks)
