"""Top-level copy-trading engine.

Wire the session, ledger, order builder, balance guard, execution
pipeline, consumer, activity feed and redemption scheduler together and
run them until a shutdown signal arrives.
"""

import asyncio
import contextlib
import logging
import signal

from mirror_trader.apps.copy_bot.activity_feed import ActivityFeed
from mirror_trader.apps.copy_bot.balance_guard import BalanceGuard
from mirror_trader.apps.copy_bot.consumer import TradeFeedConsumer
from mirror_trader.apps.copy_bot.execution import ExecutionPipeline
from mirror_trader.apps.copy_bot.ledger import HoldingsLedger
from mirror_trader.apps.copy_bot.models import CopyConfig, ObservedTrade
from mirror_trader.apps.copy_bot.order_builder import OrderBuilder
from mirror_trader.apps.copy_bot.protocols import Approvals, ExecutionVenue, Redeemer
from mirror_trader.apps.copy_bot.redemption import RedemptionScheduler
from mirror_trader.apps.copy_bot.session import CopySession
from mirror_trader.clients.polymarket.exceptions import PolymarketAPIError

logger = logging.getLogger(__name__)


class CopyTradingEngine:
    """Mirror a target wallet's trades until stopped.

    Args:
        config: Copy-trading settings.
        ledger: Holdings ledger (not yet initialised).
        venue: Order signing and submission client.
        approvals: Post-BUY token approval step.
        redeemer: Redemption collaborator.
        feed: Activity feed for the target wallet.

    """

    def __init__(  # noqa: PLR0913
        self,
        config: CopyConfig,
        ledger: HoldingsLedger,
        venue: ExecutionVenue,
        approvals: Approvals,
        redeemer: Redeemer,
        feed: ActivityFeed,
    ) -> None:
        """Build the pipeline components around the given collaborators."""
        self._config = config
        self._ledger = ledger
        self._feed = feed
        self.session = CopySession(enabled=config.enabled)
        self.guard = BalanceGuard(venue)
        self.pipeline = ExecutionPipeline(
            venue=venue,
            ledger=ledger,
            builder=OrderBuilder(config, ledger),
            guard=self.guard,
            approvals=approvals,
            session=self.session,
            config=config,
        )
        self.consumer = TradeFeedConsumer(
            self.pipeline, self.session, defer_policy=config.defer_policy
        )
        self.scheduler = RedemptionScheduler(
            ledger, redeemer, self.session, config.redeem_interval_minutes
        )
        self._stop = asyncio.Event()

    def stop(self) -> None:
        """Request a graceful shutdown."""
        logger.info("Shutdown signal received")
        self._stop.set()

    async def run(self) -> None:
        """Run until ``stop`` is called, SIGINT/SIGTERM arrives, or a worker dies.

        Steps:
            1. Initialise the ledger schema.
            2. Log the starting collateral balance.
            3. Run the feed pump, the consumer and the redemption scheduler.
            4. On shutdown, close the feed, drain in-flight executions, close
               the ledger and end the session.

        """
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, self.stop)

        await self._ledger.init_db()
        try:
            available = await self.guard.available()
            logger.info("Starting collateral balance: %s", available)
        except PolymarketAPIError as exc:
            logger.warning("Could not read starting balance: %s", exc)

        queue: asyncio.Queue[ObservedTrade] = asyncio.Queue(maxsize=self._config.queue_size)
        workers = [
            asyncio.create_task(self._feed.pump(queue), name="activity-feed"),
            asyncio.create_task(self.consumer.run(queue), name="consumer"),
        ]
        if self.scheduler.enabled:
            workers.append(asyncio.create_task(self.scheduler.run(), name="redemption"))
        stop_task = asyncio.create_task(self._stop.wait(), name="stop")

        try:
            done, _pending = await asyncio.wait(
                [stop_task, *workers], return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                if task is not stop_task and not task.cancelled() and task.exception():
                    logger.error("Worker %s failed", task.get_name(), exc_info=task.exception())
        finally:
            await self._feed.close()
            for task in (stop_task, *workers):
                task.cancel()
            await asyncio.gather(stop_task, *workers, return_exceptions=True)
            await self.consumer.drain()
            await self._ledger.close()
            self.session.close()
            logger.info("Copy trading engine shut down")
