"""Periodic redemption of held positions in resolved markets.

Each sweep pauses the consumer, waits for executions already in flight on
held keys to finish, asks the redemption collaborator which keys are
redeemable, and redeems them one at a time under the ledger's per-key
lock.  A failed redemption is logged and the sweep moves on to the next
key.  The consumer is always resumed, even when the sweep itself fails.
"""

import asyncio
import logging

from mirror_trader.apps.copy_bot.ledger import HoldingsLedger
from mirror_trader.apps.copy_bot.models import HoldingKey, RedemptionReport
from mirror_trader.apps.copy_bot.protocols import Redeemer
from mirror_trader.apps.copy_bot.session import CopySession

logger = logging.getLogger(__name__)

_SECONDS_PER_MINUTE = 60


class RedemptionScheduler:
    """Redeem resolved holdings on a fixed interval.

    Args:
        ledger: Holdings ledger to read and prune.
        redeemer: Resolution lookup and redemption collaborator.
        session: Run state whose pause gate holds back new executions.
        interval_minutes: Minutes between sweeps; ``None`` disables the scheduler.

    """

    def __init__(
        self,
        ledger: HoldingsLedger,
        redeemer: Redeemer,
        session: CopySession,
        interval_minutes: float | None,
    ) -> None:
        """Initialize the scheduler."""
        self._ledger = ledger
        self._redeemer = redeemer
        self._session = session
        self._interval_minutes = interval_minutes

    @property
    def enabled(self) -> bool:
        """Return whether an interval is configured."""
        return self._interval_minutes is not None

    async def run_once(self) -> RedemptionReport:
        """Run one redemption sweep.

        Returns:
            The keys redeemed and the keys whose redemption failed.

        Raises:
            PolymarketAPIError: When the resolution lookup fails.  The
                consumer is resumed before the error propagates.

        """
        self._session.pause()
        try:
            held = await self._ledger.keys()
            if not held:
                logger.info("Redemption sweep: nothing held")
                return RedemptionReport()
            await self._session.wait_for_drain(held)

            resolved = await self._redeemer.list_resolved(held)
            redeemed: list[HoldingKey] = []
            failed: list[HoldingKey] = []
            for key in held:
                if key not in resolved:
                    continue
                if await self._redeem_one(key):
                    redeemed.append(key)
                else:
                    failed.append(key)
        finally:
            self._session.resume()

        logger.info(
            "Redemption sweep: %d redeemed, %d failed, %d held",
            len(redeemed),
            len(failed),
            len(held),
        )
        return RedemptionReport(redeemed=tuple(redeemed), failed=tuple(failed))

    async def _redeem_one(self, key: HoldingKey) -> bool:
        market_id, token_id = key
        async with self._ledger.lock(market_id, token_id):
            try:
                ok = await self._redeemer.redeem(key)
            except Exception:
                logger.exception("Redemption of %s/%s raised", market_id[:20], token_id[:20])
                return False
            if not ok:
                logger.warning("Redemption of %s/%s failed", market_id[:20], token_id[:20])
                return False
            await self._ledger.delete(market_id, token_id)
        logger.info("Redeemed %s/%s and removed it from the ledger", market_id[:20], token_id[:20])
        return True

    async def run(self) -> None:
        """Sweep every interval until cancelled.  Return at once when disabled."""
        if self._interval_minutes is None:
            logger.info("Redemption scheduler disabled")
            return
        interval = self._interval_minutes * _SECONDS_PER_MINUTE
        logger.info("Redemption scheduler running every %.1f minutes", self._interval_minutes)
        while True:
            await asyncio.sleep(interval)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Redemption sweep failed; retrying next interval")
