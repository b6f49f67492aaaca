"""Collateral balance check for BUY orders.

Copy trading treats a smaller fill as strictly better than no fill, so a
BUY that would overdraw the account is shrunk to what is available
rather than rejected.  Only an empty (or negative) balance is a hard
failure.  SELL orders are sized from the holdings ledger and never pass
through this guard.
"""

import logging
from decimal import Decimal

from mirror_trader.apps.copy_bot.models import BalanceCheck, OrderIntent
from mirror_trader.apps.copy_bot.protocols import ExecutionVenue
from mirror_trader.clients.polymarket.exceptions import PolymarketAPIError
from mirror_trader.core.models import ZERO, Side

logger = logging.getLogger(__name__)


class BalanceGuard:
    """Compare a requested collateral amount against the available balance.

    Args:
        venue: Venue client used to sync and read the collateral balance.

    """

    def __init__(self, venue: ExecutionVenue) -> None:
        """Initialize the guard with its venue client."""
        self._venue = venue

    async def available(self) -> Decimal:
        """Return spendable collateral net of collateral reserved by open BUYs.

        The balance sync and the open-order lookup are best effort: a
        failure is logged and the check continues with what is known.

        Raises:
            PolymarketAPIError: When the balance itself cannot be read.

        """
        try:
            await self._venue.sync_balance()
        except PolymarketAPIError:
            logger.warning("Balance sync failed; using cached balance", exc_info=True)

        balance = (await self._venue.get_balance()).balance

        reserved = ZERO
        try:
            for order in await self._venue.get_open_orders():
                if order.side == Side.BUY.value:
                    reserved += order.remaining * order.price
        except PolymarketAPIError:
            logger.warning(
                "Could not read open orders; ignoring reserved collateral", exc_info=True
            )
        return balance - reserved

    async def check(self, required: Decimal) -> BalanceCheck:
        """Check whether ``required`` collateral is available.

        Args:
            required: Collateral the BUY order would spend.

        Returns:
            ``BalanceCheck`` with ``valid`` set when the full amount is covered.

        """
        available = await self.available()
        return BalanceCheck(valid=available >= required, available=available, required=required)

    async def resolve_amount(self, intent: OrderIntent) -> OrderIntent | None:
        """Apply the shrink-don't-abort policy to a BUY intent.

        Args:
            intent: BUY order intent sized from the observed trade.

        Returns:
            The intent unchanged when fully covered, a copy shrunk to the
            available balance when partially covered, or ``None`` when no
            collateral is available at all.

        """
        result = await self.check(intent.amount)
        if result.valid:
            return intent
        if result.available <= ZERO:
            logger.warning(
                "No collateral available (%s) for BUY of %s on %s",
                result.available,
                intent.amount,
                intent.token_id[:20],
            )
            return None
        logger.info(
            "Shrinking BUY on %s from %s to available %s",
            intent.token_id[:20],
            intent.amount,
            result.available,
        )
        return intent.with_amount(result.available)
