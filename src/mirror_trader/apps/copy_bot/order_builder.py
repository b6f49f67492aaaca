"""Turn observed trades into the bot's own order intents.

BUY orders spend ``size * price * size_multiplier`` collateral, capped at
``max_order_amount`` when one is configured.  The cap is a ceiling only,
applied after the multiplier.  SELL orders always offer the entire
quantity held in the ledger for that market/token pair; with nothing
held the trade is skipped rather than shorted.
"""

import logging
from decimal import Decimal

from mirror_trader.apps.copy_bot.ledger import HoldingsLedger
from mirror_trader.apps.copy_bot.models import CopyConfig, ObservedTrade, OrderIntent, SkipOrder
from mirror_trader.core.models import ZERO, Side

logger = logging.getLogger(__name__)


class BuildError(ValueError):
    """Raise when an observed trade cannot be turned into a valid order."""


class OrderBuilder:
    """Size and shape orders from observed trades.

    Args:
        config: Sizing and order-shape settings.
        ledger: Holdings ledger consulted for SELL sizing.

    """

    def __init__(self, config: CopyConfig, ledger: HoldingsLedger) -> None:
        """Initialize the builder."""
        self._config = config
        self._ledger = ledger

    async def build(self, trade: ObservedTrade) -> OrderIntent | SkipOrder:
        """Build the order intent that mirrors ``trade``.

        Args:
            trade: Trade observed on the target wallet.

        Returns:
            An ``OrderIntent``, or ``SkipOrder`` when a SELL has nothing to sell.

        Raises:
            BuildError: When a BUY sizes to a non-positive amount.

        """
        if trade.side is Side.SELL:
            held = await self._ledger.get(trade.market_id, trade.token_id)
            if held <= ZERO:
                return SkipOrder(reason="no holdings to sell")
            return self._intent(trade, held)

        amount = trade.size * trade.price * self._config.size_multiplier
        cap = self._config.max_order_amount
        if cap is not None and amount > cap:
            logger.debug("Capping BUY amount %s to %s", amount, cap)
            amount = cap
        if amount <= ZERO:
            msg = f"BUY amount for {trade.event_id} is not positive: {amount}"
            raise BuildError(msg)
        return self._intent(trade, amount)

    def _intent(self, trade: ObservedTrade, amount: Decimal) -> OrderIntent:
        return OrderIntent(
            market_id=trade.market_id,
            token_id=trade.token_id,
            side=trade.side,
            amount=amount,
            reference_price=trade.price,
            order_type=self._config.order_type,
            tick_size=self._config.tick_size,
            neg_risk=self._config.neg_risk,
        )
