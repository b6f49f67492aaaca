"""Execute mirrored orders and keep the holdings ledger in step with fills.

Each observed trade moves through ``BUILT -> SIMULATED (first order only)
-> SUBMITTED -> filled | rejected``.  The whole sequence runs under the
ledger's lock for the trade's market/token key, so a BUY, a SELL and a
redemption of the same key can never interleave their ledger updates.

Ordinary venue rejections come back as a failed ``ExecutionResult`` with
a human-readable cause.  Anything unexpected propagates to the caller.

One-off market orders placed by the operator reuse the same submission
path through ``place_market_order``.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any

from mirror_trader.apps.copy_bot.balance_guard import BalanceGuard
from mirror_trader.apps.copy_bot.ledger import HoldingsLedger
from mirror_trader.apps.copy_bot.models import (
    CopyConfig,
    ExecutionResult,
    FillStatus,
    ObservedTrade,
    OrderIntent,
    OrderType,
    SkipOrder,
)
from mirror_trader.apps.copy_bot.order_builder import BuildError, OrderBuilder
from mirror_trader.apps.copy_bot.protocols import Approvals, ExecutionVenue
from mirror_trader.apps.copy_bot.session import CopySession
from mirror_trader.clients.polymarket.exceptions import PolymarketAPIError
from mirror_trader.core.models import ZERO, Side

logger = logging.getLogger(__name__)

REGION_BLOCKED = (
    "Incorrect region: Polymarket blocks trading from this server's location. "
    "Use a server in an allowed region or route traffic through a VPN/proxy."
)
AUTH_FAILED = "Authentication failed: check your API credentials."
RATE_LIMITED = "Rate limited: too many requests, slow down."

_FAILURE_BY_STATUS = {"403": REGION_BLOCKED, "401": AUTH_FAILED, "429": RATE_LIMITED}
_REGION_MARKERS = ("trading restricted", "geoblock")
_BALANCE_MARKERS = ("not enough balance", "allowance")


def describe_order_failure(status: str | int | None) -> str:
    """Map a venue status or HTTP code to a human-readable failure cause.

    Args:
        status: Venue order status (e.g. ``"REJECTED"``) or HTTP status code.

    Returns:
        The classified cause, or a generic ``Order failed (status: X)`` message.

    """
    text = str(status) if status not in (None, "") else "unknown"
    return _FAILURE_BY_STATUS.get(text, f"Order failed (status: {text})")


def is_region_block(message: str) -> bool:
    """Return whether an error message reports a geographic trading block."""
    lowered = message.lower()
    return any(marker in lowered for marker in _REGION_MARKERS)


def is_balance_error(message: str) -> bool:
    """Return whether an error message reports insufficient balance or allowance."""
    lowered = message.lower()
    return any(marker in lowered for marker in _BALANCE_MARKERS)


class ExecutionPipeline:
    """Build, guard, simulate, submit and record one mirrored trade.

    Args:
        venue: Order signing and submission client.
        ledger: Holdings ledger; the pipeline is its only trade-time writer.
        builder: Sizes order intents from observed trades.
        guard: Collateral balance guard for BUY orders.
        approvals: Post-BUY token approval step.
        session: Run state holding the one-shot simulation flag.
        config: Copy-trading settings.

    """

    def __init__(  # noqa: PLR0913
        self,
        venue: ExecutionVenue,
        ledger: HoldingsLedger,
        builder: OrderBuilder,
        guard: BalanceGuard,
        approvals: Approvals,
        session: CopySession,
        config: CopyConfig,
    ) -> None:
        """Initialize the pipeline with its collaborators."""
        self._venue = venue
        self._ledger = ledger
        self._builder = builder
        self._guard = guard
        self._approvals = approvals
        self._session = session
        self._config = config

    async def execute(self, trade: ObservedTrade) -> ExecutionResult:
        """Mirror one observed trade.

        Args:
            trade: Trade observed on the target wallet.

        Returns:
            The execution outcome.  Skips and venue rejections are reported
            here rather than raised.

        """
        logger.info(
            "Detected %s %s @ %s on %s/%s (%s)",
            trade.side.value,
            trade.size,
            trade.price,
            trade.market_id[:20],
            trade.token_id[:20],
            trade.event_id,
        )
        async with self._ledger.lock(trade.market_id, trade.token_id):
            try:
                built = await self._builder.build(trade)
            except BuildError as exc:
                logger.warning("Cannot build order for %s: %s", trade.event_id, exc)
                return ExecutionResult.failed(str(exc))

            if isinstance(built, SkipOrder):
                logger.warning(
                    "Skipping %s on %s/%s: %s",
                    trade.side.value,
                    trade.market_id[:20],
                    trade.token_id[:20],
                    built.reason,
                )
                return ExecutionResult.skip(built.reason)

            intent = built
            if intent.side is Side.BUY:
                try:
                    guarded = await self._guard.resolve_amount(intent)
                except PolymarketAPIError as exc:
                    logger.warning("Balance check failed, skipping %s: %s", trade.event_id, exc)
                    return ExecutionResult.failed(f"Balance check failed: {exc}", intent=intent)
                if guarded is None:
                    return ExecutionResult.failed("Insufficient collateral balance", intent=intent)
                intent = guarded

            return await self._submit(intent)

    async def place_market_order(  # noqa: PLR0913
        self,
        side: Side,
        token_id: str,
        amount: Decimal,
        *,
        market_id: str | None = None,
        price: Decimal | None = None,
        order_type: OrderType | None = None,
        tick_size: str | None = None,
        neg_risk: bool | None = None,
    ) -> ExecutionResult:
        """Place a one-off market order outside the mirroring flow.

        Order options default to the copy settings.  The order goes through
        the same simulation, submission and failure classification as a
        mirrored trade.  With a ``market_id`` the fill is recorded in the
        ledger under that key's lock; without one the ledger is untouched.

        Args:
            side: BUY or SELL.
            token_id: Outcome token to trade.
            amount: Collateral to spend for BUY, tokens to offer for SELL.
            market_id: Condition id of the token's market, for ledger records.
            price: Expected price, used to estimate an unreported BUY fill.
            order_type: FAK or FOK.
            tick_size: Market tick size.
            neg_risk: Whether the market trades on the negative-risk exchange.

        Returns:
            The execution outcome.

        Raises:
            ValueError: If ``amount`` is not positive.

        """
        intent = OrderIntent(
            market_id=market_id or "",
            token_id=token_id,
            side=side,
            amount=amount,
            reference_price=price,
            order_type=order_type or self._config.order_type,
            tick_size=tick_size or self._config.tick_size,
            neg_risk=self._config.neg_risk if neg_risk is None else neg_risk,
        )
        if market_id is None:
            logger.warning("No market id given for %s; ledger left unchanged", token_id[:20])
            return await self._submit(intent, record=False)
        async with self._ledger.lock(market_id, token_id):
            return await self._submit(intent)

    async def _submit(self, intent: OrderIntent, *, record: bool = True) -> ExecutionResult:
        logger.info(
            "Placing %s %s market order: %s on %s",
            intent.side.value,
            intent.order_type.value,
            intent.amount,
            intent.token_id[:20],
        )
        try:
            signed = await self._venue.create_market_order(
                intent.token_id,
                intent.side.value,
                intent.amount,
                tick_size=intent.tick_size,
                neg_risk=intent.neg_risk,
                order_type=intent.order_type.value,
            )
            if self._session.claim_simulation():
                await self._simulate(signed)
            response = await self._venue.post_order(signed, intent.order_type.value)
        except PolymarketAPIError as exc:
            return await self._rejected(intent, exc.status_code, str(exc))

        if not response.order_id or not FillStatus.is_success(response.status):
            return await self._rejected(
                intent, response.status, response.error_msg or "", order_id=response.order_id
            )

        if intent.side is Side.SELL:
            sold = await self._record_sell(intent, response.making_amount, record=record)
            executed, estimated = sold, False
        else:
            executed, estimated = await self._record_buy(
                intent, response.taking_amount, record=record
            )

        logger.info(
            "%s executed: order %s, status %s, %s tokens%s",
            intent.side.value,
            response.order_id,
            response.status,
            executed,
            " (estimated)" if estimated else "",
        )
        return ExecutionResult(
            success=True,
            order_id=response.order_id,
            status=response.status,
            executed_amount=executed,
            estimated=estimated,
            transaction_hashes=response.transaction_hashes,
            intent=intent,
        )

    async def _simulate(self, signed: Any) -> None:
        """Dry-run signing and connectivity once, without gating submission.

        The order is already signed locally; this checks that it carries a
        signature and that the venue answers, bounded by the configured
        timeout.  No key material leaves the process.
        """
        try:
            if not self._venue.order_signature(signed):
                logger.warning("Simulation: signed order carries no signature")
            await asyncio.wait_for(self._venue.ping(), self._config.simulation_timeout_seconds)
            logger.info("Simulation passed: order signed and venue reachable")
        except TimeoutError:
            logger.warning(
                "Simulation timed out after %ss (continuing to post)",
                self._config.simulation_timeout_seconds,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Simulation failed (continuing to post): %s", exc)

    async def _rejected(
        self,
        intent: OrderIntent,
        status: str | int | None,
        message: str,
        *,
        order_id: str | None = None,
    ) -> ExecutionResult:
        if is_region_block(message):
            error = REGION_BLOCKED
        elif is_balance_error(message):
            error = f"Balance/allowance error: {message}"
            await self._resync_allowance()
        else:
            error = describe_order_failure(status)
        logger.error(
            "%s order on %s failed: %s%s",
            intent.side.value,
            intent.token_id[:20],
            error,
            f" ({message})" if message and message not in error else "",
        )
        return ExecutionResult.failed(
            error,
            intent=intent,
            order_id=order_id,
            status=str(status) if status is not None else None,
        )

    async def _resync_allowance(self) -> None:
        try:
            balance = await self._guard.available()
            logger.info("Available collateral: %s; updating balance allowance", balance)
            await self._venue.sync_balance()
        except PolymarketAPIError:
            logger.warning("Balance allowance update failed", exc_info=True)

    async def _record_sell(
        self, intent: OrderIntent, making_amount: Decimal | None, *, record: bool
    ) -> Decimal:
        sold = making_amount if making_amount is not None else intent.amount
        if sold <= ZERO:
            logger.warning(
                "SELL on %s reported no executed quantity; ledger unchanged", intent.token_id[:20]
            )
            return ZERO
        if record:
            await self._ledger.remove(intent.market_id, intent.token_id, sold)
        return sold

    async def _record_buy(
        self, intent: OrderIntent, taking_amount: Decimal | None, *, record: bool
    ) -> tuple[Decimal, bool]:
        if taking_amount is not None and taking_amount > ZERO:
            bought, estimated = taking_amount, False
        elif intent.reference_price is not None:
            bought, estimated = intent.amount / intent.reference_price, True
            logger.warning(
                "Fill size not reported for %s; estimating %s tokens", intent.token_id[:20], bought
            )
        else:
            bought, estimated = ZERO, False
            logger.warning(
                "Fill size not reported for %s and no price to estimate from", intent.token_id[:20]
            )
        if record and bought > ZERO:
            await self._ledger.add(
                intent.market_id, intent.token_id, bought, estimated=estimated
            )

        try:
            await self._approvals.ensure_approved()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to approve tokens after buy: %s", exc)
        return bought, estimated
