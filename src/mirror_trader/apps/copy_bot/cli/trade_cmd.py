"""CLI commands for one-off market orders.

Provide ``buy`` and ``sell`` subcommands that place a single market
order through the same simulation, submission and failure classification
as mirrored trades.  BUY amounts are USDC to spend; SELL amounts are
outcome tokens to offer.  Passing ``--market`` records the fill in the
holdings ledger so later mirrored SELLs and redemptions see it.
"""

import asyncio
from decimal import Decimal
from typing import Annotated

import typer

from mirror_trader.apps.copy_bot.balance_guard import BalanceGuard
from mirror_trader.apps.copy_bot.cli._helpers import (
    build_client,
    build_ledger,
    configure_logging,
    fail,
    load_settings,
)
from mirror_trader.apps.copy_bot.execution import ExecutionPipeline
from mirror_trader.apps.copy_bot.models import CopyConfig, Credentials, ExecutionResult
from mirror_trader.apps.copy_bot.order_builder import OrderBuilder
from mirror_trader.apps.copy_bot.session import CopySession
from mirror_trader.clients.polymarket.exceptions import PolymarketError
from mirror_trader.core.models import ZERO, Side

TokenArg = Annotated[str, typer.Argument(help="Outcome token ID to trade")]
MarketOption = Annotated[
    str | None, typer.Option("--market", help="Market condition ID; records the fill")
]
OrderTypeOption = Annotated[
    str | None, typer.Option(help="FAK (partial fills) or FOK (all or nothing)")
]
TickSizeOption = Annotated[str | None, typer.Option(help="Market tick size, e.g. 0.01")]
NegRiskOption = Annotated[
    bool | None,
    typer.Option("--neg-risk/--no-neg-risk", help="Trade on the negative-risk exchange"),
]
ConfirmOption = Annotated[
    bool, typer.Option("--confirm-live", help="Required flag to place a real order")
]


def buy(  # noqa: PLR0913
    token_id: TokenArg,
    amount: Annotated[float, typer.Argument(help="USDC to spend")],
    market: MarketOption = None,
    price: Annotated[
        float | None, typer.Option(help="Expected price, to estimate an unreported fill")
    ] = None,
    order_type: OrderTypeOption = None,
    tick_size: TickSizeOption = None,
    neg_risk: NegRiskOption = None,
    confirm_live: ConfirmOption = False,  # noqa: FBT002
) -> None:
    """Place a market BUY spending AMOUNT USDC on TOKEN_ID."""
    _place(
        Side.BUY,
        token_id,
        amount,
        market=market,
        price=price,
        order_type=order_type,
        tick_size=tick_size,
        neg_risk=neg_risk,
        confirm_live=confirm_live,
    )


def sell(  # noqa: PLR0913
    token_id: TokenArg,
    amount: Annotated[float, typer.Argument(help="Outcome tokens to sell")],
    market: MarketOption = None,
    order_type: OrderTypeOption = None,
    tick_size: TickSizeOption = None,
    neg_risk: NegRiskOption = None,
    confirm_live: ConfirmOption = False,  # noqa: FBT002
) -> None:
    """Place a market SELL of AMOUNT tokens of TOKEN_ID."""
    _place(
        Side.SELL,
        token_id,
        amount,
        market=market,
        price=None,
        order_type=order_type,
        tick_size=tick_size,
        neg_risk=neg_risk,
        confirm_live=confirm_live,
    )


def _to_decimal(name: str, value: float) -> Decimal:
    result = Decimal(str(value))
    if not result.is_finite() or result <= ZERO:
        raise fail(f"{name.capitalize()} must be positive, got {value}.")
    return result


def _place(  # noqa: PLR0913
    side: Side,
    token_id: str,
    amount: float,
    *,
    market: str | None,
    price: float | None,
    order_type: str | None,
    tick_size: str | None,
    neg_risk: bool | None,
    confirm_live: bool,
) -> None:
    """Validate options, place the order, and report the outcome."""
    if not confirm_live:
        typer.echo("Error: --confirm-live is required to place a real order.", err=True)
        raise typer.Exit(code=1)

    amount_dec = _to_decimal("amount", amount)
    price_dec = _to_decimal("price", price) if price is not None else None

    configure_logging()
    config, credentials = load_settings(
        require_target=False, order_type=order_type, tick_size=tick_size, neg_risk=neg_risk
    )
    try:
        result = asyncio.run(
            _execute(config, credentials, side, token_id, amount_dec, market, price_dec)
        )
    except PolymarketError as exc:
        raise fail(str(exc)) from exc

    if not result.success:
        raise fail(result.error or "Order failed")

    typer.echo("\n--- Order Result ---")
    typer.echo(f"Order ID: {result.order_id}")
    typer.echo(f"Status: {result.status}")
    suffix = " (estimated)" if result.estimated else ""
    typer.echo(f"{side.value} {result.executed_amount} tokens{suffix}")
    if market is None:
        typer.echo("Ledger not updated (no --market given).")


async def _execute(  # noqa: PLR0913
    config: CopyConfig,
    credentials: Credentials,
    side: Side,
    token_id: str,
    amount: Decimal,
    market: str | None,
    price: Decimal | None,
) -> ExecutionResult:
    ledger = build_ledger(credentials.ledger_url)
    session = CopySession()
    try:
        await ledger.init_db()
        async with build_client(credentials, config) as client:
            pipeline = ExecutionPipeline(
                venue=client,
                ledger=ledger,
                builder=OrderBuilder(config, ledger),
                guard=BalanceGuard(client),
                approvals=client,
                session=session,
                config=config,
            )
            return await pipeline.place_market_order(
                side, token_id, amount, market_id=market, price=price
            )
    finally:
        session.close()
        await ledger.close()
