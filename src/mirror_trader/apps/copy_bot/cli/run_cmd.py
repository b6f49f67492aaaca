"""CLI command for running the copy-trading bot.

Watch the target wallet's public trades and mirror them on the
operator's account.  Require ``--confirm-live`` to prevent accidental
live trading, and display a warning banner before starting.
"""

import asyncio
from typing import Annotated

import typer

from mirror_trader.apps.copy_bot.activity_feed import ActivityFeed
from mirror_trader.apps.copy_bot.cli._helpers import (
    build_client,
    build_ledger,
    configure_logging,
    fail,
    load_settings,
)
from mirror_trader.apps.copy_bot.engine import CopyTradingEngine
from mirror_trader.apps.copy_bot.models import CopyConfig, Credentials
from mirror_trader.clients.polymarket.exceptions import PolymarketError
from mirror_trader.clients.polymarket.redeemer import PolymarketRedeemer


def run(  # noqa: PLR0913
    target: Annotated[
        str | None, typer.Option(help="Target wallet to mirror (overrides TARGET_WALLET)")
    ] = None,
    multiplier: Annotated[
        float | None, typer.Option(help="Size multiplier applied to the target's spend")
    ] = None,
    max_amount: Annotated[
        float | None, typer.Option(help="Maximum USDC per BUY order")
    ] = None,
    order_type: Annotated[
        str | None, typer.Option(help="FAK (partial fills) or FOK (all or nothing)")
    ] = None,
    redeem_interval: Annotated[
        float | None, typer.Option(help="Minutes between redemption sweeps")
    ] = None,
    confirm_live: Annotated[  # noqa: FBT002
        bool, typer.Option("--confirm-live", help="Required flag to enable live trading")
    ] = False,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Mirror a target wallet's trades with real money.

    Place real CLOB orders using an authenticated wallet. Require
    ``--confirm-live`` to prevent accidental execution.
    """
    if not confirm_live:
        typer.echo("Error: --confirm-live is required for live trading.", err=True)
        typer.echo("This flag prevents accidental live trading with real money.", err=True)
        raise typer.Exit(code=1)

    configure_logging(verbose=verbose)
    config, credentials = load_settings(
        target_wallet=target,
        size_multiplier=multiplier,
        max_order_amount=max_amount,
        order_type=order_type,
        redeem_interval_minutes=redeem_interval,
    )
    _display_banner(config, credentials)
    try:
        asyncio.run(_run(config, credentials))
    except PolymarketError as exc:
        raise fail(str(exc)) from exc


def _display_banner(config: CopyConfig, credentials: Credentials) -> None:
    """Display the live trading warning banner and configuration.

    Args:
        config: Copy settings in effect.
        credentials: Credentials (only non-secret fields are shown).

    """
    typer.echo("")
    typer.echo("=" * 60)
    typer.echo("  LIVE COPY TRADING -- real money at risk")
    typer.echo("=" * 60)
    typer.echo("")
    typer.echo(f"Target wallet: {credentials.target_wallet}")
    typer.echo(f"Size multiplier: {config.size_multiplier}")
    cap = config.max_order_amount
    typer.echo(f"Max order amount: {'unlimited' if cap is None else f'${cap}'}")
    typer.echo(f"Order type: {config.order_type.value}")
    interval = config.redeem_interval_minutes
    typer.echo(f"Redemption: {'disabled' if interval is None else f'every {interval} min'}")
    typer.echo(f"Ledger: {credentials.ledger_url}")


async def _run(config: CopyConfig, credentials: Credentials) -> None:
    """Build the engine and run it until shutdown."""
    client = build_client(credentials, config)
    async with client:
        engine = CopyTradingEngine(
            config=config,
            ledger=build_ledger(credentials.ledger_url),
            venue=client,
            approvals=client,
            redeemer=PolymarketRedeemer(client),
            feed=ActivityFeed(credentials.target_wallet),
        )
        await engine.run()
