"""CLI command for running a single redemption sweep."""

import asyncio

import typer

from mirror_trader.apps.copy_bot.cli._helpers import (
    build_client,
    build_ledger,
    configure_logging,
    fail,
    load_settings,
)
from mirror_trader.apps.copy_bot.models import CopyConfig, Credentials, RedemptionReport
from mirror_trader.apps.copy_bot.redemption import RedemptionScheduler
from mirror_trader.apps.copy_bot.session import CopySession
from mirror_trader.clients.polymarket.exceptions import PolymarketError
from mirror_trader.clients.polymarket.redeemer import PolymarketRedeemer


def redeem() -> None:
    """Redeem every held position whose market has resolved, then exit."""
    configure_logging()
    config, credentials = load_settings(require_target=False)
    try:
        report = asyncio.run(_redeem(config, credentials))
    except PolymarketError as exc:
        raise fail(str(exc)) from exc

    typer.echo(f"Redeemed: {len(report.redeemed)}")
    for market_id, token_id in report.redeemed:
        typer.echo(f"  {market_id[:20]}... / {token_id[:20]}...")
    if report.failed:
        typer.echo(f"Failed: {len(report.failed)}")
        for market_id, token_id in report.failed:
            typer.echo(f"  {market_id[:20]}... / {token_id[:20]}...")
        raise typer.Exit(code=1)


async def _redeem(config: CopyConfig, credentials: Credentials) -> RedemptionReport:
    ledger = build_ledger(credentials.ledger_url)
    session = CopySession()
    try:
        await ledger.init_db()
        async with build_client(credentials, config) as client:
            scheduler = RedemptionScheduler(
                ledger, PolymarketRedeemer(client), session, interval_minutes=None
            )
            return await scheduler.run_once()
    finally:
        session.close()
        await ledger.close()
