"""CLI command for granting the on-chain approvals the exchange needs.

Approve USDC.e for the Conditional Token Framework and the exchange, and
the exchange as operator of the wallet's outcome tokens.  With
``--neg-risk`` (or ``copy.neg_risk`` in settings) the negative-risk
exchange and adapter are approved as well.
"""

import asyncio
from typing import Annotated

import typer

from mirror_trader.apps.copy_bot.cli._helpers import (
    build_client,
    configure_logging,
    fail,
    load_settings,
)
from mirror_trader.apps.copy_bot.models import CopyConfig, Credentials
from mirror_trader.clients.polymarket.exceptions import PolymarketError


def approve(
    neg_risk: Annotated[
        bool | None,
        typer.Option("--neg-risk/--no-neg-risk", help="Also approve negative-risk contracts"),
    ] = None,
) -> None:
    """Set every USDC and token approval required for trading."""
    configure_logging()
    config, credentials = load_settings(require_target=False, neg_risk=neg_risk)
    try:
        sent = asyncio.run(_approve(config, credentials))
    except PolymarketError as exc:
        raise fail(str(exc)) from exc
    typer.echo(f"Approvals complete ({sent} transaction(s) sent).")


async def _approve(config: CopyConfig, credentials: Credentials) -> int:
    async with build_client(credentials, config) as client:
        return await client.approve_all(neg_risk=config.neg_risk)
