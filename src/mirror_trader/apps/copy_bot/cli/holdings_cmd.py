"""CLI commands for inspecting and clearing the holdings ledger."""

import asyncio
from typing import Annotated

import typer

from mirror_trader.apps.copy_bot.cli._helpers import build_ledger, load_ledger_url
from mirror_trader.apps.copy_bot.models import HoldingsEntry


def holdings() -> None:
    """Print every position recorded in the holdings ledger."""
    entries = asyncio.run(_load_entries(load_ledger_url()))
    if not entries:
        typer.echo("No holdings recorded.")
        return

    typer.echo(f"{'Market':<24} {'Token':<24} {'Quantity':>14}  Updated")
    typer.echo("-" * 84)
    for entry in entries:
        flag = " (est)" if entry.estimated else ""
        updated = entry.updated_at.strftime("%Y-%m-%d %H:%M") if entry.updated_at else "-"
        typer.echo(
            f"{entry.market_id[:22]:<24} {entry.token_id[:22]:<24} "
            f"{entry.quantity:>14.4f}  {updated}{flag}"
        )
    typer.echo(f"\n{len(entries)} position(s)")


def clear_holdings(
    yes: Annotated[  # noqa: FBT002
        bool, typer.Option("--yes", help="Confirm deleting every ledger entry")
    ] = False,
) -> None:
    """Delete every entry from the holdings ledger.

    Require ``--yes``: the ledger drives SELL sizing, so clearing it means
    the bot will skip SELLs for positions it still holds on-chain.
    """
    if not yes:
        typer.echo("Error: --yes is required to clear the holdings ledger.", err=True)
        raise typer.Exit(code=1)
    count = asyncio.run(_clear(load_ledger_url()))
    typer.echo(f"Cleared {count} ledger entr{'y' if count == 1 else 'ies'}.")


async def _load_entries(url: str) -> list[HoldingsEntry]:
    ledger = build_ledger(url)
    try:
        await ledger.init_db()
        return await ledger.all()
    finally:
        await ledger.close()


async def _clear(url: str) -> int:
    ledger = build_ledger(url)
    try:
        await ledger.init_db()
        return await ledger.clear()
    finally:
        await ledger.close()
