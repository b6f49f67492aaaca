"""CLI subpackage for the copy-trading bot.

Create the Typer application and register all command modules.
"""

import typer

from mirror_trader.apps.copy_bot.cli.approve_cmd import approve
from mirror_trader.apps.copy_bot.cli.holdings_cmd import clear_holdings, holdings
from mirror_trader.apps.copy_bot.cli.redeem_cmd import redeem
from mirror_trader.apps.copy_bot.cli.run_cmd import run
from mirror_trader.apps.copy_bot.cli.trade_cmd import buy, sell

app = typer.Typer(help="Mirror a Polymarket wallet's trades on your own account")

app.command()(run)
app.command()(holdings)
app.command(name="clear-holdings")(clear_holdings)
app.command()(approve)
app.command()(redeem)
app.command()(buy)
app.command()(sell)

__all__ = ["app"]
