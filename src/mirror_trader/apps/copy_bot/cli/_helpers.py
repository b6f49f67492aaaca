"""Shared helpers for copy-bot CLI commands.

Centralise logging setup, configuration loading with clean error exits,
and authenticated client construction.
"""

import logging

import typer

from mirror_trader.apps.copy_bot.config import load_copy_config, load_credentials
from mirror_trader.apps.copy_bot.ledger import HoldingsLedger
from mirror_trader.apps.copy_bot.models import CopyConfig, Credentials
from mirror_trader.clients.polymarket.client import PolymarketClient
from mirror_trader.core.config import ConfigError, get_config


def configure_logging(*, verbose: bool = False) -> None:
    """Enable INFO-level logging, or DEBUG when ``verbose`` is set."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def fail(message: str) -> typer.Exit:
    """Print ``message`` to stderr and return an exit-code-1 exception to raise."""
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(code=1)


def load_settings(
    *,
    target_wallet: str | None = None,
    require_target: bool = True,
    **overrides: object,
) -> tuple[CopyConfig, Credentials]:
    """Load copy settings and credentials, exiting with code 1 on error.

    Args:
        target_wallet: Overrides the configured target wallet.
        require_target: Whether a target wallet must be configured.
        **overrides: CopyConfig field overrides from CLI options.

    Returns:
        Tuple of copy settings and credentials.

    """
    try:
        loader = get_config()
        config = load_copy_config(loader, **overrides)
        credentials = load_credentials(
            loader, target_wallet=target_wallet, require_target=require_target
        )
    except ConfigError as exc:
        raise fail(str(exc)) from exc
    return config, credentials


def load_ledger_url() -> str:
    """Return the configured ledger database URL."""
    try:
        return str(get_config().get("ledger.url", "sqlite+aiosqlite:///holdings.db"))
    except ConfigError as exc:
        raise fail(str(exc)) from exc


def build_client(credentials: Credentials, config: CopyConfig) -> PolymarketClient:
    """Build an authenticated ``PolymarketClient`` from loaded settings.

    Args:
        credentials: Operator credentials and endpoints.
        config: Copy settings supplying the RPC timeout and neg-risk flag.

    Returns:
        Authenticated client ready for trading.

    """
    return PolymarketClient(
        private_key=credentials.private_key,
        api_key=credentials.api_key,
        api_secret=credentials.api_secret,
        api_passphrase=credentials.api_passphrase,
        funder_address=credentials.funder_address,
        chain_id=credentials.chain_id,
        rpc_url=credentials.rpc_url,
        rpc_token=credentials.rpc_token,
        rpc_timeout=config.rpc_timeout_seconds,
        neg_risk=config.neg_risk,
    )


def build_ledger(url: str) -> HoldingsLedger:
    """Return a holdings ledger for ``url``."""
    return HoldingsLedger(url)
