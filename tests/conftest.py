"""Shared test configuration and fixtures."""

import os
from collections.abc import Iterator
from unittest.mock import patch

import pytest

import mirror_trader.core.config as config_module

_OPERATOR_ENV_VARS = (
    "POLYMARKET_PRIVATE_KEY",
    "POLYMARKET_API_KEY",
    "POLYMARKET_API_SECRET",
    "POLYMARKET_API_PASSPHRASE",
    "POLYMARKET_FUNDER_ADDRESS",
    "TARGET_WALLET",
    "SIZE_MULTIPLIER",
    "MAX_ORDER_AMOUNT",
    "ORDER_TYPE",
    "REDEEM_INTERVAL",
    "CHAIN_ID",
    "RPC_URL",
    "RPC_TOKEN",
    "LEDGER_DB_URL",
    "MIRROR_TRADER_CONFIG_DIR",
)


@pytest.fixture(autouse=True)
def _isolate_operator_settings() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    """Hide the operator's own settings from every test.

    The default ``settings.yaml`` reads credentials and sizing from the
    environment, so a developer's exported ``POLYMARKET_PRIVATE_KEY`` or
    ``TARGET_WALLET`` would otherwise leak into tests.  The ``get_config``
    singleton is reset around each test for the same reason.
    """
    cleaned = {k: v for k, v in os.environ.items() if k not in _OPERATOR_ENV_VARS}
    config_module._config = None
    with patch.dict(os.environ, cleaned, clear=True):
        yield
    config_module._config = None
