"""Shared fixtures for the copy-trading bot tests."""

from collections.abc import AsyncIterator
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from mirror_trader.apps.copy_bot.ledger import HoldingsLedger
from mirror_trader.apps.copy_bot.session import CopySession
from mirror_trader.clients.polymarket.models import Balance, VenueResponse

_STARTING_BALANCE = Decimal(1000)


@pytest_asyncio.fixture
async def ledger() -> AsyncIterator[HoldingsLedger]:
    """Yield an initialised in-memory holdings ledger."""
    repository = HoldingsLedger("sqlite+aiosqlite:///:memory:")
    await repository.init_db()
    yield repository
    await repository.close()


@pytest.fixture
def venue() -> MagicMock:
    """Return a fake venue that fills every order.

    ``post_order`` reports a matched order with no fill amounts, so BUY
    fills are estimated unless a test overrides the response.
    """
    fake = MagicMock()
    fake.create_market_order = AsyncMock(return_value={"signed": True})
    fake.order_signature = MagicMock(return_value="0xsig")
    fake.post_order = AsyncMock(return_value=VenueResponse(order_id="order-1", status="matched"))
    fake.sync_balance = AsyncMock(return_value=None)
    fake.get_balance = AsyncMock(
        return_value=Balance(
            asset_type="COLLATERAL", balance=_STARTING_BALANCE, allowance=_STARTING_BALANCE
        )
    )
    fake.get_open_orders = AsyncMock(return_value=[])
    fake.ping = AsyncMock(return_value=None)
    return fake


@pytest.fixture
def approvals() -> MagicMock:
    """Return a fake approval step that always succeeds."""
    fake = MagicMock()
    fake.ensure_approved = AsyncMock(return_value=None)
    return fake


@pytest.fixture
def redeemer() -> MagicMock:
    """Return a fake redeemer with nothing resolved."""
    fake = MagicMock()
    fake.list_resolved = AsyncMock(return_value=set())
    fake.redeem = AsyncMock(return_value=True)
    return fake


@pytest.fixture
def session() -> CopySession:
    """Return a fresh, enabled copy session."""
    return CopySession()
