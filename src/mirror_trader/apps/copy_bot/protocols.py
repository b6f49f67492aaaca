"""Structural protocols for the copy bot's external collaborators.

Decouple the execution pipeline and the redemption scheduler from the
concrete Polymarket client so tests can substitute simple fakes.  Any
class whose shape matches these protocols can be used without explicit
inheritance.
"""

from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from mirror_trader.apps.copy_bot.models import HoldingKey
from mirror_trader.clients.polymarket.models import Balance, OpenOrder, VenueResponse


@runtime_checkable
class ExecutionVenue(Protocol):
    """Order signing, submission and balance queries on the trading venue."""

    async def create_market_order(  # noqa: PLR0913
        self,
        token_id: str,
        side: str,
        amount: Decimal,
        *,
        tick_size: str,
        neg_risk: bool,
        order_type: str,
    ) -> Any:
        """Build and sign a market order, returning an opaque signed order."""
        ...

    def order_signature(self, signed_order: Any) -> str:
        """Return the signature attached to a signed order, or ``""``."""
        ...

    async def post_order(self, signed_order: Any, order_type: str) -> VenueResponse:
        """Submit a signed order and return the parsed venue response."""
        ...

    async def sync_balance(self, asset_type: str = "COLLATERAL") -> None:
        """Ask the venue to refresh its cached balance and allowance."""
        ...

    async def get_balance(self, asset_type: str = "COLLATERAL") -> Balance:
        """Return the current balance for an asset."""
        ...

    async def get_open_orders(self) -> list[OpenOrder]:
        """Return resting orders that reserve collateral."""
        ...

    async def ping(self) -> None:
        """Raise if the venue is unreachable."""
        ...


@runtime_checkable
class Approvals(Protocol):
    """Idempotent on-chain approval step run after every BUY."""

    async def ensure_approved(self) -> None:
        """Make sure bought tokens can be sold back through the exchange."""
        ...


@runtime_checkable
class Redeemer(Protocol):
    """Resolution lookup and redemption of held positions."""

    async def list_resolved(self, keys: list[HoldingKey]) -> set[HoldingKey]:
        """Return the subset of ``keys`` that can be redeemed now."""
        ...

    async def redeem(self, key: HoldingKey) -> bool:
        """Redeem one position, returning whether it succeeded."""
        ...
