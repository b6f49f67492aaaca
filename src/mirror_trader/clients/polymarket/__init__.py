"""Polymarket trading venue client: CLOB orders, approvals, and redemption."""

from mirror_trader.clients.polymarket.client import PolymarketClient
from mirror_trader.clients.polymarket.exceptions import (
    InsufficientGasError,
    PolymarketAPIError,
    PolymarketError,
    RpcConnectionError,
)
from mirror_trader.clients.polymarket.models import (
    Balance,
    OpenOrder,
    RedeemablePosition,
    VenueResponse,
)

__all__ = [
    "Balance",
    "InsufficientGasError",
    "OpenOrder",
    "PolymarketAPIError",
    "PolymarketClient",
    "PolymarketError",
    "RedeemablePosition",
    "RpcConnectionError",
    "VenueResponse",
]
