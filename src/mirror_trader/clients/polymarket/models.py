"""Typed data models for Polymarket venue responses.

Provide frozen dataclasses that insulate the rest of the codebase from the
untyped dictionaries returned by ``py-clob-client`` and the Data API.
All monetary values use ``Decimal`` for precision.
"""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class VenueResponse:
    """Result of posting a signed order to the CLOB.

    Every field is optional because the CLOB omits keys depending on the
    order type and outcome.  Callers must check presence explicitly
    instead of coercing missing values to zero.

    Args:
        order_id: Identifier assigned by the CLOB, ``None`` when absent.
        status: Raw status string (e.g. ``"matched"``), ``None`` when absent.
        making_amount: Amount given up by the order (tokens for a SELL,
            collateral for a BUY), ``None`` when the CLOB did not report it.
        taking_amount: Amount received by the order (collateral for a SELL,
            tokens for a BUY), ``None`` when the CLOB did not report it.
        transaction_hashes: On-chain settlement hashes, if any.
        error_msg: Error text returned alongside a failed order.

    """

    order_id: str | None = None
    status: str | None = None
    making_amount: Decimal | None = None
    taking_amount: Decimal | None = None
    transaction_hashes: tuple[str, ...] = ()
    error_msg: str | None = None


@dataclass(frozen=True)
class OpenOrder:
    """Resting order on the CLOB used to compute reserved collateral.

    Args:
        order_id: Identifier of the order.
        side: ``"BUY"`` or ``"SELL"``.
        price: Limit price between 0 and 1.
        original_size: Size in shares at submission.
        size_matched: Shares already filled.

    """

    order_id: str
    side: str
    price: Decimal
    original_size: Decimal
    size_matched: Decimal

    @property
    def remaining(self) -> Decimal:
        """Return the unfilled share count."""
        return max(self.original_size - self.size_matched, Decimal(0))


@dataclass(frozen=True)
class Balance:
    """Typed balance and allowance information for a Polymarket asset.

    Args:
        asset_type: ``"COLLATERAL"`` for USDC or ``"CONDITIONAL"`` for tokens.
        balance: Current balance in the asset's native units.
        allowance: Approved spending allowance for the exchange contract.

    """

    asset_type: str
    balance: Decimal
    allowance: Decimal


@dataclass(frozen=True)
class RedeemablePosition:
    """A resolved position that can be redeemed for USDC collateral.

    Represent a conditional token position that the Data API flags as
    redeemable.

    Args:
        condition_id: Market condition identifier.
        token_id: CLOB token identifier (the ``asset`` field from the Data API).
        outcome: Outcome label (e.g. ``"Yes"`` or ``"No"``).
        outcome_index: Position of the outcome in the market (0 or 1).
        size: Number of tokens held.
        negative_risk: Whether the market settles through the NegRiskAdapter.
        title: Human-readable market title.

    """

    condition_id: str
    token_id: str
    outcome: str
    outcome_index: int
    size: Decimal
    negative_risk: bool
    title: str
