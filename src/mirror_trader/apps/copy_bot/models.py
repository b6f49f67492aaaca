"""Data models for the copy-trading bot.

Define the immutable value objects that flow through the mirroring
pipeline: trades observed on the target wallet, the order intents derived
from them, execution outcomes, ledger entries, and the configuration and
credentials the bot is constructed with.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum

from mirror_trader.core.models import ONE, ZERO, Side

_DEFAULT_TICK_SIZE = "0.01"
_DEFAULT_QUEUE_SIZE = 1000
_DEFAULT_SIMULATION_TIMEOUT = 10.0
_DEFAULT_RPC_TIMEOUT = 7.0
_DEFAULT_LEDGER_URL = "sqlite+aiosqlite:///holdings.db"
_POLYGON_CHAIN_ID = 137

HoldingKey = tuple[str, str]


class OrderType(Enum):
    """Market order execution policy.

    ``FAK`` (fill-and-kill) accepts partial fills and cancels the rest;
    ``FOK`` (fill-or-kill) requires the whole order to fill or none of it.
    """

    FAK = "FAK"
    FOK = "FOK"


class FillStatus:
    """Venue statuses that count as a successful fill."""

    FILLED = "FILLED"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    MATCHED = "MATCHED"

    SUCCESS = frozenset({FILLED, PARTIALLY_FILLED, MATCHED})

    @classmethod
    def is_success(cls, status: str | None) -> bool:
        """Return whether a raw venue status denotes a fill (case-insensitive)."""
        return status is not None and status.upper() in cls.SUCCESS


class DeferPolicy(Enum):
    """What to do with trades detected while the consumer is paused."""

    QUEUE = "queue"
    DROP = "drop"


@dataclass(frozen=True)
class ObservedTrade:
    """A trade reported by the target wallet's public activity feed.

    Args:
        market_id: Market condition identifier.
        token_id: Outcome token identifier.
        side: BUY or SELL as executed by the target.
        price: Execution price, a probability in (0, 1].
        size: Number of outcome tokens traded by the target.
        event_id: Unique source event identifier used for de-duplication.
        outcome: Human-readable outcome label (e.g. "Yes").
        title: Market title for logging.
        timestamp: Unix epoch seconds of the source trade.

    Raises:
        ValueError: If price or size are out of range.

    """

    market_id: str
    token_id: str
    side: Side
    price: Decimal
    size: Decimal
    event_id: str
    outcome: str = ""
    title: str = ""
    timestamp: int = 0

    def __post_init__(self) -> None:
        """Validate price and size."""
        if not (ZERO < self.price <= ONE):
            msg = f"price must be in (0, 1], got {self.price}"
            raise ValueError(msg)
        if self.size <= ZERO:
            msg = f"size must be positive, got {self.size}"
            raise ValueError(msg)

    @property
    def key(self) -> HoldingKey:
        """Return the ``(market_id, token_id)`` ledger key."""
        return (self.market_id, self.token_id)


@dataclass(frozen=True)
class OrderIntent:
    """The bot's own order derived from an observed trade.

    ``amount`` is denominated in collateral (USDC) for BUY orders and in
    outcome tokens for SELL orders, matching what the venue's market
    order API expects.  ``reference_price`` is the observed trade price,
    used to estimate a BUY fill the venue does not report; one-off orders
    may leave it unset.

    Raises:
        ValueError: If ``amount`` is not positive.

    """

    market_id: str
    token_id: str
    side: Side
    amount: Decimal
    reference_price: Decimal | None = None
    order_type: OrderType = OrderType.FAK
    tick_size: str = _DEFAULT_TICK_SIZE
    neg_risk: bool = False

    def __post_init__(self) -> None:
        """Reject non-positive amounts."""
        if self.amount <= ZERO:
            msg = f"order amount must be positive, got {self.amount}"
            raise ValueError(msg)

    @property
    def key(self) -> HoldingKey:
        """Return the ``(market_id, token_id)`` ledger key."""
        return (self.market_id, self.token_id)

    def with_amount(self, amount: Decimal) -> "OrderIntent":
        """Return a copy of this intent with a different amount."""
        return replace(self, amount=amount)


@dataclass(frozen=True)
class SkipOrder:
    """Signal that no order should be placed for an observed trade."""

    reason: str


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one pass through the execution pipeline.

    Args:
        success: Whether the venue confirmed a fill.
        order_id: Venue order identifier, when one was assigned.
        status: Raw venue status string.
        executed_amount: Outcome tokens bought or sold, as recorded in the ledger.
        estimated: Whether ``executed_amount`` was estimated rather than reported.
        error: Human-readable failure reason.
        transaction_hashes: On-chain settlement transaction hashes.
        intent: The submitted order intent, if one was built.
        skipped: Whether the trade was intentionally not mirrored.

    """

    success: bool
    order_id: str | None = None
    status: str | None = None
    executed_amount: Decimal = ZERO
    estimated: bool = False
    error: str | None = None
    transaction_hashes: tuple[str, ...] = ()
    intent: OrderIntent | None = None
    skipped: bool = False

    @classmethod
    def failed(
        cls,
        error: str,
        *,
        intent: OrderIntent | None = None,
        order_id: str | None = None,
        status: str | None = None,
    ) -> "ExecutionResult":
        """Build a failed result carrying a classified error message."""
        return cls(success=False, error=error, intent=intent, order_id=order_id, status=status)

    @classmethod
    def skip(cls, reason: str) -> "ExecutionResult":
        """Build a result for a trade that was deliberately not mirrored."""
        return cls(success=False, error=reason, skipped=True)


@dataclass(frozen=True)
class HoldingsEntry:
    """One ledger row: outcome tokens believed held for a market/token pair."""

    market_id: str
    token_id: str
    quantity: Decimal
    estimated: bool = False
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        """Enforce the non-negative quantity invariant."""
        if self.quantity < ZERO:
            msg = f"quantity must be >= 0, got {self.quantity}"
            raise ValueError(msg)

    @property
    def key(self) -> HoldingKey:
        """Return the ``(market_id, token_id)`` ledger key."""
        return (self.market_id, self.token_id)


@dataclass(frozen=True)
class BalanceCheck:
    """Result of comparing a required collateral amount against the balance."""

    valid: bool
    available: Decimal
    required: Decimal


@dataclass(frozen=True)
class RedemptionReport:
    """Summary of one redemption sweep."""

    redeemed: tuple[HoldingKey, ...] = ()
    failed: tuple[HoldingKey, ...] = ()
    skipped: bool = False


@dataclass(frozen=True)
class CopyConfig:
    """Operator settings for the copy-trading bot.

    Args:
        size_multiplier: Scale factor applied to the target's collateral spend.
        max_order_amount: Hard ceiling on BUY collateral per order, or ``None``.
        order_type: FAK (default) or FOK.
        tick_size: Price tick size passed to the venue.
        neg_risk: Whether markets use the negative-risk exchange.
        enabled: Global switch; when off, observed trades are ignored.
        redeem_interval_minutes: Redemption sweep interval, ``None`` disables it.
        defer_policy: Queue or drop trades detected during a redemption sweep.
        queue_size: Capacity of the feed-to-consumer queue.
        simulation_timeout_seconds: Bound on the one-time pre-trade simulation.
        rpc_timeout_seconds: Per-endpoint RPC connection timeout.

    Raises:
        ValueError: If numeric settings are out of range.

    """

    size_multiplier: Decimal = ONE
    max_order_amount: Decimal | None = None
    order_type: OrderType = OrderType.FAK
    tick_size: str = _DEFAULT_TICK_SIZE
    neg_risk: bool = False
    enabled: bool = True
    redeem_interval_minutes: float | None = None
    defer_policy: DeferPolicy = DeferPolicy.QUEUE
    queue_size: int = _DEFAULT_QUEUE_SIZE
    simulation_timeout_seconds: float = _DEFAULT_SIMULATION_TIMEOUT
    rpc_timeout_seconds: float = _DEFAULT_RPC_TIMEOUT

    def __post_init__(self) -> None:
        """Validate numeric settings."""
        if self.size_multiplier <= ZERO:
            msg = f"size_multiplier must be positive, got {self.size_multiplier}"
            raise ValueError(msg)
        if self.max_order_amount is not None and self.max_order_amount <= ZERO:
            msg = f"max_order_amount must be positive, got {self.max_order_amount}"
            raise ValueError(msg)
        if self.redeem_interval_minutes is not None and self.redeem_interval_minutes <= 0:
            msg = f"redeem_interval_minutes must be positive, got {self.redeem_interval_minutes}"
            raise ValueError(msg)
        if self.queue_size <= 0:
            msg = f"queue_size must be positive, got {self.queue_size}"
            raise ValueError(msg)


@dataclass(frozen=True)
class Credentials:
    """Secrets and endpoints needed to trade on the operator's account."""

    private_key: str
    target_wallet: str
    api_key: str | None = None
    api_secret: str | None = None
    api_passphrase: str | None = None
    funder_address: str | None = None
    chain_id: int = _POLYGON_CHAIN_ID
    rpc_url: str | None = None
    rpc_token: str | None = None
    ledger_url: str = _DEFAULT_LEDGER_URL

    def __repr__(self) -> str:
        """Hide secrets from logs and tracebacks."""
        return (
            f"Credentials(target_wallet={self.target_wallet!r}, "
            f"funder_address={self.funder_address!r}, chain_id={self.chain_id})"
        )
