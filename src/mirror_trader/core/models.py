"""Core value types shared across the mirror-trader application."""

from decimal import Decimal
from enum import Enum

ZERO = Decimal(0)
ONE = Decimal(1)


class Side(Enum):
    """Direction of a trade: BUY (acquire outcome tokens) or SELL (dispose of them)."""

    BUY = "BUY"
    SELL = "SELL"
