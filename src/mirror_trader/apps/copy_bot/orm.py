"""SQLAlchemy ORM models for the holdings ledger database.

Define the ``Holding`` table that stores one row per (market, outcome
token) pair the bot believes it owns.  Quantities are stored as decimal
strings so no precision is lost to floating point.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base class for all ledger ORM models."""


class Holding(Base):
    """Outcome tokens held for a single market/token pair.

    Attributes:
        market_id: Market condition identifier (primary key part).
        token_id: Outcome token identifier (primary key part).
        quantity: Token quantity as a decimal string, always positive.
        estimated: Whether any recorded fill was estimated from price.
        updated_at: UTC time of the last mutation.

    """

    __tablename__ = "holdings"

    market_id: Mapped[str] = mapped_column(String, primary_key=True)
    token_id: Mapped[str] = mapped_column(String, primary_key=True)
    quantity: Mapped[str] = mapped_column(String)
    estimated: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime)
