"""Durable ledger of outcome-token holdings.

Wrap a SQLAlchemy async engine over SQLite.  Every mutation commits its
own transaction before returning, so a holding survives a process restart
as soon as the call completes, and SQLite's journal keeps each per-key
update atomic if the process dies mid-write.

The ledger also hands out one ``asyncio.Lock`` per key.  Mutating methods
do not take the lock themselves; the execution pipeline and the
redemption scheduler hold it around their whole read-modify-write
sequence so buy, sell and redemption updates to one key never interleave.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mirror_trader.apps.copy_bot.models import HoldingKey, HoldingsEntry
from mirror_trader.apps.copy_bot.orm import Base, Holding
from mirror_trader.core.models import ZERO

logger = logging.getLogger(__name__)


def _to_entry(row: Holding) -> HoldingsEntry:
    return HoldingsEntry(
        market_id=row.market_id,
        token_id=row.token_id,
        quantity=Decimal(row.quantity),
        estimated=row.estimated,
        updated_at=row.updated_at,
    )


class HoldingsLedger:
    """Async repository of outcome-token quantities keyed by market and token.

    Args:
        db_url: SQLAlchemy async connection string
            (e.g. ``sqlite+aiosqlite:///holdings.db``).

    """

    def __init__(self, db_url: str) -> None:
        """Initialize the ledger with an async database engine.

        Args:
            db_url: SQLAlchemy async connection string.

        """
        self._engine: AsyncEngine = create_async_engine(db_url, echo=False)
        self._session_factory = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )
        self._locks: dict[HoldingKey, asyncio.Lock] = {}
        self._lock_users: dict[HoldingKey, int] = {}

    async def init_db(self) -> None:
        """Create the holdings table if it does not already exist.

        Idempotent; safe to call on every startup.
        """
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Holdings ledger initialised")

    @asynccontextmanager
    async def lock(self, market_id: str, token_id: str) -> AsyncIterator[None]:
        """Hold the mutation lock for one ``(market_id, token_id)`` key.

        The lock is discarded once no caller holds or awaits it, so the
        table only tracks keys with work in progress.
        """
        key = (market_id, token_id)
        key_lock = self._locks.get(key)
        if key_lock is None:
            key_lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with key_lock:
                yield
        finally:
            remaining = self._lock_users[key] - 1
            if remaining == 0:
                del self._lock_users[key]
                del self._locks[key]
            else:
                self._lock_users[key] = remaining

    def is_locked(self, market_id: str, token_id: str) -> bool:
        """Return whether some caller currently holds the key's lock."""
        key_lock = self._locks.get((market_id, token_id))
        return key_lock is not None and key_lock.locked()

    async def get(self, market_id: str, token_id: str) -> Decimal:
        """Return the held quantity for a key, ``0`` when nothing is held."""
        async with self._session_factory() as session:
            row = await session.get(Holding, (market_id, token_id))
            return Decimal(row.quantity) if row is not None else ZERO

    async def get_entry(self, market_id: str, token_id: str) -> HoldingsEntry | None:
        """Return the full ledger entry for a key, or ``None``."""
        async with self._session_factory() as session:
            row = await session.get(Holding, (market_id, token_id))
            return _to_entry(row) if row is not None else None

    async def add(
        self,
        market_id: str,
        token_id: str,
        quantity: Decimal,
        *,
        estimated: bool = False,
    ) -> Decimal:
        """Increase the held quantity for a key, creating the entry if needed.

        Args:
            market_id: Market condition identifier.
            token_id: Outcome token identifier.
            quantity: Tokens acquired; must be positive.
            estimated: Mark the entry as holding an estimated quantity.

        Returns:
            The new held quantity.

        """
        if quantity <= ZERO:
            logger.warning(
                "Ignoring non-positive add of %s for %s/%s", quantity, market_id[:20], token_id[:20]
            )
            return await self.get(market_id, token_id)

        async with self._session_factory() as session, session.begin():
            row = await session.get(Holding, (market_id, token_id))
            now = datetime.now(UTC)
            if row is None:
                new_qty = quantity
                session.add(
                    Holding(
                        market_id=market_id,
                        token_id=token_id,
                        quantity=str(new_qty),
                        estimated=estimated,
                        updated_at=now,
                    )
                )
            else:
                new_qty = Decimal(row.quantity) + quantity
                row.quantity = str(new_qty)
                row.estimated = row.estimated or estimated
                row.updated_at = now
        logger.debug("Ledger %s/%s: +%s -> %s", market_id[:20], token_id[:20], quantity, new_qty)
        return new_qty

    async def remove(self, market_id: str, token_id: str, quantity: Decimal) -> Decimal:
        """Decrease the held quantity for a key, clamping at zero.

        Removing more than is held is a ledger inconsistency: it is logged
        at WARNING and the entry is cleared rather than going negative.
        The entry is deleted once its quantity reaches zero.

        Args:
            market_id: Market condition identifier.
            token_id: Outcome token identifier.
            quantity: Tokens disposed of.

        Returns:
            The remaining held quantity.

        """
        async with self._session_factory() as session, session.begin():
            row = await session.get(Holding, (market_id, token_id))
            held = Decimal(row.quantity) if row is not None else ZERO
            if quantity > held:
                logger.warning(
                    "Ledger inconsistency for %s/%s: removing %s but only %s held; clamping to 0",
                    market_id[:20],
                    token_id[:20],
                    quantity,
                    held,
                )
            remaining = max(held - quantity, ZERO)
            if row is not None:
                if remaining == ZERO:
                    await session.delete(row)
                else:
                    row.quantity = str(remaining)
                    row.updated_at = datetime.now(UTC)
        logger.debug("Ledger %s/%s: -%s -> %s", market_id[:20], token_id[:20], quantity, remaining)
        return remaining

    async def delete(self, market_id: str, token_id: str) -> None:
        """Remove the entry for a key regardless of its quantity."""
        async with self._session_factory() as session, session.begin():
            await session.execute(
                delete(Holding).where(Holding.market_id == market_id, Holding.token_id == token_id)
            )

    async def all(self) -> list[HoldingsEntry]:
        """Return every ledger entry ordered by market and token."""
        stmt = select(Holding).order_by(Holding.market_id, Holding.token_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_entry(row) for row in result.scalars().all()]

    async def keys(self) -> list[HoldingKey]:
        """Return the keys of every ledger entry."""
        return [entry.key for entry in await self.all()]

    async def clear(self) -> int:
        """Delete every entry.

        Returns:
            Number of entries removed.

        """
        async with self._session_factory() as session, session.begin():
            result = await session.execute(delete(Holding))
        count = result.rowcount or 0
        logger.info("Cleared %d ledger entries", count)
        return count

    async def close(self) -> None:
        """Dispose the async engine and release all connections."""
        await self._engine.dispose()
        logger.info("Holdings ledger closed")
