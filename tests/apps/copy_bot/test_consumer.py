"""Tests for the trade feed consumer."""

import asyncio
import contextlib
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from mirror_trader.apps.copy_bot.consumer import TradeFeedConsumer
from mirror_trader.apps.copy_bot.models import DeferPolicy, ExecutionResult, ObservedTrade
from mirror_trader.apps.copy_bot.session import CopySession
from mirror_trader.core.models import Side

_MARKET = "cond_aaa"
_TOKEN = "token_aaa"
_TWO_CALLS = 2


def _make_trade(tx: str = "0x1", token_id: str = _TOKEN) -> ObservedTrade:
    """Create a BUY ObservedTrade for testing."""
    return ObservedTrade(
        market_id=_MARKET,
        token_id=token_id,
        side=Side.BUY,
        price=Decimal("0.5"),
        size=Decimal("10"),
        event_id=f"{tx}:{token_id}:BUY",
    )


def _make_pipeline() -> MagicMock:
    """Return a fake pipeline whose executions succeed."""
    pipeline = MagicMock()
    pipeline.execute = AsyncMock(return_value=ExecutionResult(success=True))
    return pipeline


class TestSubmit:
    """Tests for accepting and dispatching trades."""

    @pytest.mark.asyncio
    async def test_duplicate_event_executes_once(self, session: CopySession) -> None:
        """Ignore a replayed event id."""
        pipeline = _make_pipeline()
        consumer = TradeFeedConsumer(pipeline, session)

        first = await consumer.submit(_make_trade())
        second = await consumer.submit(_make_trade())
        await consumer.drain()

        assert first is not None
        assert second is None
        pipeline.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_forgotten_event_is_accepted_again(self, session: CopySession) -> None:
        """Evict the oldest event id once the de-duplication window is full."""
        pipeline = _make_pipeline()
        consumer = TradeFeedConsumer(pipeline, session, seen_capacity=1)

        await consumer.submit(_make_trade("0x1"))
        await consumer.submit(_make_trade("0x2"))
        again = await consumer.submit(_make_trade("0x1"))
        await consumer.drain()

        assert again is not None
        assert pipeline.execute.await_count == 3  # noqa: PLR2004

    @pytest.mark.asyncio
    async def test_disabled_session_ignores_trades(self) -> None:
        """Skip every trade while the global switch is off."""
        pipeline = _make_pipeline()
        consumer = TradeFeedConsumer(pipeline, CopySession(enabled=False))

        assert await consumer.submit(_make_trade()) is None
        pipeline.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_drop_policy_discards_paused_trades(self, session: CopySession) -> None:
        """Drop a trade that arrives during a redemption sweep."""
        pipeline = _make_pipeline()
        consumer = TradeFeedConsumer(pipeline, session, defer_policy=DeferPolicy.DROP)
        session.pause()

        assert await consumer.submit(_make_trade()) is None
        session.resume()
        await consumer.drain()
        pipeline.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_queue_policy_defers_until_resume(self, session: CopySession) -> None:
        """Hold a trade back while paused and run it after resume."""
        pipeline = _make_pipeline()
        consumer = TradeFeedConsumer(pipeline, session, defer_policy=DeferPolicy.QUEUE)
        session.pause()

        pending = asyncio.create_task(consumer.submit(_make_trade()))
        await asyncio.sleep(0.01)
        assert not pending.done()
        pipeline.execute.assert_not_awaited()

        session.resume()
        task = await pending
        assert task is not None
        await task
        pipeline.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_while_deferred_drops_trade(self, session: CopySession) -> None:
        """Drop a deferred trade when the session closes instead of resuming."""
        pipeline = _make_pipeline()
        consumer = TradeFeedConsumer(pipeline, session)
        session.pause()

        pending = asyncio.create_task(consumer.submit(_make_trade()))
        await asyncio.sleep(0)
        session.close()

        assert await pending is None
        pipeline.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_execution_counts_as_inflight(self, session: CopySession) -> None:
        """Track a running execution on its ledger key until it finishes."""
        release = asyncio.Event()

        async def slow_execute(_trade: ObservedTrade) -> ExecutionResult:
            await release.wait()
            return ExecutionResult(success=True)

        pipeline = MagicMock()
        pipeline.execute = AsyncMock(side_effect=slow_execute)
        consumer = TradeFeedConsumer(pipeline, session)

        await consumer.submit(_make_trade())
        assert session.inflight([(_MARKET, _TOKEN)]) == 1
        assert consumer.pending == 1

        release.set()
        await consumer.drain()
        await asyncio.sleep(0)
        assert session.inflight() == 0
        assert consumer.pending == 0


class TestFailureIsolation:
    """Tests that one failing execution does not stop the consumer."""

    @pytest.mark.asyncio
    async def test_exception_is_logged_and_consumption_continues(
        self, session: CopySession, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Keep executing later trades after an unexpected error."""
        pipeline = MagicMock()
        pipeline.execute = AsyncMock(
            side_effect=[RuntimeError("boom"), ExecutionResult(success=True)]
        )
        consumer = TradeFeedConsumer(pipeline, session)

        await consumer.submit(_make_trade("0x1"))
        await consumer.submit(_make_trade("0x2", token_id="token_bbb"))
        await consumer.drain()

        assert pipeline.execute.await_count == _TWO_CALLS
        assert "Unexpected error executing" in caplog.text

    @pytest.mark.asyncio
    async def test_run_consumes_queue(self, session: CopySession) -> None:
        """Pull trades from the queue and mark each one done."""
        pipeline = _make_pipeline()
        consumer = TradeFeedConsumer(pipeline, session)
        queue: asyncio.Queue[ObservedTrade] = asyncio.Queue(maxsize=10)
        await queue.put(_make_trade("0x1"))
        await queue.put(_make_trade("0x1"))
        await queue.put(_make_trade("0x2"))

        runner = asyncio.create_task(consumer.run(queue))
        await queue.join()
        await consumer.drain()
        runner.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await runner

        assert pipeline.execute.await_count == _TWO_CALLS
