"""Async WebSocket client for the Polymarket real-time activity stream.

Connect to the real-time data service, subscribe to the public
``activity/trades`` topic, and yield ``ObservedTrade`` records for trades
made by one target wallet.  Handle auto-reconnect with exponential
backoff, ping/pong keepalive, and graceful shutdown.

Reconnects can replay or reorder events; the consumer de-duplicates them
by ``event_id``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, cast

from websockets import ConnectionClosed
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import WebSocketException

from mirror_trader.apps.copy_bot.models import ObservedTrade
from mirror_trader.core.models import Side

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

_WS_URL = "wss://ws-live-data.polymarket.com"
_RECONNECT_MAX_DELAY = 60.0
_PING_INTERVAL = 20
_PING_TIMEOUT = 10


class ActivityFeed:
    """Stream the target wallet's trades from the public activity topic.

    Args:
        target_wallet: Proxy wallet address to follow (case-insensitive).
        url: WebSocket endpoint of the real-time data service.
        reconnect_base_delay: Initial reconnect wait in seconds, doubled on
            each consecutive failure up to 60 seconds.

    """

    def __init__(
        self,
        target_wallet: str,
        *,
        url: str = _WS_URL,
        reconnect_base_delay: float = 5.0,
    ) -> None:
        """Initialize the activity feed."""
        self._target = target_wallet.lower()
        self._url = url
        self._reconnect_base_delay = reconnect_base_delay
        self._ws: ClientConnection | None = None
        self._closed = False

    async def stream(self) -> AsyncIterator[ObservedTrade]:
        """Connect and yield the target's trades indefinitely.

        Automatically reconnect on failures with exponential backoff.

        Yields:
            Trades made by the target wallet, in arrival order.

        """
        delay = self._reconnect_base_delay
        while not self._closed:
            try:
                async for trade in self._connect_and_listen():
                    yield trade
                    delay = self._reconnect_base_delay
            except ConnectionClosed as exc:
                if self._closed:
                    return
                logger.warning("Activity feed connection closed: %s", exc)
            except WebSocketException as exc:
                if self._closed:
                    return
                logger.warning("Activity feed handshake failed: %s", exc)
            except OSError as exc:
                if self._closed:
                    return
                logger.warning("Activity feed connection error: %s", exc)

            if self._closed:
                return

            logger.info("Reconnecting in %.1fs...", delay)
            await asyncio.sleep(delay)
            delay = min(delay * 2, _RECONNECT_MAX_DELAY)

    async def pump(self, queue: asyncio.Queue[ObservedTrade]) -> None:
        """Push streamed trades into ``queue`` until the feed is closed.

        ``queue.put`` waits while the queue is full, so distinct events are
        never dropped; the feed simply reads more slowly.

        Args:
            queue: Bounded queue consumed by the trade feed consumer.

        """
        async for trade in self.stream():
            await queue.put(trade)

    async def close(self) -> None:
        """Gracefully close the WebSocket connection."""
        self._closed = True
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        logger.info("ActivityFeed closed")

    async def _connect_and_listen(self) -> AsyncIterator[ObservedTrade]:
        """Open a connection, subscribe, and yield the target's trades."""
        async with connect(
            self._url,
            ping_interval=_PING_INTERVAL,
            ping_timeout=_PING_TIMEOUT,
        ) as ws:
            self._ws = ws
            await ws.send(json.dumps(build_subscribe_message()))
            logger.info("Connected to activity feed, watching %s", self._target)

            async for raw in ws:
                for payload in parse_message(raw):
                    if str(payload.get("proxyWallet", "")).lower() != self._target:
                        continue
                    trade = to_observed_trade(payload)
                    if trade is not None:
                        yield trade


def build_subscribe_message() -> dict[str, object]:
    """Build the subscription message for the public trades topic.

    Returns:
        Subscription message dictionary.

    """
    return {
        "action": "subscribe",
        "subscriptions": [{"topic": "activity", "type": "trades"}],
    }


def parse_message(raw: str | bytes) -> list[dict[str, Any]]:
    """Parse a raw WebSocket message and extract trade payloads.

    Return an empty list for non-trade messages, pongs, or malformed
    payloads.

    Args:
        raw: Raw WebSocket message (string or bytes).

    Returns:
        Trade payload dictionaries.

    """
    try:
        data: Any = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Ignoring unparseable message: %s", raw[:100] if raw else raw)
        return []

    items: list[Any] = cast("list[Any]", data) if isinstance(data, list) else [data]
    payloads: list[dict[str, Any]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        message = cast("dict[str, Any]", item)
        if message.get("topic") != "activity" or message.get("type") != "trades":
            continue
        payload = message.get("payload")
        if isinstance(payload, dict):
            payloads.append(cast("dict[str, Any]", payload))
    return payloads


def to_observed_trade(payload: dict[str, Any]) -> ObservedTrade | None:
    """Convert a trade payload into an ``ObservedTrade``.

    Args:
        payload: Trade payload from the activity topic.

    Returns:
        The parsed trade, or ``None`` when required fields (including the
        transaction hash that identifies the event) are missing or out of
        range.

    """
    try:
        side = Side(str(payload["side"]).upper())
        market_id = str(payload["conditionId"])
        token_id = str(payload["asset"])
        price = Decimal(str(payload["price"]))
        size = Decimal(str(payload["size"]))
        tx_hash = str(payload.get("transactionHash") or "")
        if not tx_hash:
            logger.warning("Ignoring trade payload without a transaction hash: %s", token_id)
            return None
        return ObservedTrade(
            market_id=market_id,
            token_id=token_id,
            side=side,
            price=price,
            size=size,
            event_id=f"{tx_hash}:{token_id}:{side.value}",
            outcome=str(payload.get("outcome", "")),
            title=str(payload.get("title", "")),
            timestamp=int(payload.get("timestamp", 0) or 0),
        )
    except (KeyError, ValueError, InvalidOperation) as exc:
        logger.warning("Ignoring malformed trade payload: %s", exc)
        return None
