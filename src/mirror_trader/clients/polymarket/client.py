"""Typed async facade for the Polymarket trading venue.

Compose the synchronous CLOB adapter, the web3 approval and redemption
helpers, and the Data API into a single async interface.  Synchronous
calls are wrapped in ``asyncio.to_thread()`` to avoid blocking the event
loop.
"""

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
from web3 import Web3

from mirror_trader.clients.polymarket import _approvals, _clob_adapter, _ctf_redeemer, _rpc
from mirror_trader.clients.polymarket.exceptions import PolymarketAPIError
from mirror_trader.clients.polymarket.models import (
    Balance,
    OpenOrder,
    RedeemablePosition,
    VenueResponse,
)

logger = logging.getLogger(__name__)

_ZERO = Decimal(0)
_USDC_DECIMALS = Decimal("1e6")
_HTTP_BAD_REQUEST = 400


class PolymarketClient:
    """Typed async client for trading on Polymarket.

    Sign and post market orders, query collateral balance, grant on-chain
    approvals, and discover and redeem resolved positions.  All public
    methods are async.

    Args:
        private_key: Polygon wallet private key (hex ``0x…`` string).
        host: Base URL for the Polymarket CLOB API.
        api_key: Pre-existing CLOB API key.
        api_secret: Pre-existing CLOB API secret.
        api_passphrase: Pre-existing CLOB API passphrase.
        funder_address: Proxy wallet address holding the trading funds.
        chain_id: 137 for Polygon mainnet, 80002 for Amoy.
        rpc_url: Preferred JSON-RPC endpoint for on-chain calls.
        rpc_token: Alchemy token for a private fallback endpoint.
        rpc_timeout: Per-endpoint connection timeout in seconds.
        neg_risk: Also cover the negative-risk exchange in ``ensure_approved``.

    """

    CLOB_HOST = "https://clob.polymarket.com"
    DATA_API_URL = "https://data-api.polymarket.com"

    def __init__(  # noqa: PLR0913
        self,
        private_key: str,
        host: str = CLOB_HOST,
        api_key: str | None = None,
        api_secret: str | None = None,
        api_passphrase: str | None = None,
        funder_address: str | None = None,
        *,
        chain_id: int = _rpc.POLYGON_CHAIN_ID,
        rpc_url: str | None = None,
        rpc_token: str | None = None,
        rpc_timeout: float = _rpc.DEFAULT_RPC_TIMEOUT,
        neg_risk: bool = False,
    ) -> None:
        """Initialize the client and authenticate against the CLOB.

        If API credentials are provided, skip the key derivation step and
        connect at Level 2 immediately.
        """
        self._private_key = private_key
        self._funder_address = funder_address
        self._chain_id = chain_id
        self._rpc_url = rpc_url
        self._rpc_token = rpc_token
        self._rpc_timeout = rpc_timeout
        self._neg_risk = neg_risk
        creds = (
            (api_key, api_secret, api_passphrase)
            if api_key and api_secret and api_passphrase
            else None
        )
        self._clob_client: Any = _clob_adapter.create_authenticated_clob_client(
            host, private_key, chain_id=chain_id, creds=creds, funder=funder_address
        )
        self._data_client = httpx.AsyncClient(timeout=30.0)
        self._clob_lock = asyncio.Lock()
        self._web3: Web3 | None = None

    @property
    def signer_address(self) -> str:
        """Return the EOA address derived from the private key."""
        return _clob_adapter.derive_signer_address(self._private_key)

    @property
    def holder_address(self) -> str:
        """Return the address that holds positions (proxy wallet or EOA)."""
        return self._funder_address or self.signer_address

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
        """Build and sign a market order without posting it.

        Returns:
            An opaque signed order to pass to ``post_order``.

        Raises:
            PolymarketAPIError: When signing fails.

        """
        async with self._clob_lock:
            return await asyncio.to_thread(
                _clob_adapter.create_market_order,
                self._clob_client,
                token_id,
                side,
                float(amount),
                tick_size=tick_size,
                neg_risk=neg_risk,
                order_type=order_type,
            )

    async def post_order(self, signed_order: Any, order_type: str) -> VenueResponse:
        """Submit a signed order and parse the venue's response.

        Raises:
            PolymarketAPIError: When the CLOB rejects the request outright.

        """
        async with self._clob_lock:
            raw = await asyncio.to_thread(
                _clob_adapter.post_order, self._clob_client, signed_order, order_type
            )
        return parse_venue_response(raw)

    @staticmethod
    def order_signature(signed_order: Any) -> str:
        """Return the signature attached to a signed order, or ``""``."""
        return _clob_adapter.order_signature(signed_order)

    async def ping(self) -> None:
        """Check that the CLOB answers its health endpoint.

        Raises:
            PolymarketAPIError: When the CLOB is unreachable.

        """
        await asyncio.to_thread(_clob_adapter.fetch_ok, self._clob_client)

    async def sync_balance(self, asset_type: str = "COLLATERAL") -> None:
        """Tell the CLOB to re-sync its cached balance and allowance from chain.

        Raises:
            PolymarketAPIError: When the sync fails.

        """
        async with self._clob_lock:
            await asyncio.to_thread(_clob_adapter.update_balance, self._clob_client, asset_type)

    async def get_balance(self, asset_type: str = "COLLATERAL") -> Balance:
        """Fetch the balance and allowance for an asset.

        Raises:
            PolymarketAPIError: When the query fails.

        """
        async with self._clob_lock:
            raw = await asyncio.to_thread(_clob_adapter.get_balance, self._clob_client, asset_type)
        return Balance(
            asset_type=asset_type,
            balance=_safe_decimal(raw.get("balance")) / _USDC_DECIMALS,
            allowance=_safe_decimal(raw.get("allowance")) / _USDC_DECIMALS,
        )

    async def get_open_orders(self) -> list[OpenOrder]:
        """Fetch all resting orders for the authenticated user.

        Raises:
            PolymarketAPIError: When the query fails.

        """
        async with self._clob_lock:
            raw_list = await asyncio.to_thread(_clob_adapter.get_open_orders, self._clob_client)
        return [
            OpenOrder(
                order_id=str(raw.get("id", raw.get("orderID", ""))),
                side=str(raw.get("side", "")).upper(),
                price=_safe_decimal(raw.get("price")),
                original_size=_safe_decimal(raw.get("original_size", raw.get("size"))),
                size_matched=_safe_decimal(raw.get("size_matched")),
            )
            for raw in raw_list
        ]

    async def _get_web3(self) -> Web3:
        if self._web3 is None:
            self._web3, _url = await asyncio.to_thread(
                _rpc.connect_first_available,
                self._chain_id,
                self._rpc_url,
                self._rpc_token,
                timeout=self._rpc_timeout,
            )
        return self._web3

    async def approve_all(self, *, neg_risk: bool = False) -> int:
        """Grant every USDC and CTF approval the exchange needs.

        Returns:
            Number of approval transactions sent.

        Raises:
            RpcConnectionError: When no RPC endpoint is reachable.
            InsufficientGasError: When the wallet cannot pay for gas.

        """
        w3 = await self._get_web3()
        contracts = _clob_adapter.contract_addresses(self._chain_id)
        nr_contracts = (
            _clob_adapter.contract_addresses(self._chain_id, neg_risk=True) if neg_risk else None
        )
        return await asyncio.to_thread(
            _approvals.approve_all, w3, self._private_key, contracts, nr_contracts
        )

    async def ensure_tokens_approved(self, *, neg_risk: bool = False) -> int:
        """Approve the exchange to move outcome tokens; no-op once granted.

        Returns:
            Number of approval transactions sent.

        Raises:
            RpcConnectionError: When no RPC endpoint is reachable.
            InsufficientGasError: When the wallet cannot pay for gas.

        """
        w3 = await self._get_web3()
        contracts = _clob_adapter.contract_addresses(self._chain_id)
        nr_exchange = (
            _clob_adapter.contract_addresses(self._chain_id, neg_risk=True)["exchange"]
            if neg_risk
            else None
        )
        return await asyncio.to_thread(
            _approvals.ensure_tokens_approved, w3, self._private_key, contracts, nr_exchange
        )

    async def ensure_approved(self) -> None:
        """Run ``ensure_tokens_approved`` for the configured market type."""
        await self.ensure_tokens_approved(neg_risk=self._neg_risk)

    async def get_redeemable_positions(self) -> list[RedeemablePosition]:
        """Discover redeemable positions via the Polymarket Data API.

        Returns:
            Positions flagged redeemable with a positive size.

        Raises:
            PolymarketAPIError: When the Data API request fails.

        """
        url = f"{self.DATA_API_URL}/positions"
        params: dict[str, str] = {
            "user": self.holder_address,
            "redeemable": "true",
            "sizeThreshold": "0",
        }
        try:
            response = await self._data_client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise PolymarketAPIError(
                msg=f"Data API request failed: {exc}",
                status_code=0,
            ) from exc

        if response.status_code >= _HTTP_BAD_REQUEST:
            raise PolymarketAPIError(
                msg=f"Data API error: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        raw_positions: list[dict[str, Any]] = response.json()
        results: list[RedeemablePosition] = []
        for raw in raw_positions:
            size = _safe_decimal(raw.get("size", "0"))
            if size <= _ZERO:
                continue
            results.append(
                RedeemablePosition(
                    condition_id=str(raw.get("conditionId", "")),
                    token_id=str(raw.get("asset", "")),
                    outcome=str(raw.get("outcome", "")),
                    outcome_index=int(raw.get("outcomeIndex", 0) or 0),
                    size=size,
                    negative_risk=bool(raw.get("negativeRisk", False)),
                    title=str(raw.get("title", "")),
                )
            )
        return results

    async def redeem_position(self, position: RedeemablePosition) -> bool:
        """Redeem one resolved position on-chain.

        Returns:
            ``True`` when the redemption transaction succeeded.

        Raises:
            RpcConnectionError: When no RPC endpoint is reachable.

        """
        w3 = await self._get_web3()
        amounts = (
            _ctf_redeemer.neg_risk_amounts(position.outcome_index, position.size)
            if position.negative_risk
            else None
        )
        return await asyncio.to_thread(
            _ctf_redeemer.redeem_condition,
            w3,
            self._private_key,
            position.condition_id,
            via_proxy=self._funder_address is not None,
            neg_risk_amounts_raw=amounts,
        )

    async def close(self) -> None:
        """Close underlying HTTP clients."""
        await self._data_client.aclose()

    async def __aenter__(self) -> "PolymarketClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()


def parse_venue_response(raw: dict[str, Any]) -> VenueResponse:
    """Convert a raw ``post_order`` dictionary into a ``VenueResponse``.

    Keys the CLOB left out stay ``None`` so callers can tell "not reported"
    apart from "reported as zero".

    Args:
        raw: Raw dictionary from the CLOB ``post_order`` call.

    Returns:
        Typed response with optional fields.

    """
    order_id = raw.get("orderID") or raw.get("orderId") or None
    status = raw.get("status")
    hashes = raw.get("transactionsHashes") or raw.get("transactionHashes") or []
    return VenueResponse(
        order_id=str(order_id) if order_id else None,
        status=str(status) if status not in (None, "") else None,
        making_amount=_optional_decimal(raw.get("makingAmount")),
        taking_amount=_optional_decimal(raw.get("takingAmount")),
        transaction_hashes=tuple(str(h) for h in hashes),
        error_msg=str(raw["errorMsg"]) if raw.get("errorMsg") else None,
    )


def _optional_decimal(value: Any) -> Decimal | None:
    """Return a ``Decimal``, or ``None`` for missing or unusable values.

    Fill amounts arrive after the venue has accepted the order, so a
    malformed amount is treated as unreported rather than as a failure.
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        logger.warning("Ignoring unparseable fill amount %r", value)
        return None
    if not result.is_finite():
        logger.warning("Ignoring non-finite fill amount %r", value)
        return None
    return result


def _safe_decimal(value: Any) -> Decimal:
    """Convert a value to Decimal, returning zero for None/empty strings.

    Raise ``PolymarketAPIError`` for values that are present but
    cannot be parsed into a valid Decimal, rather than silently
    substituting zero for genuinely corrupt data.

    Args:
        value: Value to convert (string, float, int, or None).

    Returns:
        Decimal representation, or ``Decimal("0")`` for None/empty.

    Raises:
        PolymarketAPIError: If the value is non-empty but malformed.

    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return _ZERO
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        msg = f"Cannot convert {value!r} to Decimal"
        raise PolymarketAPIError(msg=msg, status_code=0) from exc
