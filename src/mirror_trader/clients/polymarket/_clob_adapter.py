"""Isolated bridge to the untyped ``py-clob-client`` library.

This is the **only** module that imports from ``py_clob_client``.  All
imports carry ``# type: ignore[import-untyped]`` so the rest of the
codebase remains clean under pyright strict mode.  Functions return
primitive types (``dict``, ``str``) or opaque signed-order objects which
the facade layer converts into typed dataclasses.
"""

import logging
from typing import Any, cast

from eth_account import Account  # type: ignore[import-untyped]
from py_clob_client.client import ClobClient  # type: ignore[import-untyped]
from py_clob_client.clob_types import (  # type: ignore[import-untyped]
    ApiCreds,
    AssetType,
    BalanceAllowanceParams,
    MarketOrderArgs,
    OpenOrderParams,
    OrderType,
    PartialCreateOrderOptions,
)
from py_clob_client.config import get_contract_config  # type: ignore[import-untyped]
from py_clob_client.exceptions import PolyApiException  # type: ignore[import-untyped]

from mirror_trader.clients.polymarket.exceptions import PolymarketAPIError

_HTTP_INTERNAL_ERROR = 500
_POLYGON_CHAIN_ID = 137
_EOA_SIGNATURE = 0
_POLYGON_PROXY_WALLET = 1

_logger = logging.getLogger(__name__)


def _safe_clob_call(action: str, fn: Any, *args: Any) -> Any:
    """Execute a CLOB API call with standardised error handling.

    Convert ``PolyApiException`` into ``PolymarketAPIError`` while keeping
    the HTTP status code the CLOB answered with, so that callers can tell
    a region block (403) from an auth failure (401) or a rate limit (429).
    Unexpected errors are wrapped with a 500 status.

    Args:
        action: Human-readable description for error messages.
        fn: The callable to invoke.
        *args: Positional arguments forwarded to *fn*.

    Returns:
        The raw result from *fn*.

    Raises:
        PolymarketAPIError: When the call fails.

    """
    try:
        return fn(*args)
    except PolyApiException as exc:
        status = getattr(exc, "status_code", None) or _HTTP_INTERNAL_ERROR
        detail = getattr(exc, "error_msg", None) or exc
        raise PolymarketAPIError(
            msg=f"Failed to {action}: {detail}",
            status_code=int(status),
        ) from exc
    except Exception as exc:
        raise PolymarketAPIError(
            msg=f"Failed to {action}: {exc}",
            status_code=_HTTP_INTERNAL_ERROR,
        ) from exc


def derive_signer_address(private_key: str) -> str:
    """Derive the EOA address from a private key.

    Args:
        private_key: Hex-encoded private key (with ``0x`` prefix).

    Returns:
        Checksummed Ethereum address string.

    """
    return Account.from_key(private_key).address  # type: ignore[no-any-return]


def create_authenticated_clob_client(
    host: str,
    private_key: str,
    chain_id: int = _POLYGON_CHAIN_ID,
    creds: tuple[str, str, str] | None = None,
    funder: str | None = None,
) -> ClobClient:  # type: ignore[no-any-unimported]
    """Create an authenticated CLOB client for trading.

    When a ``funder`` (Polymarket proxy wallet) is given, orders are signed
    with the proxy-wallet signature type; otherwise the EOA derived from
    the private key funds and signs its own orders.  Without ``creds`` the
    client derives (or creates) Level 2 API credentials on the spot.

    Args:
        host: Base URL for the Polymarket CLOB API.
        private_key: Polygon wallet private key (hex string with ``0x`` prefix).
        chain_id: Blockchain chain ID (default 137 for Polygon mainnet).
        creds: Optional tuple of ``(api_key, api_secret, api_passphrase)``.
        funder: Proxy wallet address that holds the trading funds.

    Returns:
        Configured Level 2 ``ClobClient``.

    Raises:
        PolymarketAPIError: When API credentials cannot be derived.

    """
    signature_type = _POLYGON_PROXY_WALLET if funder else _EOA_SIGNATURE
    client = ClobClient(
        host,
        chain_id=chain_id,
        key=private_key,
        signature_type=signature_type,
        funder=funder or derive_signer_address(private_key),
    )
    if creds is not None:
        api_key, api_secret, api_passphrase = creds
        client.set_api_creds(
            ApiCreds(
                api_key=api_key,
                api_secret=api_secret,
                api_passphrase=api_passphrase,
            )
        )
        return client  # type: ignore[no-any-return]

    raw = _safe_clob_call("derive API credentials", client.create_or_derive_api_creds)
    client.set_api_creds(raw)
    return client  # type: ignore[no-any-return]


def _resolve_order_type(order_type: str) -> Any:
    """Map ``"FAK"``/``"FOK"`` onto the library's ``OrderType`` enum."""
    return OrderType.FOK if order_type == "FOK" else OrderType.FAK


def create_market_order(  # noqa: PLR0913
    client: Any,
    token_id: str,
    side: str,
    amount: float,
    *,
    tick_size: str,
    neg_risk: bool,
    order_type: str,
) -> Any:
    """Build and sign a market order locally without posting it.

    For ``BUY`` orders, ``amount`` is the collateral to spend.  For
    ``SELL`` orders, ``amount`` is the number of shares to sell.

    Args:
        client: A Level 2 ``ClobClient`` instance.
        token_id: CLOB token identifier for the outcome to trade.
        side: ``"BUY"`` or ``"SELL"``.
        amount: Dollar amount (buy) or share count (sell).
        tick_size: Market tick size (e.g. ``"0.01"``).
        neg_risk: Whether the market uses the negative-risk exchange.
        order_type: ``"FAK"`` or ``"FOK"``.

    Returns:
        The signed order object, opaque to callers.

    Raises:
        PolymarketAPIError: When signing or price lookup fails.

    """

    def _create() -> Any:
        return client.create_market_order(
            order_args=MarketOrderArgs(
                token_id=token_id,
                amount=amount,
                side=side,
                order_type=_resolve_order_type(order_type),
            ),
            options=PartialCreateOrderOptions(tick_size=tick_size, neg_risk=neg_risk),
        )

    return _safe_clob_call("create market order", _create)


def post_order(client: Any, signed_order: Any, order_type: str) -> dict[str, Any]:
    """Post a previously signed order to the CLOB.

    Args:
        client: A Level 2 ``ClobClient`` instance.
        signed_order: Object returned by ``create_market_order``.
        order_type: ``"FAK"`` or ``"FOK"``.

    Returns:
        Raw API response dictionary, empty if the CLOB returned nothing.

    Raises:
        PolymarketAPIError: When the order submission fails.

    """

    def _post() -> Any:
        return client.post_order(signed_order, orderType=_resolve_order_type(order_type))

    raw = _safe_clob_call("post order", _post)
    if isinstance(raw, dict):
        return cast("dict[str, Any]", raw)
    return {}


def order_signature(signed_order: Any) -> str:
    """Return the EIP-712 signature carried by a signed order, or ``""``."""
    return str(getattr(signed_order, "signature", "") or "")


def fetch_ok(client: Any) -> Any:
    """Ping the CLOB health endpoint.

    Raises:
        PolymarketAPIError: When the CLOB cannot be reached.

    """
    return _safe_clob_call("reach CLOB", client.get_ok)


def _balance_params(asset_type: str) -> Any:
    resolved_type: str = (
        AssetType.COLLATERAL if asset_type == "COLLATERAL" else AssetType.CONDITIONAL
    )
    return BalanceAllowanceParams(asset_type=resolved_type)  # type: ignore[reportArgumentType]


def get_balance(client: Any, asset_type: str = "COLLATERAL") -> dict[str, Any]:
    """Fetch balance and allowance for an asset type.

    Args:
        client: A Level 2 ``ClobClient`` instance.
        asset_type: ``"COLLATERAL"`` for USDC or ``"CONDITIONAL"`` for tokens.

    Returns:
        Dictionary with ``balance`` and ``allowance`` string values.

    Raises:
        PolymarketAPIError: When the balance query fails.

    """
    params = _balance_params(asset_type)

    def _fetch() -> dict[str, Any]:
        return client.get_balance_allowance(params=params)  # type: ignore[no-any-return]

    return _safe_clob_call("fetch balance", _fetch)


def update_balance(client: Any, asset_type: str = "COLLATERAL") -> None:
    """Tell the CLOB to re-sync its cached balance and allowance from chain.

    Args:
        client: A Level 2 ``ClobClient`` instance.
        asset_type: ``"COLLATERAL"`` for USDC or ``"CONDITIONAL"`` for tokens.

    Raises:
        PolymarketAPIError: When the update call fails.

    """
    params = _balance_params(asset_type)

    def _update() -> dict[str, Any]:
        return client.update_balance_allowance(params=params)  # type: ignore[no-any-return]

    _safe_clob_call("update balance allowance", _update)


def get_open_orders(client: Any) -> list[dict[str, Any]]:
    """Fetch all open orders for the authenticated user.

    Raises:
        PolymarketAPIError: When the query fails.

    """

    def _fetch() -> Any:
        return client.get_orders(params=OpenOrderParams())

    result = _safe_clob_call("fetch open orders", _fetch)
    if isinstance(result, list):
        return cast("list[dict[str, Any]]", result)
    return []


def contract_addresses(chain_id: int, *, neg_risk: bool = False) -> dict[str, str]:
    """Return the exchange, collateral, and CTF addresses for a chain.

    Args:
        chain_id: 137 for Polygon mainnet or 80002 for Amoy.
        neg_risk: Return the negative-risk exchange instead of the standard one.

    Returns:
        Dictionary with ``exchange``, ``collateral``, and
        ``conditional_tokens`` keys.

    """
    cfg = get_contract_config(chain_id, neg_risk)
    return {
        "exchange": str(cfg.exchange),
        "collateral": str(cfg.collateral),
        "conditional_tokens": str(cfg.conditional_tokens),
    }
