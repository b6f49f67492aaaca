"""Tests for the CLOB adapter bridge module."""

from unittest.mock import MagicMock, patch

import pytest
from py_clob_client.clob_types import OrderType  # type: ignore[import-untyped]
from py_clob_client.exceptions import PolyApiException  # type: ignore[import-untyped]

from mirror_trader.clients.polymarket import _clob_adapter
from mirror_trader.clients.polymarket.exceptions import PolymarketAPIError

_TOKEN_ID = "test_token_123"
_PRIVATE_KEY = "0x" + "11" * 32
_FUNDER = "0x" + "ab" * 20
_HOST = "https://clob.polymarket.com"
_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403
_HTTP_SERVER_ERROR = 500
_EOA_SIGNATURE = 0
_PROXY_SIGNATURE = 1


def _make_poly_api_exception(status_code: int | None) -> PolyApiException:
    """Create a PolyApiException with the given status code.

    Args:
        status_code: HTTP status code to set on the exception.

    Returns:
        Configured PolyApiException instance.

    """
    exc = PolyApiException(error_msg="test error")
    exc.status_code = status_code
    return exc


class TestSafeClobCall:
    """Tests for error translation."""

    @pytest.mark.parametrize("status", [_HTTP_UNAUTHORIZED, _HTTP_FORBIDDEN])
    def test_preserves_status_code(self, status: int) -> None:
        """Keep the HTTP status the CLOB answered with."""
        fn = MagicMock(side_effect=_make_poly_api_exception(status))

        with pytest.raises(PolymarketAPIError, match="Failed to post order") as exc_info:
            _clob_adapter._safe_clob_call("post order", fn)

        assert exc_info.value.status_code == status

    def test_missing_status_defaults_to_500(self) -> None:
        """Fall back to 500 when the exception carries no status."""
        fn = MagicMock(side_effect=_make_poly_api_exception(None))

        with pytest.raises(PolymarketAPIError) as exc_info:
            _clob_adapter._safe_clob_call("post order", fn)

        assert exc_info.value.status_code == _HTTP_SERVER_ERROR

    def test_wraps_unexpected_errors(self) -> None:
        """Wrap any other exception with a 500 status."""
        fn = MagicMock(side_effect=RuntimeError("connection lost"))

        with pytest.raises(PolymarketAPIError, match="connection lost") as exc_info:
            _clob_adapter._safe_clob_call("fetch balance", fn)

        assert exc_info.value.status_code == _HTTP_SERVER_ERROR


class TestCreateAuthenticatedClobClient:
    """Test authenticated CLOB client creation."""

    def test_uses_supplied_creds(self) -> None:
        """Set pre-existing API creds without deriving new ones."""
        with patch("mirror_trader.clients.polymarket._clob_adapter.ClobClient") as mock_cls:
            client = _clob_adapter.create_authenticated_clob_client(
                _HOST, _PRIVATE_KEY, creds=("key", "secret", "pass"), funder=_FUNDER
            )

        mock_cls.assert_called_once_with(
            _HOST,
            chain_id=137,
            key=_PRIVATE_KEY,
            signature_type=_PROXY_SIGNATURE,
            funder=_FUNDER,
        )
        client.create_or_derive_api_creds.assert_not_called()
        client.set_api_creds.assert_called_once()

    def test_derives_creds_for_eoa(self) -> None:
        """Derive creds and fund from the signer when no proxy wallet is given."""
        with patch("mirror_trader.clients.polymarket._clob_adapter.ClobClient") as mock_cls:
            client = _clob_adapter.create_authenticated_clob_client(_HOST, _PRIVATE_KEY)

        kwargs = mock_cls.call_args.kwargs
        assert kwargs["signature_type"] == _EOA_SIGNATURE
        assert kwargs["funder"] == _clob_adapter.derive_signer_address(_PRIVATE_KEY)
        client.create_or_derive_api_creds.assert_called_once()
        client.set_api_creds.assert_called_once_with(
            client.create_or_derive_api_creds.return_value
        )


class TestOrders:
    """Tests for market order creation and posting."""

    def test_create_market_order_passes_options(self) -> None:
        """Forward the order type, tick size and neg-risk flag."""
        client = MagicMock()

        _clob_adapter.create_market_order(
            client, _TOKEN_ID, "BUY", 5.0, tick_size="0.01", neg_risk=True, order_type="FOK"
        )

        kwargs = client.create_market_order.call_args.kwargs
        assert kwargs["order_args"].token_id == _TOKEN_ID
        assert kwargs["order_args"].amount == 5.0  # noqa: PLR2004
        assert kwargs["order_args"].order_type == OrderType.FOK
        assert kwargs["options"].tick_size == "0.01"
        assert kwargs["options"].neg_risk is True

    def test_unknown_order_type_defaults_to_fak(self) -> None:
        """Map anything other than FOK onto FAK."""
        assert _clob_adapter._resolve_order_type("FAK") == OrderType.FAK
        assert _clob_adapter._resolve_order_type("GTC") == OrderType.FAK

    def test_post_order_returns_dict(self) -> None:
        """Return the raw response dictionary."""
        client = MagicMock()
        client.post_order.return_value = {"orderID": "abc", "status": "matched"}

        result = _clob_adapter.post_order(client, "signed", "FAK")

        assert result == {"orderID": "abc", "status": "matched"}
        client.post_order.assert_called_once_with("signed", orderType=OrderType.FAK)

    def test_post_order_non_dict_is_empty(self) -> None:
        """Return an empty dict when the CLOB returns something else."""
        client = MagicMock()
        client.post_order.return_value = None

        assert _clob_adapter.post_order(client, "signed", "FAK") == {}

    def test_post_order_error_keeps_status(self) -> None:
        """Surface a region block as a 403 PolymarketAPIError."""
        client = MagicMock()
        client.post_order.side_effect = _make_poly_api_exception(_HTTP_FORBIDDEN)

        with pytest.raises(PolymarketAPIError) as exc_info:
            _clob_adapter.post_order(client, "signed", "FAK")

        assert exc_info.value.status_code == _HTTP_FORBIDDEN

    def test_order_signature(self) -> None:
        """Read the signature attribute of a signed order."""
        assert _clob_adapter.order_signature(MagicMock(signature="0xsig")) == "0xsig"
        assert _clob_adapter.order_signature(object()) == ""


class TestQueries:
    """Tests for balance and open-order queries."""

    def test_get_open_orders_non_list(self) -> None:
        """Return an empty list for an unexpected response shape."""
        client = MagicMock()
        client.get_orders.return_value = {"data": []}

        assert _clob_adapter.get_open_orders(client) == []

    def test_get_balance(self) -> None:
        """Return the raw balance dictionary."""
        client = MagicMock()
        client.get_balance_allowance.return_value = {"balance": "1000000", "allowance": "0"}

        assert _clob_adapter.get_balance(client) == {"balance": "1000000", "allowance": "0"}

    def test_contract_addresses(self) -> None:
        """Return distinct standard and negative-risk exchanges."""
        standard = _clob_adapter.contract_addresses(137)
        neg_risk = _clob_adapter.contract_addresses(137, neg_risk=True)

        assert set(standard) == {"exchange", "collateral", "conditional_tokens"}
        assert standard["exchange"] != neg_risk["exchange"]
        assert standard["collateral"] == neg_risk["collateral"]
