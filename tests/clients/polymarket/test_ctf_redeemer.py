"""Tests for the CTF position redeemer module."""

from decimal import Decimal
from unittest.mock import MagicMock

from web3 import Web3

from mirror_trader.clients.polymarket import _ctf_redeemer
from mirror_trader.clients.polymarket._approvals import NEG_RISK_ADAPTER

_CONDITION_ID = "0xabcdef1234567890abcdef1234567890abcdef1234567890abcdef1234567890"
_PRIVATE_KEY = "0x" + "11" * 32
_MIN_CALLDATA_LEN = 4  # ABI function selector is 4 bytes
_GAS_PRICE = 30_000_000_000


def _make_w3(receipt_status: int = 1) -> MagicMock:
    """Create a Web3 stand-in whose transactions mine with ``receipt_status``."""
    w3 = MagicMock()
    w3.eth.gas_price = _GAS_PRICE
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.wait_for_transaction_receipt.return_value = {"status": receipt_status, "gasUsed": 90_000}
    return w3


class TestEncodeRedeemCalldata:
    """Test the calldata encoding for redeemPositions."""

    def test_encodes_valid_condition_id(self) -> None:
        """Encode a valid condition ID into ABI calldata."""
        result = _ctf_redeemer._encode_redeem_calldata(_CONDITION_ID)
        assert len(result) > _MIN_CALLDATA_LEN

    def test_handles_condition_id_without_prefix(self) -> None:
        """Accept condition IDs without the 0x prefix."""
        with_prefix = _ctf_redeemer._encode_redeem_calldata(_CONDITION_ID)
        without_prefix = _ctf_redeemer._encode_redeem_calldata(_CONDITION_ID[2:])
        assert with_prefix == without_prefix

    def test_neg_risk_calldata_differs(self) -> None:
        """Encode the adapter call with its own selector and amounts."""
        standard = _ctf_redeemer._encode_redeem_calldata(_CONDITION_ID)
        neg_risk = _ctf_redeemer._encode_neg_risk_calldata(_CONDITION_ID, [0, 5_000_000])
        assert standard != neg_risk
        assert len(neg_risk) > _MIN_CALLDATA_LEN


class TestNegRiskAmounts:
    """Test the per-outcome amount vector."""

    def test_places_size_at_outcome_index(self) -> None:
        """Scale the held size to raw units at the outcome's slot."""
        assert _ctf_redeemer.neg_risk_amounts(0, Decimal("1.5")) == [1_500_000, 0]
        assert _ctf_redeemer.neg_risk_amounts(1, Decimal("2.5")) == [0, 2_500_000]


class TestRedeemCondition:
    """Test the redeem_condition function."""

    def test_success(self) -> None:
        """Return True when the transaction mines with status 1."""
        w3 = _make_w3()

        assert _ctf_redeemer.redeem_condition(w3, _PRIVATE_KEY, _CONDITION_ID, via_proxy=False)
        w3.eth.send_raw_transaction.assert_called_once()
        redeem_call = w3.eth.contract.return_value.functions.redeemPositions.return_value
        tx_params = redeem_call.build_transaction.call_args.args[0]
        assert tx_params["gasPrice"] == int(_GAS_PRICE * 1.25)

    def test_reverted_transaction(self) -> None:
        """Return False when the transaction reverts."""
        w3 = _make_w3(receipt_status=0)

        assert not _ctf_redeemer.redeem_condition(w3, _PRIVATE_KEY, _CONDITION_ID, via_proxy=False)

    def test_send_failure_is_reported(self) -> None:
        """Return False instead of raising when sending fails."""
        w3 = _make_w3()
        w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")

        assert not _ctf_redeemer.redeem_condition(w3, _PRIVATE_KEY, _CONDITION_ID, via_proxy=True)

    def test_proxy_routes_through_factory(self) -> None:
        """Call the ProxyWalletFactory for proxy-wallet accounts."""
        w3 = _make_w3()

        _ctf_redeemer.redeem_condition(w3, _PRIVATE_KEY, _CONDITION_ID, via_proxy=True)

        address = w3.eth.contract.call_args.kwargs["address"]
        assert address == Web3.to_checksum_address(_ctf_redeemer._PROXY_WALLET_FACTORY)
        w3.eth.contract.return_value.functions.proxy.assert_called_once()

    def test_neg_risk_direct_uses_adapter(self) -> None:
        """Redeem negative-risk positions through the NegRiskAdapter."""
        w3 = _make_w3()

        _ctf_redeemer.redeem_condition(
            w3, _PRIVATE_KEY, _CONDITION_ID, via_proxy=False, neg_risk_amounts_raw=[0, 2_500_000]
        )

        address = w3.eth.contract.call_args.kwargs["address"]
        assert address == Web3.to_checksum_address(NEG_RISK_ADAPTER)
        call_args = w3.eth.contract.return_value.functions.redeemPositions.call_args.args
        assert call_args[1] == [0, 2_500_000]
