"""Tests for on-chain approval helpers."""

from unittest.mock import MagicMock, PropertyMock

import pytest

from mirror_trader.clients.polymarket import _approvals
from mirror_trader.clients.polymarket.exceptions import InsufficientGasError

_PRIVATE_KEY = "0x" + "11" * 32
_CONTRACTS = {
    "exchange": "0x" + "1" * 40,
    "collateral": "0x" + "2" * 40,
    "conditional_tokens": "0x" + "3" * 40,
}
_NEG_RISK_CONTRACTS = {**_CONTRACTS, "exchange": "0x" + "4" * 40}
_ALL_STANDARD = 3
_ALL_WITH_NEG_RISK = 7


def _make_w3(*, allowance: int, approved: bool) -> MagicMock:
    """Create a Web3 stand-in with fixed allowance and operator state."""
    w3 = MagicMock()
    w3.eth.gas_price = 30_000_000_000
    w3.eth.get_transaction_count.return_value = 0
    contract = w3.eth.contract.return_value
    contract.functions.allowance.return_value.call.return_value = allowance
    contract.functions.isApprovedForAll.return_value.call.return_value = approved
    return w3


class TestApproveAll:
    """Tests for approve_all."""

    def test_skips_existing_approvals(self) -> None:
        """Send nothing when every approval is already in place."""
        w3 = _make_w3(allowance=_approvals.MAX_UINT256, approved=True)

        sent = _approvals.approve_all(w3, _PRIVATE_KEY, _CONTRACTS, _NEG_RISK_CONTRACTS)

        assert sent == 0
        w3.eth.send_raw_transaction.assert_not_called()

    def test_sends_missing_approvals(self) -> None:
        """Approve USDC twice and the exchange operator once."""
        w3 = _make_w3(allowance=0, approved=False)

        assert _approvals.approve_all(w3, _PRIVATE_KEY, _CONTRACTS) == _ALL_STANDARD

    def test_neg_risk_adds_adapter_and_exchange(self) -> None:
        """Cover the negative-risk exchange and adapter as well."""
        w3 = _make_w3(allowance=0, approved=False)

        sent = _approvals.approve_all(w3, _PRIVATE_KEY, _CONTRACTS, _NEG_RISK_CONTRACTS)

        assert sent == _ALL_WITH_NEG_RISK

    def test_insufficient_gas(self) -> None:
        """Raise InsufficientGasError when the wallet cannot pay for gas."""
        w3 = _make_w3(allowance=0, approved=False)
        w3.eth.send_raw_transaction.side_effect = ValueError("insufficient funds for gas")

        with pytest.raises(InsufficientGasError, match="Insufficient POL"):
            _approvals.approve_all(w3, _PRIVATE_KEY, _CONTRACTS)

    def test_other_errors_propagate(self) -> None:
        """Re-raise errors unrelated to gas."""
        w3 = _make_w3(allowance=0, approved=False)
        w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")

        with pytest.raises(ValueError, match="nonce too low"):
            _approvals.approve_all(w3, _PRIVATE_KEY, _CONTRACTS)


class TestEnsureTokensApproved:
    """Tests for ensure_tokens_approved."""

    def test_noop_when_approved(self) -> None:
        """Send nothing once the operator approval exists."""
        w3 = _make_w3(allowance=0, approved=True)

        assert _approvals.ensure_tokens_approved(w3, _PRIVATE_KEY, _CONTRACTS) == 0

    def test_approves_both_exchanges(self) -> None:
        """Approve the standard and negative-risk exchanges."""
        w3 = _make_w3(allowance=0, approved=False)

        sent = _approvals.ensure_tokens_approved(
            w3, _PRIVATE_KEY, _CONTRACTS, _NEG_RISK_CONTRACTS["exchange"]
        )

        assert sent == 2  # noqa: PLR2004


class TestGasOptions:
    """Tests for gas_options."""

    def test_buffers_network_price(self) -> None:
        """Add 20% to the network gas price."""
        w3 = MagicMock()
        w3.eth.gas_price = 100

        assert _approvals.gas_options(w3)["gasPrice"] == 120  # noqa: PLR2004

    def test_fallback_price(self) -> None:
        """Use 100 gwei when the price lookup fails."""
        w3 = MagicMock()
        type(w3.eth).gas_price = PropertyMock(side_effect=OSError("down"))

        assert _approvals.gas_options(w3)["gasPrice"] == 100 * 10**9
