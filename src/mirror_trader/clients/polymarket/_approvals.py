"""On-chain token approvals required before the exchange can settle orders.

USDC.e must be approved (maximum allowance) for the Conditional Token
Framework and the exchange, and the CTF's ERC-1155 outcome tokens must be
approved for the exchange with ``setApprovalForAll`` so bought tokens can
be sold again.  Negative-risk markets settle through a separate exchange
and adapter which need the same approvals.

Every function here is synchronous; the facade runs them in a thread.
"""

import logging
from typing import Any

from web3 import Web3
from web3.types import TxParams, Wei

from mirror_trader.clients.polymarket.exceptions import InsufficientGasError

logger = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1
NEG_RISK_ADAPTER = "0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296"

_GAS_LIMIT = 200_000
_GAS_PRICE_BUFFER_PCT = 120
_FALLBACK_GAS_PRICE_GWEI = 100
_TX_RECEIPT_TIMEOUT = 120

_ERC20_ABI: list[dict[str, Any]] = [
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

_ERC1155_ABI: list[dict[str, Any]] = [
    {
        "name": "setApprovalForAll",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "operator", "type": "address"},
            {"name": "approved", "type": "bool"},
        ],
        "outputs": [],
    },
    {
        "name": "isApprovedForAll",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "account", "type": "address"},
            {"name": "operator", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]


def gas_options(w3: Web3) -> TxParams:
    """Return gas parameters with a 20% buffer over the network price.

    Fall back to a static 100 gwei when the gas price lookup fails.
    """
    try:
        price = Wei(w3.eth.gas_price * _GAS_PRICE_BUFFER_PCT // 100)
    except Exception:  # noqa: BLE001
        logger.warning("Could not fetch gas price, using fallback")
        price = Web3.to_wei(_FALLBACK_GAS_PRICE_GWEI, "gwei")
    return {"gasPrice": price, "gas": _GAS_LIMIT}


def _send(w3: Web3, private_key: str, fn: Any, label: str) -> None:
    """Sign, send, and wait for a contract call."""
    account = w3.eth.account.from_key(private_key)
    params: TxParams = {
        **gas_options(w3),
        "from": account.address,
        "nonce": w3.eth.get_transaction_count(account.address, "pending"),
    }
    tx = fn.build_transaction(params)
    signed = w3.eth.account.sign_transaction(tx, private_key=private_key)
    tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    logger.info("%s: transaction %s", label, tx_hash.hex())
    w3.eth.wait_for_transaction_receipt(tx_hash, timeout=_TX_RECEIPT_TIMEOUT)
    logger.info("%s: confirmed", label)


def _ensure_erc20_allowance(
    w3: Web3, private_key: str, token: Any, owner: str, spender: str, label: str
) -> int:
    current = token.functions.allowance(owner, spender).call()
    if current == MAX_UINT256:
        logger.info("USDC already approved for %s", label)
        return 0
    logger.info("Current %s allowance: %s, setting to max", label, current)
    _send(w3, private_key, token.functions.approve(spender, MAX_UINT256), f"USDC -> {label}")
    return 1


def _ensure_operator(
    w3: Web3, private_key: str, ctf: Any, owner: str, operator: str, label: str
) -> int:
    if ctf.functions.isApprovedForAll(owner, operator).call():
        return 0
    logger.info("Approving ConditionalTokens for %s...", label)
    _send(w3, private_key, ctf.functions.setApprovalForAll(operator, True), f"CTF -> {label}")
    return 1


def _wrap_gas_errors(exc: Exception, address: str) -> None:
    text = str(exc)
    if "INSUFFICIENT_FUNDS" in text or "insufficient funds" in text:
        msg = (
            f"Insufficient POL (MATIC) for gas fees on wallet {address or 'unknown'}. "
            "Deposit POL on Polygon to this address before running the bot."
        )
        raise InsufficientGasError(msg) from exc


def approve_all(
    w3: Web3,
    private_key: str,
    contracts: dict[str, str],
    neg_risk_contracts: dict[str, str] | None = None,
) -> int:
    """Grant every approval the exchange needs, skipping those already set.

    Args:
        w3: Connected Web3 instance.
        private_key: Hex private key of the trading wallet.
        contracts: Standard ``exchange``/``collateral``/``conditional_tokens``
            addresses.
        neg_risk_contracts: Negative-risk exchange addresses, or ``None`` to
            skip the negative-risk approvals.

    Returns:
        Number of approval transactions sent.

    Raises:
        InsufficientGasError: When the wallet cannot pay for gas.

    """
    address = w3.eth.account.from_key(private_key).address
    usdc = w3.eth.contract(
        address=Web3.to_checksum_address(contracts["collateral"]), abi=_ERC20_ABI
    )
    ctf_address = Web3.to_checksum_address(contracts["conditional_tokens"])
    ctf = w3.eth.contract(address=ctf_address, abi=_ERC1155_ABI)
    exchange = Web3.to_checksum_address(contracts["exchange"])
    logger.info("Approving allowances for %s", address)

    sent = 0
    try:
        sent += _ensure_erc20_allowance(w3, private_key, usdc, address, ctf_address, "CTF")
        sent += _ensure_erc20_allowance(w3, private_key, usdc, address, exchange, "Exchange")
        sent += _ensure_operator(w3, private_key, ctf, address, exchange, "Exchange")
        if neg_risk_contracts is not None:
            nr_exchange = Web3.to_checksum_address(neg_risk_contracts["exchange"])
            adapter = Web3.to_checksum_address(NEG_RISK_ADAPTER)
            sent += _ensure_erc20_allowance(
                w3, private_key, usdc, address, adapter, "NegRiskAdapter"
            )
            sent += _ensure_erc20_allowance(
                w3, private_key, usdc, address, nr_exchange, "NegRiskExchange"
            )
            sent += _ensure_operator(w3, private_key, ctf, address, nr_exchange, "NegRiskExchange")
            sent += _ensure_operator(w3, private_key, ctf, address, adapter, "NegRiskAdapter")
    except Exception as exc:
        _wrap_gas_errors(exc, address)
        raise
    logger.info("All allowances approved (%d transactions)", sent)
    return sent


def ensure_tokens_approved(
    w3: Web3,
    private_key: str,
    contracts: dict[str, str],
    neg_risk_exchange: str | None = None,
) -> int:
    """Approve the exchange as ERC-1155 operator so bought tokens can be sold.

    ``setApprovalForAll`` covers every token id at once, so this is a
    no-op once it has run and is safe to call after every BUY.

    Returns:
        Number of approval transactions sent (0 when already approved).

    Raises:
        InsufficientGasError: When the wallet cannot pay for gas.

    """
    address = w3.eth.account.from_key(private_key).address
    ctf = w3.eth.contract(
        address=Web3.to_checksum_address(contracts["conditional_tokens"]), abi=_ERC1155_ABI
    )
    sent = 0
    try:
        sent += _ensure_operator(
            w3,
            private_key,
            ctf,
            address,
            Web3.to_checksum_address(contracts["exchange"]),
            "Exchange",
        )
        if neg_risk_exchange is not None:
            sent += _ensure_operator(
                w3,
                private_key,
                ctf,
                address,
                Web3.to_checksum_address(neg_risk_exchange),
                "NegRiskExchange",
            )
    except Exception as exc:
        _wrap_gas_errors(exc, address)
        raise
    return sent
