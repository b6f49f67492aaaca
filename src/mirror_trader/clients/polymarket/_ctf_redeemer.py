"""Redeem winning conditional tokens for USDC.e collateral.

Standard markets call ``redeemPositions`` on the Gnosis Conditional Token
Framework (CTF) contract.  Proxy-wallet users route that call through the
Polymarket ProxyWalletFactory's ``proxy()`` function, which dispatches on
``msg.sender`` so the signing EOA must own the proxy wallet.  Negative-risk
markets redeem through the NegRiskAdapter with per-outcome amounts.

Each condition is redeemed in its own transaction and reports its own
outcome, so one failed redemption never blocks the others.
"""

import logging
from typing import Any

from web3 import Web3
from web3.types import Nonce, TxParams, Wei

from mirror_trader.clients.polymarket._approvals import NEG_RISK_ADAPTER

logger = logging.getLogger(__name__)

# Polygon contract addresses
_CTF_ADDRESS = "0x4D97DCd97eC945f40cF65F87097ACe5EA0476045"
_USDC_E_ADDRESS = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
_PROXY_WALLET_FACTORY = "0xaB45c5A4B0c941a2F231C04C3f49182e1A254052"
_PARENT_COLLECTION_ID = b"\x00" * 32

# Redeem both YES (index 1) and NO (index 2) outcomes
_INDEX_SETS = [1, 2]
_TOKEN_DECIMALS = 10**6

_CTF_REDEEM_ABI: list[dict[str, Any]] = [
    {
        "name": "redeemPositions",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "collateralToken", "type": "address"},
            {"name": "parentCollectionId", "type": "bytes32"},
            {"name": "conditionId", "type": "bytes32"},
            {"name": "indexSets", "type": "uint256[]"},
        ],
        "outputs": [],
    },
]

_NEG_RISK_REDEEM_ABI: list[dict[str, Any]] = [
    {
        "name": "redeemPositions",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_conditionId", "type": "bytes32"},
            {"name": "_amounts", "type": "uint256[]"},
        ],
        "outputs": [],
    },
]

# ProxyWalletFactory proxy() ABI: routes calls through the caller's proxy wallet
_FACTORY_PROXY_ABI: list[dict[str, Any]] = [
    {
        "name": "proxy",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {
                "name": "calls",
                "type": "tuple[]",
                "components": [
                    {"name": "typeCode", "type": "uint8"},
                    {"name": "to", "type": "address"},
                    {"name": "value", "type": "uint256"},
                    {"name": "data", "type": "bytes"},
                ],
            },
        ],
        "outputs": [{"name": "", "type": "bytes[]"}],
    },
]

_CALL_TYPE_CODE = 1  # CALL (not DELEGATECALL)
_DEFAULT_GAS = 300_000
_TX_RECEIPT_TIMEOUT = 120
_GAS_PRICE_MULTIPLIER = 1.25  # 25% above estimated to ensure inclusion


def _condition_bytes(condition_id: str) -> bytes:
    cid_hex = condition_id if condition_id.startswith("0x") else f"0x{condition_id}"
    return bytes.fromhex(cid_hex[2:].zfill(64))


def _encode_redeem_calldata(condition_id: str) -> bytes:
    """Encode the ``redeemPositions`` function call for the CTF contract.

    Args:
        condition_id: Market condition ID as a hex string (with or without ``0x``).

    Returns:
        ABI-encoded calldata bytes.

    """
    w3 = Web3()
    ctf = w3.eth.contract(abi=_CTF_REDEEM_ABI)
    return ctf.encode_abi(  # type: ignore[no-any-return]
        "redeemPositions",
        [
            Web3.to_checksum_address(_USDC_E_ADDRESS),
            _PARENT_COLLECTION_ID,
            _condition_bytes(condition_id),
            _INDEX_SETS,
        ],
    )


def neg_risk_amounts(outcome_index: int, size: Any) -> list[int]:
    """Build the per-outcome amount vector the NegRiskAdapter expects.

    Args:
        outcome_index: 0 for the first outcome, 1 for the second.
        size: Token quantity held (human units).

    Returns:
        Two raw (6-decimal) amounts with the held size at ``outcome_index``.

    """
    amounts = [0, 0]
    amounts[outcome_index] = int(size * _TOKEN_DECIMALS)
    return amounts


def _encode_neg_risk_calldata(condition_id: str, amounts: list[int]) -> bytes:
    adapter = Web3().eth.contract(abi=_NEG_RISK_REDEEM_ABI)
    return adapter.encode_abi(  # type: ignore[no-any-return]
        "redeemPositions", [_condition_bytes(condition_id), amounts]
    )


def _build_call(
    w3: Web3, condition_id: str, *, via_proxy: bool, amounts: list[int] | None
) -> Any:
    if via_proxy:
        factory = w3.eth.contract(
            address=Web3.to_checksum_address(_PROXY_WALLET_FACTORY),
            abi=_FACTORY_PROXY_ABI,
        )
        if amounts is not None:
            target = NEG_RISK_ADAPTER
            data = _encode_neg_risk_calldata(condition_id, amounts)
        else:
            target = _CTF_ADDRESS
            data = _encode_redeem_calldata(condition_id)
        proxy_call = (_CALL_TYPE_CODE, Web3.to_checksum_address(target), 0, data)
        return factory.functions.proxy([proxy_call])
    if amounts is not None:
        adapter = w3.eth.contract(
            address=Web3.to_checksum_address(NEG_RISK_ADAPTER), abi=_NEG_RISK_REDEEM_ABI
        )
        return adapter.functions.redeemPositions(_condition_bytes(condition_id), amounts)
    ctf = w3.eth.contract(address=Web3.to_checksum_address(_CTF_ADDRESS), abi=_CTF_REDEEM_ABI)
    return ctf.functions.redeemPositions(
        Web3.to_checksum_address(_USDC_E_ADDRESS),
        _PARENT_COLLECTION_ID,
        _condition_bytes(condition_id),
        _INDEX_SETS,
    )


def redeem_condition(  # noqa: PLR0913
    w3: Web3,
    private_key: str,
    condition_id: str,
    *,
    via_proxy: bool,
    neg_risk_amounts_raw: list[int] | None = None,
    gas: int = _DEFAULT_GAS,
) -> bool:
    """Redeem one resolved condition on-chain.

    Use the network's recommended gas price (with a 25% buffer) instead
    of a static value to avoid stale-gas failures on Polygon.

    Args:
        w3: Connected Web3 instance.
        private_key: Hex-encoded private key of the wallet (or proxy owner).
        condition_id: Resolved market condition ID.
        via_proxy: Route through the ProxyWalletFactory (proxy-wallet accounts).
        neg_risk_amounts_raw: When set, redeem through the NegRiskAdapter with
            these per-outcome raw amounts instead of the CTF.
        gas: Gas limit for the transaction.

    Returns:
        ``True`` when the transaction was mined with status 1.  Failures are
        logged and reported as ``False`` so callers can continue with the
        remaining conditions.

    """
    account = w3.eth.account.from_key(private_key)
    try:
        call = _build_call(w3, condition_id, via_proxy=via_proxy, amounts=neg_risk_amounts_raw)
        base_gas_price = w3.eth.gas_price
        tx_params: TxParams = {
            "from": account.address,
            "gas": gas,
            "gasPrice": Wei(int(base_gas_price * _GAS_PRICE_MULTIPLIER)),
            "nonce": Nonce(w3.eth.get_transaction_count(account.address, "pending")),
        }
        tx = call.build_transaction(tx_params)
        signed = w3.eth.account.sign_transaction(tx, private_key=private_key)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=_TX_RECEIPT_TIMEOUT)
    except Exception:
        logger.warning("Failed to redeem %s", condition_id[:20], exc_info=True)
        return False

    ok = receipt["status"] == 1
    logger.info(
        "Redeemed %s: %s (gas used: %d, tx: %s)",
        condition_id[:20],
        "SUCCESS" if ok else "FAILED",
        receipt["gasUsed"],
        tx_hash.hex(),
    )
    return ok
