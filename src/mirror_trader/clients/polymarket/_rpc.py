"""Ordered JSON-RPC endpoint fallback for Polygon.

Try each candidate endpoint in turn and return the first one that answers
an ``eth_chainId`` probe within the per-candidate timeout.  The operator's
own ``RPC_URL`` always goes first, followed by an Alchemy endpoint when an
``RPC_TOKEN`` is configured, then public endpoints.
"""

import logging

from web3 import Web3

from mirror_trader.clients.polymarket.exceptions import RpcConnectionError

logger = logging.getLogger(__name__)

POLYGON_CHAIN_ID = 137
AMOY_CHAIN_ID = 80002
DEFAULT_RPC_TIMEOUT = 7.0

_POLYGON_PUBLIC_RPCS = (
    "https://polygon-rpc.com",
    "https://rpc.ankr.com/polygon",
    "https://polygon.llamarpc.com",
    "https://rpc-mainnet.matic.quiknode.pro",
)
_AMOY_PUBLIC_RPCS = ("https://rpc-amoy.polygon.technology",)


def rpc_candidates(
    chain_id: int,
    rpc_url: str | None = None,
    rpc_token: str | None = None,
) -> list[str]:
    """Build the ordered, de-duplicated list of RPC endpoints to try.

    Args:
        chain_id: 137 (Polygon) or 80002 (Amoy).
        rpc_url: Operator-supplied endpoint, tried first.
        rpc_token: Alchemy API token, used to build a private endpoint.

    Returns:
        Endpoint URLs in the order they should be attempted.

    Raises:
        ValueError: For any other chain ID.

    """
    out: list[str] = []
    if rpc_url:
        out.append(rpc_url)
    if chain_id == POLYGON_CHAIN_ID:
        if rpc_token:
            out.append(f"https://polygon-mainnet.g.alchemy.com/v2/{rpc_token}")
        out.extend(_POLYGON_PUBLIC_RPCS)
    elif chain_id == AMOY_CHAIN_ID:
        if rpc_token:
            out.append(f"https://polygon-amoy.g.alchemy.com/v2/{rpc_token}")
        out.extend(_AMOY_PUBLIC_RPCS)
    else:
        msg = f"Unsupported chain ID: {chain_id}. Supported: 137 (Polygon), 80002 (Amoy)"
        raise ValueError(msg)
    return list(dict.fromkeys(out))


def connect_first_available(
    chain_id: int,
    rpc_url: str | None = None,
    rpc_token: str | None = None,
    *,
    timeout: float = DEFAULT_RPC_TIMEOUT,
) -> tuple[Web3, str]:
    """Return a connected ``Web3`` instance for the first responsive endpoint.

    Each candidate gets one ``eth_chainId`` request bounded by ``timeout``
    seconds, so a hung endpoint costs at most that long before the next
    one is tried.

    Args:
        chain_id: Expected chain ID.
        rpc_url: Operator-supplied endpoint, tried first.
        rpc_token: Alchemy API token.
        timeout: Per-candidate HTTP timeout in seconds.

    Returns:
        Tuple of the connected ``Web3`` instance and the endpoint URL.

    Raises:
        RpcConnectionError: When every candidate fails.

    """
    errors: list[str] = []
    for url in rpc_candidates(chain_id, rpc_url, rpc_token):
        w3 = Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout}))
        try:
            reported = w3.eth.chain_id
        except Exception as exc:  # noqa: BLE001
            errors.append(f"{url} -> {exc}")
            continue
        if reported != chain_id:
            errors.append(f"{url} -> wrong chain {reported}")
            continue
        logger.info("Connected to RPC: %s", url)
        return w3, url

    attempts = "\n- ".join(errors)
    msg = (
        f"Could not connect to any RPC endpoint for chainId={chain_id}. "
        f"Set RPC_URL in .env. Attempts:\n- {attempts}"
    )
    raise RpcConnectionError(msg)
