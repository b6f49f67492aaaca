"""Exception hierarchy for Polymarket client errors.

A base exception class with a specialised API error that carries status
code and message attributes, plus the on-chain failures raised by the
approval and redemption helpers.
"""


class PolymarketError(Exception):
    """Base exception for all Polymarket client errors."""


class PolymarketAPIError(PolymarketError):
    """Error returned by a Polymarket API call.

    Carry a human-readable message and an HTTP status code so callers
    can distinguish region blocks, auth failures, and rate limits from
    generic failures.

    Args:
        msg: Human-readable description of the error.
        status_code: HTTP status code from the API response (0 when the
            request never reached the server).

    """

    def __init__(self, msg: str, status_code: int) -> None:
        """Initialize Polymarket API error.

        Args:
            msg: Human-readable description of the error.
            status_code: HTTP status code from the API response.

        """
        super().__init__(f"[{status_code}] {msg}")
        self.msg = msg
        self.status_code = status_code


class RpcConnectionError(PolymarketError):
    """No JSON-RPC endpoint in the candidate list answered in time."""


class InsufficientGasError(PolymarketError):
    """The signing wallet holds too little POL to pay for gas."""
