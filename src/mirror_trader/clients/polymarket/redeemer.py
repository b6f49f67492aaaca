"""Resolve and redeem held positions through the Polymarket client.

Bridge the ledger's ``(market_id, token_id)`` keys to the Data API's
redeemable-position listing and the on-chain redemption call.
"""

import logging

from mirror_trader.clients.polymarket.client import PolymarketClient
from mirror_trader.clients.polymarket.models import RedeemablePosition

logger = logging.getLogger(__name__)


class PolymarketRedeemer:
    """Redemption collaborator backed by ``PolymarketClient``.

    A standard CTF redemption pays out every outcome of a condition in one
    transaction, so once such a condition has been redeemed any further key
    for it is reported as redeemed without another transaction.  Negative-risk
    redemptions carry per-outcome amounts and always run individually.

    Args:
        client: Authenticated Polymarket client.

    """

    def __init__(self, client: PolymarketClient) -> None:
        """Initialize with an authenticated client."""
        self._client = client
        self._positions: dict[tuple[str, str], RedeemablePosition] = {}
        self._redeemed_conditions: set[str] = set()

    async def list_resolved(self, keys: list[tuple[str, str]]) -> set[tuple[str, str]]:
        """Return the held keys whose markets have resolved and can be redeemed.

        Args:
            keys: Ledger keys currently held.

        Returns:
            Subset of ``keys`` reported redeemable by the Data API.

        Raises:
            PolymarketAPIError: When the Data API request fails.

        """
        positions = await self._client.get_redeemable_positions()
        self._positions = {(p.condition_id, p.token_id): p for p in positions}
        resolved = {key for key in keys if key in self._positions}
        logger.info("Redeemable: %d of %d held positions", len(resolved), len(keys))
        return resolved

    async def redeem(self, key: tuple[str, str]) -> bool:
        """Redeem the position for one key.

        Returns:
            ``True`` if the position was redeemed (now or earlier this session).

        Raises:
            RpcConnectionError: When no RPC endpoint is reachable.

        """
        position = self._positions.get(key)
        if position is None:
            logger.warning("No redeemable position known for %s/%s", key[0][:20], key[1][:20])
            return False
        if not position.negative_risk and position.condition_id in self._redeemed_conditions:
            return True
        logger.info(
            "Redeeming %s (%s, %s tokens)",
            position.title or key[0][:20],
            position.outcome,
            position.size,
        )
        ok = await self._client.redeem_position(position)
        if ok:
            self._redeemed_conditions.add(position.condition_id)
        return ok
