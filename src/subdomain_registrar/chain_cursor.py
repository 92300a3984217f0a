"""
Last observed chain height, shared by the batch and confirmation cycles.
"""

from .chain_client import ChainClient
from .exceptions import ChainHeightRegressionError, StaleChainSourceError


class ChainCursor:
    """
    Monotonic record of the chain tip.

    A height lower than one already seen means the data source is stale or
    misbehaving, so it is rejected rather than ignored.
    """

    def __init__(self, max_indexer_lag: int = 10) -> None:
        self._max_indexer_lag = max_indexer_lag
        self._last_seen_height = 0

    @property
    def last_seen_height(self) -> int:
        return self._last_seen_height

    def advance(self, height: int) -> int:
        if height < self._last_seen_height:
            raise ChainHeightRegressionError(
                code="height_regression",
                message=(
                    f"Chain height went backwards: {height} < {self._last_seen_height}"
                ),
                details={"height": height, "last_seen_height": self._last_seen_height},
            )
        self._last_seen_height = height
        return height

    async def refresh(self, chain: ChainClient) -> int:
        """
        Fetch the tip, advance to it and check the API indexer keeps up.

        Raises:
            ChainHeightRegressionError: If the tip is below the last seen height
            StaleChainSourceError: If the indexer lags more than the allowed blocks
        """
        height = self.advance(await chain.get_chain_tip())
        indexer_height = await chain.get_indexer_height()
        if indexer_height + self._max_indexer_lag < height:
            raise StaleChainSourceError(
                code="stale_chain_source",
                message=(
                    f"Chain API index at {indexer_height} is more than "
                    f"{self._max_indexer_lag} blocks behind tip {height}"
                ),
                details={"indexer_height": indexer_height, "chain_tip": height},
            )
        return height
