"""24h price statistics for tracked tokens.

Population statistics over the stored price window: mean, standard deviation
(divided by n, not n - 1) and how far the latest sample sits from the mean.

CRITICAL: All computations use Decimal. Never use float.
"""

from decimal import Decimal

from rebalancer.concurrency import gather_all
from rebalancer.data.store import PriceHistoryStore
from rebalancer.exceptions import MissingDataError
from rebalancer.logging import get_logger
from rebalancer.models import Direction, PricePoint, Stats

logger = get_logger(__name__)

_HUNDRED = Decimal("100")


def compute_stats(token: str, samples: list[PricePoint]) -> Stats:
    """Compute window statistics for one token.

    The last price is taken from the chronologically last sample. A zero
    deviation counts as "more expensive" so direction has exactly two values.

    Args:
        token: Token the samples belong to.
        samples: Price points for the token, in any order.

    Returns:
        Stats for the window.

    Raises:
        MissingDataError: If the window is empty or its mean price is zero.
    """
    if not samples:
        raise MissingDataError(f"No price samples in the last 24h for {token}", token=token)

    prices = [p.price for p in sorted(samples, key=lambda p: p.timestamp)]
    count = Decimal(len(prices))

    mean = sum(prices, Decimal("0")) / count
    if mean == 0:
        raise MissingDataError(f"Mean price for {token} is zero", token=token)

    variance = sum(((p - mean) ** 2 for p in prices), Decimal("0")) / count
    std_dev = variance.sqrt()
    last_price = prices[-1]
    last_deviation_percent = (last_price - mean) / mean * _HUNDRED

    return Stats(
        token=token,
        sample_count=len(prices),
        mean=mean,
        last_price=last_price,
        std_dev=std_dev,
        std_dev_percent=std_dev / mean * _HUNDRED,
        last_deviation_percent=last_deviation_percent,
        direction=(
            Direction.MORE_EXPENSIVE if last_deviation_percent >= 0 else Direction.CHEAPER
        ),
    )


class StatsCalculator:
    """Reads each token's 24h window from the store and computes its Stats."""

    def __init__(self, store: PriceHistoryStore) -> None:
        self._store = store

    async def compute(self, token: str) -> Stats:
        samples = await self._store.fetch_price_samples_24h(token)
        return compute_stats(token, samples)

    async def compute_all(self, tokens: list[str]) -> dict[str, Stats]:
        """Compute stats for every token concurrently.

        Raises:
            MissingDataError: If any token has an empty window.
        """
        results = await gather_all(*(self.compute(token) for token in tokens))
        stats = {s.token: s for s in results}
        logger.info("stats_computed", tokens=len(stats))
        return stats
