"""Current swap price sampling.

Quotes the base token against the reference unit and every tracked token
against the base token, then appends the samples to price history.
"""

from decimal import Decimal

from rebalancer.concurrency import gather_all
from rebalancer.data.store import PriceHistoryStore
from rebalancer.dex.client import DexClient
from rebalancer.logging import get_logger
from rebalancer.models import ExactIn, ExactOut, PricePoint

logger = get_logger(__name__)


class PriceSampler:
    """Fetches and persists one price sample per token.

    Tracked tokens are quoted as "how much of the token buys ``quote_amount``
    base tokens", so every sample is sized the same in base-token terms.

    Args:
        dex: DEX quote port.
        store: Price history the samples are appended to.
        base: Base token symbol.
        reference: Reference (USD-pegged) token symbol.
        tracked: Tracked token symbols.
        quote_amount: Base-token quantity each quote is sized at.
    """

    def __init__(
        self,
        dex: DexClient,
        store: PriceHistoryStore,
        base: str,
        reference: str,
        tracked: list[str],
        quote_amount: Decimal,
    ) -> None:
        self._dex = dex
        self._store = store
        self._base = base
        self._reference = reference
        self._tracked = tracked
        self._quote_amount = quote_amount

    async def sample(self) -> list[PricePoint]:
        """Quote all pairs concurrently and persist the results.

        Returns:
            Price points with the base/reference point first, then tracked
            tokens in configured order.

        Raises:
            DexError: If any quote fails; nothing is persisted in that case.
        """
        quotes = await gather_all(
            self._dex.fetch_swap_price(
                self._base, self._reference, ExactIn(self._quote_amount)
            ),
            *(
                self._dex.fetch_swap_price(token, self._base, ExactOut(self._quote_amount))
                for token in self._tracked
            ),
        )
        points = [quote.to_price_point() for quote in quotes]

        await self._store.save_price_samples(points)
        logger.info("prices_sampled", count=len(points))
        return points
