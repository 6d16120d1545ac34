"""Price and trade history persistence layer."""

from rebalancer.data.database import RebalancerDatabase
from rebalancer.data.store import (
    InMemoryPriceHistoryStore,
    PriceHistoryStore,
    SqlitePriceHistoryStore,
)

__all__ = [
    "InMemoryPriceHistoryStore",
    "PriceHistoryStore",
    "RebalancerDatabase",
    "SqlitePriceHistoryStore",
]
