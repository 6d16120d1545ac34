"""DEX access layer: the abstract quote/execution port and its paper implementation."""

from rebalancer.dex.client import DexClient
from rebalancer.dex.paper_client import PaperDexClient

__all__ = ["DexClient", "PaperDexClient"]
