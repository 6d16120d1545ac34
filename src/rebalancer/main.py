"""Entry point for the rebalancer.

Wires the components and runs a single rebalancing cycle:
1. AppSettings (configuration)
2. Logging setup
3. DexClient (PaperDexClient seeded from a snapshot file)
4. RebalancerDatabase + SqlitePriceHistoryStore (price and trade history)
5. RebalanceCycle (sample, decide, trade, reconcile)

Scheduling repeated cycles is left to the caller (cron, systemd timer, ...).
"""

import asyncio
import sys

from rebalancer.config import AppSettings
from rebalancer.data.database import RebalancerDatabase
from rebalancer.data.store import SqlitePriceHistoryStore
from rebalancer.dex.paper_client import PaperDexClient
from rebalancer.exceptions import RebalancerError
from rebalancer.logging import get_logger, setup_logging
from rebalancer.orchestrator import CycleResult, RebalanceCycle


async def run(settings: AppSettings) -> CycleResult:
    """Run one cycle with components built from settings."""
    logger = get_logger("rebalancer.main")

    dex = PaperDexClient.from_snapshot(
        settings.dex.snapshot_path,
        wallet_address=settings.dex.wallet_address or None,
    )
    logger.info("rebalancer_starting", mode=settings.dex.mode, wallet=dex.wallet_address)

    try:
        async with RebalancerDatabase(settings.database.path) as database:
            cycle = RebalanceCycle(
                dex=dex,
                store=SqlitePriceHistoryStore(database),
                tokens=settings.tokens,
                rebalance=settings.rebalance,
            )
            return await cycle.run()
    finally:
        await dex.close()
        logger.info("rebalancer_stopped")


def main() -> None:
    """Synchronous entry point. Exits with status 1 when the cycle fails."""
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)

    try:
        asyncio.run(run(settings))
    except RebalancerError as e:
        get_logger("rebalancer.main").error(
            "rebalancer_failed", error_type=type(e).__name__, error=str(e), token=e.token
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
