"""Rebalancing decision engine.

Pure computation functions (stats, valuation, decision, reconciliation)
plus the async components that feed them from the DEX and price history.
"""

from rebalancer.engine.decider import decide_rebalance, find_extremes
from rebalancer.engine.reconciler import ReconcileResult, reconcile
from rebalancer.engine.sampler import PriceSampler
from rebalancer.engine.stats import StatsCalculator, compute_stats
from rebalancer.engine.valuation import build_balance_infos, find_reference_rate

__all__ = [
    "PriceSampler",
    "ReconcileResult",
    "StatsCalculator",
    "build_balance_infos",
    "compute_stats",
    "decide_rebalance",
    "find_extremes",
    "find_reference_rate",
    "reconcile",
]
