"""Rebalancing cycle orchestrator -- wires the engine components for one cycle.

Each cycle runs these phases strictly in order:
  1. SAMPLING: Quote every pair concurrently, persist the samples
  2. STATS + VALUATION: 24h stats per token and wallet valuation, concurrently
  3. DECISION: Pick at most one buy and one sell
  4. EXECUTION: Buy, then sell, one swap at a time
  5. RECONCILIATION: Re-value the wallet, derive settled trades, persist them

Any failure ends the cycle. It is logged with the failing phase and token,
then re-raised. Swaps already executed are left as they are.
"""

from __future__ import annotations

from collections.abc import Awaitable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TypeVar
from uuid import uuid4

import structlog

from rebalancer.concurrency import gather_all
from rebalancer.config import RebalanceSettings, TokenSettings, check_settings
from rebalancer.data.store import PriceHistoryStore
from rebalancer.dex.client import DexClient
from rebalancer.engine.decider import decide_rebalance
from rebalancer.engine.reconciler import ReconcileResult, reconcile
from rebalancer.engine.sampler import PriceSampler
from rebalancer.engine.stats import StatsCalculator
from rebalancer.engine.valuation import build_balance_infos, find_reference_rate
from rebalancer.exceptions import BalanceNotFoundError, RebalancerError
from rebalancer.logging import get_logger
from rebalancer.models import (
    BalanceInfo,
    PricePoint,
    RebalancePlan,
    Stats,
    SwapReceipt,
    Trade,
)
from rebalancer.report import CycleReport

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CycleResult:
    """Everything one cycle observed and did."""

    prices: list[PricePoint]
    stats: dict[str, Stats]
    balances: list[BalanceInfo]
    plan: RebalancePlan
    receipts: list[SwapReceipt] = field(default_factory=list)
    trades: list[Trade] = field(default_factory=list)
    failures: list[tuple[SwapReceipt, BalanceNotFoundError]] = field(default_factory=list)


@contextmanager
def _phase(name: str) -> Iterator[None]:
    """Bind the phase to log context and log any failure before it propagates."""
    with structlog.contextvars.bound_contextvars(phase=name):
        try:
            yield
        except RebalancerError as e:
            logger.error(
                "cycle_failed",
                token=e.token,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise
        except Exception as e:
            logger.error(
                "cycle_failed",
                error_type=type(e).__name__,
                error=str(e),
                exc_info=True,
            )
            raise


async def _in_phase(name: str, awaitable: Awaitable[T]) -> T:
    with _phase(name):
        return await awaitable


class RebalanceCycle:
    """One sample-decide-trade-reconcile pass over a wallet.

    Args:
        dex: DEX quote/balance/swap port.
        store: Price and trade history.
        tokens: Token universe.
        rebalance: Decision parameters.
        report: Optional report to append to; a fresh one is created otherwise.

    Raises:
        ConfigurationError: If the settings cannot support a cycle.
    """

    def __init__(
        self,
        dex: DexClient,
        store: PriceHistoryStore,
        tokens: TokenSettings,
        rebalance: RebalanceSettings,
        report: CycleReport | None = None,
    ) -> None:
        check_settings(tokens, rebalance)
        self._dex = dex
        self._store = store
        self._tokens = tokens
        self._rebalance = rebalance
        self._sampler = PriceSampler(
            dex,
            store,
            base=tokens.base,
            reference=tokens.reference,
            tracked=list(tokens.tracked),
            quote_amount=rebalance.quote_amount,
        )
        self._stats_calculator = StatsCalculator(store)
        self.report = report or CycleReport(tokens.base, tokens.reference)

    async def _valuate(self, prices: list[PricePoint]) -> list[BalanceInfo]:
        balances = await self._dex.fetch_balances()
        rate = find_reference_rate(prices, self._tokens.base, self._tokens.reference)
        return build_balance_infos(
            balances,
            prices,
            rate,
            base=self._tokens.base,
            reference=self._tokens.reference,
            tracked=list(self._tokens.tracked),
        )

    async def run(self) -> CycleResult:
        """Run a full cycle.

        Returns:
            CycleResult with the plan and any reconciled trades.

        Raises:
            RebalancerError: Any engine or collaborator failure, after logging.
        """
        with structlog.contextvars.bound_contextvars(cycle_id=uuid4().hex[:12]):
            logger.info("cycle_started", wallet=self._dex.wallet_address)

            prices = await _in_phase("sampling", self._sampler.sample())
            with _phase("sampling"):
                rate = find_reference_rate(
                    prices, self._tokens.base, self._tokens.reference
                )
            self.report.prices(prices, rate)

            stats, balances = await gather_all(
                _in_phase(
                    "stats",
                    self._stats_calculator.compute_all(list(self._tokens.tracked)),
                ),
                _in_phase("valuation", self._valuate(prices)),
            )
            self.report.stats(stats)

            with _phase("decision"):
                plan = decide_rebalance(
                    balances, stats, base=self._tokens.base, settings=self._rebalance
                )
            self.report.balances(
                balances, self._rebalance.target_share_base, plan.target_share
            )
            self.report.rebalance(plan)

            result = CycleResult(prices=prices, stats=stats, balances=balances, plan=plan)

            with _phase("execution"):
                for instruction in plan.instructions:
                    receipt = await self._dex.swap(
                        instruction.token_in, instruction.token_out, instruction.amount
                    )
                    logger.info(
                        "swap_submitted",
                        swap_id=receipt.swap_id,
                        side=instruction.side.value,
                        token=instruction.token,
                        base_value=str(instruction.base_value),
                    )
                    result.receipts.append(receipt)

            if not result.receipts:
                logger.info("cycle_finished", trades=0)
                return result

            balances_after = await _in_phase("reconciliation", self._valuate(prices))
            with _phase("reconciliation"):
                reconciled: ReconcileResult = reconcile(
                    balances, balances_after, result.receipts
                )
                await self._store.save_trades(reconciled.trades)
            self.report.trades(reconciled)

            result.trades = reconciled.trades
            result.failures = reconciled.failures
            logger.info(
                "cycle_finished",
                trades=len(result.trades),
                successful=sum(1 for t in result.trades if t.was_successful),
                failures=len(result.failures),
            )
            return result
