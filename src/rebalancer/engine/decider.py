"""Rebalance decision: turn valued balances and stats into trade instructions.

Each tracked token targets an equal slice of whatever share the base token
does not hold. The most underweight token is bought when it falls below
``target * (1 - tolerance)``; the most overweight token is sold when it rises
above ``target * (1 + tolerance)``. Both checks run independently, so a cycle
yields no trade, a buy, a sell, or both.

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal
from functools import reduce

from rebalancer.config import RebalanceSettings
from rebalancer.exceptions import ConfigurationError, MissingDataError
from rebalancer.logging import get_logger
from rebalancer.models import (
    BalanceInfo,
    ExactIn,
    ExactOut,
    Extremes,
    RebalancePlan,
    Stats,
    TradeInstruction,
    TradeSide,
)

logger = get_logger(__name__)

_ONE = Decimal("1")
_HUNDRED = Decimal("100")
_WHOLE_UNIT = Decimal("1")


def find_extremes(balances: Sequence[BalanceInfo]) -> Extremes:
    """Return the lowest- and highest-share entries.

    Ties go to the entry that appears first.

    Raises:
        ConfigurationError: If ``balances`` is empty.
    """
    if not balances:
        raise ConfigurationError("No tracked token balances to rebalance")

    def step(acc: Extremes, info: BalanceInfo) -> Extremes:
        return Extremes(
            lowest=(
                info
                if info.percent_of_base_value < acc.lowest.percent_of_base_value
                else acc.lowest
            ),
            highest=(
                info
                if info.percent_of_base_value > acc.highest.percent_of_base_value
                else acc.highest
            ),
        )

    first = balances[0]
    return reduce(step, balances[1:], Extremes(lowest=first, highest=first))


def tolerance_for(stats: Stats, settings: RebalanceSettings) -> Decimal:
    """Fractional tolerance for a token, widened by its 24h volatility.

    With the default volatility_factor of 0 this is the flat configured tolerance.
    """
    return settings.tolerance + settings.volatility_factor * stats.std_dev_percent / _HUNDRED


def round_base_units(value: Decimal) -> Decimal:
    """Round to whole base-token units, halves away from zero."""
    return value.quantize(_WHOLE_UNIT, rounding=ROUND_HALF_UP)


def _stats_for(stats: Mapping[str, Stats], token: str) -> Stats:
    try:
        return stats[token]
    except KeyError:
        raise MissingDataError(f"No stats available for {token}", token=token) from None


def decide_rebalance(
    balances: Sequence[BalanceInfo],
    stats: Mapping[str, Stats],
    *,
    base: str,
    settings: RebalanceSettings,
) -> RebalancePlan:
    """Decide which trades bring the basket back toward its targets.

    Amounts are fixed here, before any swap runs. Instructions whose amount
    rounds to zero are dropped rather than sent as no-op swaps.

    Args:
        balances: Valued holdings including the base token.
        stats: Stats keyed by token; needed for the lowest and highest token.
        base: Base token symbol.
        settings: Target share and tolerance parameters.

    Returns:
        RebalancePlan with at most one BUY (base -> lowest token, exact input)
        and one SELL (highest token -> base, exact output).

    Raises:
        ConfigurationError: If the base balance is missing or no tracked token is present.
        MissingDataError: If stats are missing for the lowest or highest token.
    """
    if not any(b.token == base for b in balances):
        raise ConfigurationError(f"No balance entry for base token {base}", token=base)
    others = [b for b in balances if b.token != base]
    extremes = find_extremes(others)
    lowest, highest = extremes.lowest, extremes.highest

    lowest_stats = _stats_for(stats, lowest.token)
    highest_stats = _stats_for(stats, highest.token)

    target_share = (_HUNDRED - settings.target_share_base) / Decimal(len(others))
    buy_threshold = target_share * (_ONE - tolerance_for(lowest_stats, settings))
    sell_threshold = target_share * (_ONE + tolerance_for(highest_stats, settings))
    total_base_value = sum((b.value_in_base for b in balances), Decimal("0"))

    instructions: list[TradeInstruction] = []
    buy_amount = Decimal("0")
    sell_amount = Decimal("0")

    if lowest.percent_of_base_value < buy_threshold:
        buy_amount = round_base_units(
            (target_share - lowest.percent_of_base_value) / _HUNDRED * total_base_value
        )
        if buy_amount > 0:
            instructions.append(
                TradeInstruction(
                    side=TradeSide.BUY,
                    token=lowest.token,
                    token_in=base,
                    token_out=lowest.token,
                    amount=ExactIn(buy_amount),
                    base_value=buy_amount,
                )
            )

    if highest.percent_of_base_value > sell_threshold:
        sell_amount = round_base_units(
            (highest.percent_of_base_value - target_share) / _HUNDRED * total_base_value
        )
        if sell_amount > 0:
            instructions.append(
                TradeInstruction(
                    side=TradeSide.SELL,
                    token=highest.token,
                    token_in=highest.token,
                    token_out=base,
                    amount=ExactOut(sell_amount),
                    base_value=sell_amount,
                )
            )

    logger.info(
        "rebalance_decided",
        lowest=lowest.token,
        highest=highest.token,
        target_share=str(target_share),
        buy_threshold=str(buy_threshold),
        sell_threshold=str(sell_threshold),
        instructions=[i.side.value for i in instructions],
    )

    return RebalancePlan(
        lowest=lowest,
        highest=highest,
        lowest_stats=lowest_stats,
        highest_stats=highest_stats,
        target_share=target_share,
        buy_threshold=buy_threshold,
        sell_threshold=sell_threshold,
        buy_amount=buy_amount,
        sell_amount=sell_amount,
        total_base_value=total_base_value,
        instructions=instructions,
    )
