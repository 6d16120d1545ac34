"""Shared data models for the rebalancer.

CRITICAL: All monetary values use Decimal. Never use float for prices, amounts or shares.
Every model is a value object owned by the cycle that produced it.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

#: Injected source of "now" so 24h windows and timestamps are testable.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Direction(str, Enum):
    """Where the last sampled price sits relative to the 24h mean."""

    MORE_EXPENSIVE = "more expensive"
    CHEAPER = "cheaper"


class TradeSide(str, Enum):
    """Rebalancing direction for a tracked token."""

    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class ExactIn:
    """Swap exactly this much of token_in; the DEX decides the output."""

    amount: Decimal


@dataclass(frozen=True)
class ExactOut:
    """Receive exactly this much of token_out; the DEX decides the input."""

    amount: Decimal


SwapAmount = ExactIn | ExactOut


@dataclass(frozen=True)
class PricePoint:
    """A sampled swap price: price is token_out received per one token_in."""

    timestamp: datetime
    token_in: str
    token_out: str
    amount_in: Decimal
    amount_out: Decimal
    price: Decimal
    fee: Decimal


@dataclass(frozen=True)
class SwapQuote:
    """Quote returned by the DEX for a hypothetical swap."""

    token_in: str
    token_out: str
    amount_in: Decimal
    amount_out: Decimal
    fee: Decimal
    timestamp: datetime

    @property
    def price(self) -> Decimal:
        return self.amount_out / self.amount_in

    def to_price_point(self) -> PricePoint:
        return PricePoint(
            timestamp=self.timestamp,
            token_in=self.token_in,
            token_out=self.token_out,
            amount_in=self.amount_in,
            amount_out=self.amount_out,
            price=self.price,
            fee=self.fee,
        )


@dataclass(frozen=True)
class SwapReceipt:
    """Swap submitted to the DEX. Amounts are requested, not settled."""

    swap_id: str
    timestamp: datetime
    token_in: str
    token_out: str
    amount_in: Decimal
    amount_out: Decimal


@dataclass(frozen=True)
class Balance:
    """Raw wallet holding for one token."""

    token: str
    amount: Decimal
    decimals: int


@dataclass(frozen=True)
class Stats:
    """24h price statistics for a tracked token, priced in base-token units."""

    token: str
    sample_count: int
    mean: Decimal
    last_price: Decimal
    std_dev: Decimal
    std_dev_percent: Decimal
    last_deviation_percent: Decimal
    direction: Direction


@dataclass(frozen=True)
class BalanceInfo:
    """A holding valued in base-token and reference units."""

    token: str
    amount: Decimal
    decimals: int
    price_in_base: Decimal
    price_in_reference: Decimal
    value_in_base: Decimal
    value_in_reference: Decimal
    percent_of_base_value: Decimal = Decimal("0")


@dataclass(frozen=True)
class Extremes:
    """Most underweight and most overweight tracked holdings."""

    lowest: BalanceInfo
    highest: BalanceInfo


@dataclass(frozen=True)
class TradeInstruction:
    """A single swap the decider wants executed.

    base_value is the whole number of base-token units the trade is worth:
    spent on a BUY, received on a SELL.
    """

    side: TradeSide
    token: str
    token_in: str
    token_out: str
    amount: SwapAmount
    base_value: Decimal


@dataclass
class RebalancePlan:
    """Outcome of one decision pass. Holds at most one BUY and one SELL."""

    lowest: BalanceInfo
    highest: BalanceInfo
    lowest_stats: Stats
    highest_stats: Stats
    target_share: Decimal
    buy_threshold: Decimal
    sell_threshold: Decimal
    buy_amount: Decimal
    sell_amount: Decimal
    total_base_value: Decimal
    instructions: list[TradeInstruction] = field(default_factory=list)


@dataclass(frozen=True)
class Trade:
    """Settled swap derived from balance deltas."""

    timestamp: datetime
    swap_id: str
    token_in: str
    amount_in: Decimal
    token_out: str
    amount_out: Decimal
    was_successful: bool
