"""Human-readable cycle report.

Collects the price table, stats table, balance table, rebalancing narrative
and trade outcomes as plain text lines. Lines are kept in memory for callers
and tests, and each non-blank line is also emitted through the logger.
"""

from collections.abc import Mapping
from decimal import Decimal

from rebalancer.engine.reconciler import ReconcileResult
from rebalancer.logging import get_logger
from rebalancer.models import BalanceInfo, PricePoint, RebalancePlan, Stats

logger = get_logger(__name__)


def _token_label(token: str) -> str:
    return token if len(token) > 4 else f"{token} "


def _price_number(value: Decimal) -> str:
    return f"{value:.8f}".rjust(16)


def _price_pair(token_in: str, token_out: str, price: Decimal) -> str:
    return f"1 {_token_label(token_in)} = {_price_number(price)} {_token_label(token_out)}"


class CycleReport:
    """Text report for one rebalancing cycle."""

    def __init__(self, base: str, reference: str) -> None:
        self._base = base
        self._reference = reference
        self.lines: list[str] = []

    def text(self) -> str:
        return "\n".join(self.lines)

    def emit(self, message: str = "") -> None:
        for line in message.split("\n"):
            self.lines.append(line)
            if line.strip():
                logger.info(line)

    def prices(self, points: list[PricePoint], base_to_reference_rate: Decimal) -> None:
        self.emit("Prices:")
        self.emit()
        for point in points:
            if point.token_in == self._base and point.token_out == self._reference:
                self.emit(_price_pair(self._base, self._reference, point.price))
        self.emit()
        for point in points:
            if point.token_out != self._base:
                continue
            in_reference = point.price * base_to_reference_rate
            self.emit(
                f"{_price_pair(point.token_in, self._base, point.price)} = "
                f"{_price_number(in_reference)} {self._reference}"
            )
        self.emit()

    def stats(self, stats: Mapping[str, Stats]) -> None:
        header = (
            f"{'token':>6} | {'cnt':>3} | {f'avg ({self._base})':>11} | "
            f"{f'last ({self._base})':>11} | {'std%':>6} | {'last%':>7} | {'sign':>8}"
        )
        self.emit("Stats:")
        self.emit()
        self.emit(header)
        self.emit("=" * len(header))
        for s in stats.values():
            self.emit(
                f"{s.token:>6} | {s.sample_count:>3} | {s.mean:>11.2f} | "
                f"{s.last_price:>11.2f} | {s.std_dev_percent:>5.2f}% | "
                f"{s.last_deviation_percent:>6.2f}% | {s.direction.value[:8]:>8}"
            )
        self.emit()

    def balances(
        self,
        balances: list[BalanceInfo],
        target_share_base: Decimal,
        target_share: Decimal,
    ) -> None:
        widths = [6, 17, 13, 13, 7, 7]
        header = " | ".join(
            title.rjust(width)
            for title, width in zip(
                [
                    "token",
                    "amount",
                    f"value ({self._base})",
                    f"value ({self._reference})",
                    "share",
                    "target",
                ],
                widths,
            )
        )
        self.emit("Balances:")
        self.emit()
        self.emit(header)
        self.emit("=" * len(header))
        for b in balances:
            target = target_share_base if b.token == self._base else target_share
            self.emit(
                f"{b.token:>6} | {b.amount:>17.8f} | {b.value_in_base:>13.2f} | "
                f"{b.value_in_reference:>13.2f} | {b.percent_of_base_value:>6.2f}% | "
                f"{target:>6.2f}%"
            )
        self.emit(
            "|".join(
                ["-" * (widths[0] + 1)]
                + ["-" * (w + 2) for w in widths[1:-1]]
                + ["-" * (widths[-1] + 1)]
            )
        )
        total_base = sum((b.value_in_base for b in balances), Decimal("0"))
        total_reference = sum((b.value_in_reference for b in balances), Decimal("0"))
        total_share = sum((b.percent_of_base_value for b in balances), Decimal("0"))
        self.emit(
            f"{'':>6} | {'Total:':>17} | {total_base:>13.2f} | "
            f"{total_reference:>13.2f} | {total_share:>6.2f}%"
        )
        self.emit()

    def rebalance(self, plan: RebalancePlan) -> None:
        self.emit("Rebalancing:")
        self.emit()

        lowest = plan.lowest
        if lowest.percent_of_base_value < plan.buy_threshold:
            self.emit(
                f"{lowest.token}: {lowest.percent_of_base_value:.2f}% is below "
                f"the threshold: {plan.buy_threshold:.2f}%"
            )
            if plan.buy_amount > 0:
                self.emit(f" => buying {lowest.token} for {plan.buy_amount} {self._base}")
            else:
                self.emit(" => amount rounds to 0, skipping")
        else:
            self.emit(
                f"{lowest.token}: {lowest.percent_of_base_value:.2f}% is above "
                f"the threshold: {plan.buy_threshold:.2f}%"
            )
            self.emit(" => doing nothing")
        self.emit()

        highest = plan.highest
        if highest.percent_of_base_value > plan.sell_threshold:
            self.emit(
                f"{highest.token}: {highest.percent_of_base_value:.2f}% is above "
                f"the threshold: {plan.sell_threshold:.2f}%"
            )
            if plan.sell_amount > 0:
                self.emit(f" => selling {highest.token} for {plan.sell_amount} {self._base}")
            else:
                self.emit(" => amount rounds to 0, skipping")
        else:
            self.emit(
                f"{highest.token}: {highest.percent_of_base_value:.2f}% is below "
                f"the threshold: {plan.sell_threshold:.2f}%"
            )
            self.emit(" => doing nothing")
        self.emit()

    def trades(self, result: ReconcileResult) -> None:
        self.emit("Trades:")
        self.emit()
        for t in result.trades:
            marker = "✓" if t.was_successful else "✗"
            self.emit(
                f"{marker} {t.swap_id}: {t.amount_in:.8f} {t.token_in} -> "
                f"{t.amount_out:.8f} {t.token_out}"
            )
        for receipt, error in result.failures:
            self.emit(f"✗ {receipt.swap_id}: {error}")
        self.emit()
