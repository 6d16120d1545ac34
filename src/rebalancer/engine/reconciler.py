"""Trade reconciliation from wallet balance deltas.

Swap receipts carry requested amounts; what actually settled is read off
the before/after balance snapshots instead.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from rebalancer.exceptions import BalanceNotFoundError
from rebalancer.logging import get_logger
from rebalancer.models import BalanceInfo, SwapReceipt, Trade

logger = get_logger(__name__)


@dataclass
class ReconcileResult:
    """Trades that could be reconciled and the receipts that could not."""

    trades: list[Trade] = field(default_factory=list)
    failures: list[tuple[SwapReceipt, BalanceNotFoundError]] = field(default_factory=list)


def _amount(
    balances: list[BalanceInfo], token: str, snapshot: str, receipt: SwapReceipt
) -> Decimal:
    for balance in balances:
        if balance.token == token:
            return balance.amount
    raise BalanceNotFoundError(
        f"No {snapshot} balance for {token} (swap {receipt.swap_id})", token=token
    )


def reconcile_receipt(
    before: list[BalanceInfo], after: list[BalanceInfo], receipt: SwapReceipt
) -> Trade:
    """Build the settled Trade for one receipt.

    A swap is successful only when token_in went down and token_out went up.
    Anything else is still returned, marked unsuccessful.

    Raises:
        BalanceNotFoundError: If either leg is missing from either snapshot.
    """
    amount_in = _amount(before, receipt.token_in, "before", receipt) - _amount(
        after, receipt.token_in, "after", receipt
    )
    amount_out = _amount(after, receipt.token_out, "after", receipt) - _amount(
        before, receipt.token_out, "before", receipt
    )
    return Trade(
        timestamp=receipt.timestamp,
        swap_id=receipt.swap_id,
        token_in=receipt.token_in,
        amount_in=amount_in,
        token_out=receipt.token_out,
        amount_out=amount_out,
        was_successful=amount_in > 0 and amount_out > 0,
    )


def reconcile(
    before: list[BalanceInfo],
    after: list[BalanceInfo],
    receipts: list[SwapReceipt],
) -> ReconcileResult:
    """Reconcile every receipt, collecting per-receipt failures instead of stopping."""
    result = ReconcileResult()
    for receipt in receipts:
        try:
            trade = reconcile_receipt(before, after, receipt)
        except BalanceNotFoundError as e:
            logger.error(
                "reconcile_failed",
                swap_id=receipt.swap_id,
                token=e.token,
                error=str(e),
            )
            result.failures.append((receipt, e))
            continue

        if not trade.was_successful:
            logger.warning(
                "swap_not_settled",
                swap_id=trade.swap_id,
                amount_in=str(trade.amount_in),
                amount_out=str(trade.amount_out),
            )
        result.trades.append(trade)
    return result
