"""Balance valuation into base-token and reference units.

A pure function of (balances, prices, rate): identical inputs always produce
identical BalanceInfo lists.
"""

from dataclasses import replace
from decimal import Decimal

from rebalancer.exceptions import MissingReferencePriceError
from rebalancer.models import Balance, BalanceInfo, PricePoint

_ONE = Decimal("1")
_HUNDRED = Decimal("100")


def find_reference_rate(prices: list[PricePoint], base: str, reference: str) -> Decimal:
    """Return how many reference units one base token is worth.

    Raises:
        MissingReferencePriceError: If no base -> reference sample exists.
    """
    point = _find_price(prices, base, reference)
    if point is None:
        raise MissingReferencePriceError(
            f"No {base}/{reference} price available", token=base
        )
    return point.price


def _find_price(prices: list[PricePoint], token_in: str, token_out: str) -> PricePoint | None:
    return next(
        (p for p in prices if p.token_in == token_in and p.token_out == token_out), None
    )


def _value(
    token: str,
    balance: Balance | None,
    price_in_base: Decimal,
    price_in_reference: Decimal,
) -> BalanceInfo:
    # A tracked token with no holdings still takes part, at 0%.
    amount = balance.amount if balance is not None else Decimal("0")
    decimals = balance.decimals if balance is not None else 0
    return BalanceInfo(
        token=token,
        amount=amount,
        decimals=decimals,
        price_in_base=price_in_base,
        price_in_reference=price_in_reference,
        value_in_base=amount * price_in_base,
        value_in_reference=amount * price_in_reference,
    )


def build_balance_infos(
    balances: list[Balance],
    prices: list[PricePoint],
    base_to_reference_rate: Decimal,
    *,
    base: str,
    reference: str,
    tracked: list[str],
) -> list[BalanceInfo]:
    """Value the base token and every priced tracked token.

    Tracked tokens without a price sample this cycle are left out: they
    cannot be valued, so they cannot be rebalanced either. Shares are
    computed in a second pass over the included entries and sum to 100.

    Args:
        balances: Wallet snapshot.
        prices: This cycle's price samples.
        base_to_reference_rate: Reference units per base token.
        base: Base token symbol.
        reference: Reference token symbol.
        tracked: Tracked token symbols, in report order.

    Returns:
        BalanceInfo list: base token first, then tracked tokens in order.

    Raises:
        MissingReferencePriceError: If ``prices`` has no base -> reference sample.
    """
    by_token = {b.token: b for b in balances}

    find_reference_rate(prices, base, reference)
    infos = [_value(base, by_token.get(base), _ONE, base_to_reference_rate)]

    for token in tracked:
        in_base = _find_price(prices, token, base)
        if in_base is not None:
            price_in_base = in_base.price
            price_in_reference = in_base.price * base_to_reference_rate
        else:
            in_reference = _find_price(prices, token, reference)
            if in_reference is None:
                continue
            price_in_reference = in_reference.price
            price_in_base = in_reference.price / base_to_reference_rate
        infos.append(_value(token, by_token.get(token), price_in_base, price_in_reference))

    total = sum((i.value_in_base for i in infos), Decimal("0"))
    if total == 0:
        return infos
    return [
        replace(i, percent_of_base_value=i.value_in_base / total * _HUNDRED) for i in infos
    ]
