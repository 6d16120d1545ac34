"""Paper DEX client with simulated quotes and swaps.

Prices are configured per pair and swaps move virtual balances, so the
rest of the cycle (valuation, reconciliation) sees real balance deltas.
Used by tests and by paper mode, where it is seeded from a JSON snapshot
of previously recorded DEX responses.
"""

import json
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

from rebalancer.dex.client import DexClient
from rebalancer.exceptions import DexError
from rebalancer.logging import get_logger
from rebalancer.models import (
    Balance,
    Clock,
    ExactIn,
    SwapAmount,
    SwapQuote,
    SwapReceipt,
    utc_now,
)

logger = get_logger(__name__)


class PaperDexClient(DexClient):
    """Deterministic in-memory DEX.

    A price set for ``token_in -> token_out`` also answers the reverse pair
    as its reciprocal unless that pair is set explicitly. ``fee`` is the
    fraction of the output kept by the pool when a swap settles.

    Args:
        wallet_address: Reported wallet identifier.
        clock: Source of quote and receipt timestamps.
    """

    def __init__(self, wallet_address: str = "paper-wallet", clock: Clock = utc_now) -> None:
        self._wallet_address = wallet_address
        self._clock = clock
        self._prices: dict[tuple[str, str], Decimal] = {}
        self._fees: dict[tuple[str, str], Decimal] = {}
        self._balances: dict[str, Balance] = {}
        self._swap_count = 0

    @classmethod
    def from_snapshot(
        cls,
        path: str | Path,
        clock: Clock = utc_now,
        wallet_address: str | None = None,
    ) -> "PaperDexClient":
        """Build a client from a JSON snapshot file.

        Expected shape::

            {
                "wallet": "eth|...",
                "prices": {"GALA/GUSDT": "0.01512571", ...},
                "fees": {"GALA/GUSDT": "0.003"},
                "balances": {"GALA": {"amount": "15358", "decimals": 8}, ...}
            }
        """
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise DexError(f"Cannot load DEX snapshot {path}: {e}") from e

        client = cls(
            wallet_address=wallet_address or raw.get("wallet", "paper-wallet"),
            clock=clock,
        )
        fees = raw.get("fees", {})
        for pair, price in raw.get("prices", {}).items():
            token_in, token_out = pair.split("/")
            client.set_price(
                token_in, token_out, Decimal(price), fee=Decimal(fees.get(pair, "0"))
            )
        for token, balance in raw.get("balances", {}).items():
            client.set_balance(
                token, Decimal(balance["amount"]), int(balance.get("decimals", 8))
            )

        logger.info(
            "paper_dex_snapshot_loaded",
            path=str(path),
            pairs=len(client._prices),
            balances=len(client._balances),
        )
        return client

    @property
    def wallet_address(self) -> str:
        return self._wallet_address

    def set_price(
        self, token_in: str, token_out: str, price: Decimal, fee: Decimal = Decimal("0")
    ) -> None:
        """Set how much token_out one token_in buys."""
        self._prices[(token_in, token_out)] = price
        self._fees[(token_in, token_out)] = fee

    def set_balance(self, token: str, amount: Decimal, decimals: int = 8) -> None:
        self._balances[token] = Balance(token=token, amount=amount, decimals=decimals)

    def _rate(self, token_in: str, token_out: str) -> tuple[Decimal, Decimal]:
        pair = (token_in, token_out)
        if pair in self._prices:
            return self._prices[pair], self._fees[pair]
        reverse = (token_out, token_in)
        if reverse in self._prices and self._prices[reverse] > 0:
            return Decimal("1") / self._prices[reverse], self._fees[reverse]
        raise DexError(f"No pool for {token_in}/{token_out}", token=token_in)

    async def fetch_swap_price(
        self, token_in: str, token_out: str, amount: SwapAmount
    ) -> SwapQuote:
        price, fee = self._rate(token_in, token_out)
        if amount.amount <= 0:
            raise DexError(
                f"Swap amount must be positive, got {amount.amount}", token=token_in
            )

        if isinstance(amount, ExactIn):
            amount_in = amount.amount
            amount_out = amount.amount * price
        else:
            amount_out = amount.amount
            amount_in = amount.amount / price

        return SwapQuote(
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            amount_out=amount_out,
            fee=fee,
            timestamp=self._clock(),
        )

    async def fetch_balances(self) -> list[Balance]:
        return list(self._balances.values())

    async def swap(
        self, token_in: str, token_out: str, amount: SwapAmount
    ) -> SwapReceipt:
        """Simulate a swap, settling the output net of the pool fee.

        Raises:
            DexError: If the pair has no price or the wallet cannot cover amount_in.
        """
        quote = await self.fetch_swap_price(token_in, token_out, amount)

        held = self._balances.get(token_in)
        if held is None or held.amount < quote.amount_in:
            raise DexError(
                f"Insufficient {token_in}: need {quote.amount_in}, "
                f"have {held.amount if held else 0}",
                token=token_in,
            )

        settled_out = quote.amount_out * (Decimal("1") - quote.fee)
        self.set_balance(token_in, held.amount - quote.amount_in, held.decimals)
        out_held = self._balances.get(token_out)
        self.set_balance(
            token_out,
            (out_held.amount if out_held else Decimal("0")) + settled_out,
            out_held.decimals if out_held else 8,
        )

        self._swap_count += 1
        swap_id = f"paper_{uuid4().hex[:12]}"

        logger.info(
            "paper_swap_filled",
            swap_id=swap_id,
            token_in=token_in,
            token_out=token_out,
            amount_in=str(quote.amount_in),
            amount_out=str(settled_out),
        )

        return SwapReceipt(
            swap_id=swap_id,
            timestamp=quote.timestamp,
            token_in=token_in,
            token_out=token_out,
            amount_in=quote.amount_in,
            amount_out=quote.amount_out,
        )

    async def close(self) -> None:
        logger.info("paper_dex_closed", swaps=self._swap_count)
