"""Abstract DEX client interface.

Defines the contract for quote, balance and swap access. The decision engine
depends only on this interface, keeping DEX-specific details (signing, wire
format, retries) inside concrete implementations.
"""

from abc import ABC, abstractmethod

from rebalancer.models import Balance, SwapAmount, SwapQuote, SwapReceipt


class DexClient(ABC):
    """Abstract base class for DEX clients."""

    @property
    @abstractmethod
    def wallet_address(self) -> str:
        """Identifier of the wallet whose balances are managed."""
        ...

    @abstractmethod
    async def fetch_swap_price(
        self, token_in: str, token_out: str, amount: SwapAmount
    ) -> SwapQuote:
        """Quote a swap without executing it.

        Exactly one side of the swap is fixed by ``amount`` (ExactIn or ExactOut).

        Raises:
            DexError: If the pair cannot be quoted.
        """
        ...

    @abstractmethod
    async def fetch_balances(self) -> list[Balance]:
        """Fetch current wallet balances."""
        ...

    @abstractmethod
    async def swap(
        self, token_in: str, token_out: str, amount: SwapAmount
    ) -> SwapReceipt:
        """Execute a swap and return the requested amounts.

        Settled amounts can differ; callers reconcile from balance deltas.

        Raises:
            DexError: If the swap is rejected.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        ...
