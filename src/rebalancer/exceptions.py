"""Custom exceptions for the rebalancer.

Every error raised by the decision engine is fatal to the current cycle.
Each carries the affected token (when there is one) so the orchestrator
can log it alongside the failing phase.
"""


class RebalancerError(Exception):
    """Base exception for all rebalancer errors."""

    def __init__(self, message: str, token: str | None = None) -> None:
        super().__init__(message)
        self.token = token


class MissingDataError(RebalancerError):
    """Raised when no price samples (or no stats) exist for a token."""


class MissingReferencePriceError(RebalancerError):
    """Raised when the base-token to reference-unit price is unavailable."""


class BalanceNotFoundError(RebalancerError):
    """Raised when reconciliation cannot find a before/after balance for a swap leg."""


class ConfigurationError(RebalancerError):
    """Raised when settings or balances make rebalancing impossible."""


class DexError(RebalancerError):
    """Raised when the DEX quote/execution collaborator fails."""
