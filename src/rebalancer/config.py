"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from rebalancer.exceptions import ConfigurationError


class TokenSettings(BaseSettings):
    """Token universe: the base token, the reporting unit and the managed basket."""

    model_config = SettingsConfigDict(env_prefix="TOKENS_")

    base: str = "GALA"
    reference: str = "GUSDT"  # USD-pegged, used for reporting only
    tracked: list[str] = ["GWBTC", "GWETH", "GSOL", "GWTRX", "GOSMI"]


class RebalanceSettings(BaseSettings):
    """Rebalancing decision parameters."""

    model_config = SettingsConfigDict(env_prefix="REBALANCE_")

    target_share_base: Decimal = Decimal("75")  # percent of total value held in base
    tolerance: Decimal = Decimal("0.05")  # 5% of the target share
    volatility_factor: Decimal = Decimal("0")  # extra tolerance per unit of std%
    quote_amount: Decimal = Decimal("1000")  # base-token units per price quote


class DexSettings(BaseSettings):
    """DEX connection settings."""

    model_config = SettingsConfigDict(env_prefix="DEX_")

    mode: Literal["paper"] = "paper"
    snapshot_path: str = "data/dex-snapshot.json"
    wallet_address: str = ""


class DatabaseSettings(BaseSettings):
    """Price and trade history storage."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    path: str = "data/rebalancer.db"


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    tokens: TokenSettings = TokenSettings()
    rebalance: RebalanceSettings = RebalanceSettings()
    dex: DexSettings = DexSettings()
    database: DatabaseSettings = DatabaseSettings()


def check_settings(tokens: TokenSettings, rebalance: RebalanceSettings) -> None:
    """Reject settings that make a rebalancing cycle meaningless.

    Raises:
        ConfigurationError: If no tracked tokens are configured, the base token
            is tracked, or share/tolerance values are out of range.
    """
    if not tokens.tracked:
        raise ConfigurationError("At least one tracked token is required")
    if tokens.base in tokens.tracked:
        raise ConfigurationError(
            f"Base token {tokens.base} cannot be a tracked token", token=tokens.base
        )
    if len(set(tokens.tracked)) != len(tokens.tracked):
        raise ConfigurationError("Tracked tokens must be unique")
    if not Decimal("0") <= rebalance.target_share_base < Decimal("100"):
        raise ConfigurationError(
            f"Base target share must be in [0, 100), got {rebalance.target_share_base}"
        )
    if rebalance.tolerance < 0 or rebalance.volatility_factor < 0:
        raise ConfigurationError("Tolerance and volatility factor must be non-negative")
    if rebalance.quote_amount <= 0:
        raise ConfigurationError("Quote amount must be positive")
