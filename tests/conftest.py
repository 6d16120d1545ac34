"""Shared test fixtures for the rebalancer.

The scenario data mirrors a recorded production snapshot: 75% of value in
GALA and five tracked tokens sitting close to their 5% targets.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from rebalancer.config import RebalanceSettings, TokenSettings
from rebalancer.data.store import InMemoryPriceHistoryStore
from rebalancer.dex.paper_client import PaperDexClient
from rebalancer.models import PricePoint

NOW = datetime(2025, 9, 23, 9, 40, 48, tzinfo=timezone.utc)

SCENARIO_PRICES = {
    ("GALA", "GUSDT"): Decimal("0.01512571"),
    ("GWBTC", "GALA"): Decimal("7308338.81458744"),
    ("GWETH", "GALA"): Decimal("268277.70923854"),
    ("GSOL", "GALA"): Decimal("14227.69516759"),
    ("GWTRX", "GALA"): Decimal("21.73902268"),
    ("GOSMI", "GALA"): Decimal("0.74017276"),
}

SCENARIO_BALANCES = {
    "GALA": Decimal("15358"),
    "GWBTC": Decimal("0.00014137"),
    "GWETH": Decimal("0.00385622"),
    "GSOL": Decimal("0.07231013"),
    "GWTRX": Decimal("47.050914"),
    "GOSMI": Decimal("1383.58228654"),
}


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def token_settings() -> TokenSettings:
    return TokenSettings(
        base="GALA",
        reference="GUSDT",
        tracked=["GWBTC", "GWETH", "GSOL", "GWTRX", "GOSMI"],
    )


@pytest.fixture
def rebalance_settings() -> RebalanceSettings:
    """75% base target, 5% tolerance, no volatility widening."""
    return RebalanceSettings(
        target_share_base=Decimal("75"),
        tolerance=Decimal("0.05"),
        volatility_factor=Decimal("0"),
        quote_amount=Decimal("1000"),
    )


@pytest.fixture
def paper_dex() -> PaperDexClient:
    """Paper DEX seeded with the scenario prices and balances."""
    dex = PaperDexClient(wallet_address="eth|test-wallet", clock=fixed_clock)
    for (token_in, token_out), price in SCENARIO_PRICES.items():
        dex.set_price(token_in, token_out, price)
    for token, amount in SCENARIO_BALANCES.items():
        dex.set_balance(token, amount)
    return dex


@pytest.fixture
def history_store() -> InMemoryPriceHistoryStore:
    """Store holding two earlier samples per tracked token within the 24h window."""
    store = InMemoryPriceHistoryStore(clock=fixed_clock)
    for (token_in, token_out), price in SCENARIO_PRICES.items():
        if token_out != "GALA":
            continue
        for hours_ago, factor in ((6, Decimal("0.99")), (3, Decimal("1.01"))):
            store.price_samples.append(
                PricePoint(
                    timestamp=NOW - timedelta(hours=hours_ago),
                    token_in=token_in,
                    token_out=token_out,
                    amount_in=Decimal("1"),
                    amount_out=price * factor,
                    price=price * factor,
                    fee=Decimal("0"),
                )
            )
    return store


@pytest.fixture
def now() -> datetime:
    """The fixed "current time" every fixture clock returns."""
    return NOW


@pytest.fixture
def clock():
    return fixed_clock
