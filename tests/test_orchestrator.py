"""Tests for the rebalancing cycle orchestrator.

Tests verify:
- Recorded production scenario: all tokens within tolerance, no trades
- Fresh samples are persisted before stats are read from the same window
- Underweight token triggers a buy that reconciles as a successful trade
- Buy and sell in one cycle run sequentially, buy first
- DEX failures abort the cycle, are logged with context and re-raised
- Invalid settings are rejected before a cycle starts
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from structlog.testing import capture_logs

from rebalancer.config import RebalanceSettings, TokenSettings
from rebalancer.data.store import InMemoryPriceHistoryStore
from rebalancer.dex.paper_client import PaperDexClient
from rebalancer.engine.decider import round_base_units
from rebalancer.exceptions import ConfigurationError, DexError
from rebalancer.models import TradeSide
from rebalancer.orchestrator import RebalanceCycle


def _cycle(
    dex: PaperDexClient,
    store: InMemoryPriceHistoryStore,
    tokens: TokenSettings,
    rebalance: RebalanceSettings,
) -> RebalanceCycle:
    return RebalanceCycle(dex=dex, store=store, tokens=tokens, rebalance=rebalance)


class TestScenario:
    @pytest.mark.asyncio
    async def test_balanced_portfolio_makes_no_trades(
        self,
        paper_dex: PaperDexClient,
        history_store: InMemoryPriceHistoryStore,
        token_settings: TokenSettings,
        rebalance_settings: RebalanceSettings,
    ) -> None:
        cycle = _cycle(paper_dex, history_store, token_settings, rebalance_settings)

        result = await cycle.run()

        assert result.plan.instructions == []
        assert result.receipts == []
        assert result.trades == []
        assert history_store.trades == []

        assert result.plan.lowest.token == "GWTRX"
        assert result.plan.highest.token == "GWETH"
        assert result.plan.target_share == Decimal("5")

        lines = cycle.report.lines
        assert "1 GALA  =       0.01512571 GUSDT" in lines
        assert "1 GWBTC = 7308338.81458744 GALA  = " in "\n".join(lines)
        assert "GWTRX: 4.99% is above the threshold: 4.75%" in lines
        assert "GWETH: 5.05% is below the threshold: 5.25%" in lines
        assert lines.count(" => doing nothing") == 2
        assert "Trades:" not in lines

    @pytest.mark.asyncio
    async def test_balance_table_values(
        self,
        paper_dex: PaperDexClient,
        history_store: InMemoryPriceHistoryStore,
        token_settings: TokenSettings,
        rebalance_settings: RebalanceSettings,
    ) -> None:
        cycle = _cycle(paper_dex, history_store, token_settings, rebalance_settings)

        result = await cycle.run()

        shares = {
            b.token: f"{b.percent_of_base_value:.2f}" for b in result.balances
        }
        assert shares == {
            "GALA": "74.91",
            "GWBTC": "5.04",
            "GWETH": "5.05",
            "GSOL": "5.02",
            "GWTRX": "4.99",
            "GOSMI": "5.00",
        }
        gala_row = next(line for line in cycle.report.lines if line.startswith("  GALA |"))
        assert "15358.00000000" in gala_row
        assert "74.91%" in gala_row
        assert gala_row.endswith(" 75.00%")

    @pytest.mark.asyncio
    async def test_stats_include_this_cycles_sample(
        self,
        paper_dex: PaperDexClient,
        history_store: InMemoryPriceHistoryStore,
        token_settings: TokenSettings,
        rebalance_settings: RebalanceSettings,
    ) -> None:
        result = await _cycle(
            paper_dex, history_store, token_settings, rebalance_settings
        ).run()

        assert len(history_store.price_samples) == 10 + 6
        assert {s.sample_count for s in result.stats.values()} == {3}

    @pytest.mark.asyncio
    async def test_empty_history_uses_fresh_sample(
        self,
        paper_dex: PaperDexClient,
        clock,
        token_settings: TokenSettings,
        rebalance_settings: RebalanceSettings,
    ) -> None:
        store = InMemoryPriceHistoryStore(clock=clock)

        result = await _cycle(paper_dex, store, token_settings, rebalance_settings).run()

        assert all(s.sample_count == 1 for s in result.stats.values())
        assert all(s.std_dev_percent == 0 for s in result.stats.values())


class TestTrading:
    @pytest.mark.asyncio
    async def test_underweight_token_is_bought(
        self,
        paper_dex: PaperDexClient,
        history_store: InMemoryPriceHistoryStore,
        token_settings: TokenSettings,
        rebalance_settings: RebalanceSettings,
    ) -> None:
        paper_dex.set_balance("GWTRX", Decimal("30"))
        cycle = _cycle(paper_dex, history_store, token_settings, rebalance_settings)

        result = await cycle.run()

        plan = result.plan
        assert plan.lowest.token == "GWTRX"
        assert [i.side for i in plan.instructions] == [TradeSide.BUY]
        expected = round_base_units(
            (plan.target_share - plan.lowest.percent_of_base_value)
            / 100
            * plan.total_base_value
        )
        assert plan.buy_amount == expected > 0

        assert len(result.trades) == 1
        trade = result.trades[0]
        assert trade.swap_id == result.receipts[0].swap_id
        assert trade.token_in == "GALA"
        assert trade.token_out == "GWTRX"
        assert trade.amount_in == plan.buy_amount
        assert trade.amount_out > 0
        assert trade.was_successful is True
        assert history_store.trades == result.trades

        lines = cycle.report.lines
        assert f" => buying GWTRX for {plan.buy_amount} GALA" in lines
        assert any(line.startswith(f"✓ {trade.swap_id}: ") for line in lines)

    @pytest.mark.asyncio
    async def test_buy_then_sell(
        self,
        paper_dex: PaperDexClient,
        history_store: InMemoryPriceHistoryStore,
        token_settings: TokenSettings,
        rebalance_settings: RebalanceSettings,
    ) -> None:
        paper_dex.set_balance("GWTRX", Decimal("30"))
        paper_dex.set_balance("GWBTC", Decimal("0.0003"))

        result = await _cycle(
            paper_dex, history_store, token_settings, rebalance_settings
        ).run()

        assert [i.side for i in result.plan.instructions] == [
            TradeSide.BUY,
            TradeSide.SELL,
        ]
        assert [(r.token_in, r.token_out) for r in result.receipts] == [
            ("GALA", "GWTRX"),
            ("GWBTC", "GALA"),
        ]
        assert len(result.trades) == 2
        assert result.failures == []

    @pytest.mark.asyncio
    async def test_swap_failure_aborts_cycle(
        self,
        paper_dex: PaperDexClient,
        history_store: InMemoryPriceHistoryStore,
        token_settings: TokenSettings,
        rebalance_settings: RebalanceSettings,
    ) -> None:
        paper_dex.set_balance("GWTRX", Decimal("30"))
        paper_dex.swap = AsyncMock(side_effect=DexError("pool paused", token="GWTRX"))  # type: ignore[method-assign]
        samples_before = len(history_store.price_samples)

        with capture_logs() as logs:
            with pytest.raises(DexError):
                await _cycle(
                    paper_dex, history_store, token_settings, rebalance_settings
                ).run()

        failed = [e for e in logs if e["event"] == "cycle_failed"]
        assert len(failed) == 1
        assert failed[0]["token"] == "GWTRX"
        assert failed[0]["error_type"] == "DexError"
        assert history_store.trades == []
        assert len(history_store.price_samples) == samples_before + 6

    @pytest.mark.asyncio
    async def test_quote_failure_aborts_before_trading(
        self,
        paper_dex: PaperDexClient,
        history_store: InMemoryPriceHistoryStore,
        rebalance_settings: RebalanceSettings,
    ) -> None:
        tokens = TokenSettings(base="GALA", reference="GUSDT", tracked=["GWBTC", "GNOPE"])
        paper_dex.swap = AsyncMock()  # type: ignore[method-assign]

        with pytest.raises(DexError):
            await _cycle(paper_dex, history_store, tokens, rebalance_settings).run()

        paper_dex.swap.assert_not_called()


class TestConfiguration:
    def test_base_in_tracked_rejected(
        self,
        paper_dex: PaperDexClient,
        history_store: InMemoryPriceHistoryStore,
        rebalance_settings: RebalanceSettings,
    ) -> None:
        tokens = TokenSettings(base="GALA", reference="GUSDT", tracked=["GALA", "GWBTC"])
        with pytest.raises(ConfigurationError):
            _cycle(paper_dex, history_store, tokens, rebalance_settings)

    def test_no_tracked_tokens_rejected(
        self,
        paper_dex: PaperDexClient,
        history_store: InMemoryPriceHistoryStore,
        rebalance_settings: RebalanceSettings,
    ) -> None:
        tokens = TokenSettings(base="GALA", reference="GUSDT", tracked=[])
        with pytest.raises(ConfigurationError):
            _cycle(paper_dex, history_store, tokens, rebalance_settings)
