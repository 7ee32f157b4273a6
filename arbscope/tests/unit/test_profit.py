"""
ARBSCOPE - Tests for Profit Engine and Fee Tables
"""
import pytest

from arbscope.profit.engine import ProfitEngine, MINUTES_PER_YEAR
from arbscope.profit import fees
from arbscope.data.models import VolatilityLevel


class TestBasicProfit:
    def test_gap_without_fees(self):
        assert ProfitEngine.basic_profit_pct(10, 11, 0, 0) == pytest.approx(10.0)
        assert ProfitEngine.basic_profit_pct(11, 10, 0, 0) == pytest.approx(-9.0909, abs=1e-4)

    def test_fees_on_both_legs(self):
        # cost 100.1, proceeds 100.899
        assert ProfitEngine.basic_profit_pct(100, 101, 0.001, 0.001) == pytest.approx(0.799 / 100.1 * 100)

    def test_invalid_prices(self):
        assert ProfitEngine.basic_profit_pct(0, 101, 0.001, 0.001) == 0.0
        assert ProfitEngine.basic_profit_pct(100, -1, 0.001, 0.001) == 0.0


class TestSlippageAdjustedProfit:
    def test_prices_move_against_trader(self):
        engine = ProfitEngine()
        adjusted = engine.slippage_adjusted_profit_pct(100, 101, 0, 0, 0.001, 0.001)
        assert adjusted == pytest.approx((100.899 - 100.1) / 100.1 * 100)
        assert adjusted < ProfitEngine.basic_profit_pct(100, 101, 0, 0)

    def test_partial_fill_haircut(self):
        engine = ProfitEngine()
        full = engine.slippage_adjusted_profit_pct(100, 101, 0, 0, 0, 0)
        assert engine.slippage_adjusted_profit_pct(100, 101, 0, 0, 0, 0, 0.9, 1.0) == pytest.approx(full * 0.8)
        assert engine.slippage_adjusted_profit_pct(100, 101, 0, 0, 0, 0, 1.0, 0.2) == pytest.approx(full * 0.5)
        assert engine.slippage_adjusted_profit_pct(100, 101, 0, 0, 0, 0, 0.96, 1.0) == pytest.approx(full)


class TestTimeAdjustedProfit:
    def test_instant_execution_unchanged(self):
        assert ProfitEngine().time_adjusted_profit(1.0, 0, VolatilityLevel.MEDIUM) == pytest.approx(1.0)

    def test_decay_value(self):
        result = ProfitEngine().time_adjusted_profit(1.0, 10, VolatilityLevel.MEDIUM)
        assert result == pytest.approx(1.0 * (1 - 10 / 1440) - 15.0 / 365 / 24 * 10)

    def test_monotonic_in_time_and_volatility(self):
        engine = ProfitEngine()
        assert (engine.time_adjusted_profit(1.0, 5, VolatilityLevel.MEDIUM)
                > engine.time_adjusted_profit(1.0, 15, VolatilityLevel.MEDIUM))
        assert (engine.time_adjusted_profit(1.0, 5, VolatilityLevel.LOW)
                > engine.time_adjusted_profit(1.0, 5, VolatilityLevel.VERY_HIGH))


class TestFeeWaterfall:
    def test_no_fees(self):
        result = ProfitEngine().comprehensive_arbitrage_profit(1000, 100, 110, 0, 0)
        assert result.absolute_profit == pytest.approx(100.0)
        assert result.percentage_profit == pytest.approx(10.0)
        assert result.profit_per_unit == pytest.approx(0.1)

    def test_step_order(self):
        waterfall = ProfitEngine().fee_waterfall(1000, 100, 110, 0.001, 0.001, 1.0, 0.5, 0.0)
        names = [s.name for s in waterfall.steps]
        assert names == ["initial", "after_buy", "after_withdrawal",
                         "after_network", "after_deposit", "final"]
        quantities = [s.quantity for s in waterfall.steps]
        assert quantities[1] == pytest.approx(9.99)
        assert quantities[2] == pytest.approx(8.99)
        assert quantities[3] == pytest.approx(8.49)
        assert quantities[4] == pytest.approx(8.49)
        assert quantities[5] == pytest.approx(8.49 * 110 * 0.999)
        assert waterfall.steps[0].unit == "quote"
        assert waterfall.steps[2].unit == "asset"

    def test_transfer_fees_cannot_go_negative(self):
        waterfall = ProfitEngine().fee_waterfall(100, 100, 110, 0, 0, withdrawal_fee=5.0)
        assert waterfall.steps[-1].quantity == 0.0
        assert waterfall.result.percentage_profit == pytest.approx(-100.0)

    def test_invalid_input(self):
        waterfall = ProfitEngine().fee_waterfall(0, 100, 110, 0, 0)
        assert waterfall.steps == []
        assert waterfall.result.absolute_profit == 0.0

    def test_transfer_fees_for(self):
        result = ProfitEngine().transfer_fees_for("BTC/USDT", "kraken", "binance")
        assert result == {"withdrawal_fee": 0.0002, "network_fee": 0.0001, "deposit_fee": 0.0}


class TestDerivedMetrics:
    def test_annualized_edge_cases(self):
        engine = ProfitEngine()
        assert engine.annualized_return(1.0, 0) == 0.0
        assert engine.annualized_return(-100.0, 5) == -1.0
        assert engine.annualized_return(1.0, 1) == engine.settings.annualized_cap

    def test_annualized_one_trade_per_year(self):
        assert ProfitEngine().annualized_return(0.01, MINUTES_PER_YEAR) == pytest.approx(0.0001)

    def test_annualized_compounds(self):
        engine = ProfitEngine()
        assert engine.annualized_return(0.01, MINUTES_PER_YEAR / 2) == pytest.approx(1.0001 ** 2 - 1)

    def test_roi_efficiency(self):
        assert ProfitEngine.roi_efficiency(0.5, 30) == pytest.approx(1.0)
        assert ProfitEngine.roi_efficiency(0.5, 0) == 0.0

    def test_risk_adjusted_return(self):
        engine = ProfitEngine()
        assert engine.risk_adjusted_return(1.02, VolatilityLevel.MEDIUM) == pytest.approx(1.0)
        assert engine.risk_adjusted_return(1.52, VolatilityLevel.VERY_HIGH) == pytest.approx(1.0)
        assert (engine.risk_adjusted_return(1.0, VolatilityLevel.VERY_LOW)
                > engine.risk_adjusted_return(1.0, VolatilityLevel.HIGH))

    def test_combined_exchange_risk(self):
        assert ProfitEngine.combined_exchange_risk("binance", "gate") == pytest.approx(0.27)
        assert ProfitEngine.combined_exchange_risk("nowhere", "binance") == pytest.approx(0.30)

    def test_opportunity_score(self):
        engine = ProfitEngine()
        assert engine.opportunity_score(5.0, 0, VolatilityLevel.VERY_LOW, 1.0, 0.0) == pytest.approx(100.0)
        assert engine.opportunity_score(0.0, 200, VolatilityLevel.VERY_HIGH, 0.0, 1.0) == 0.0
        assert engine.opportunity_score(1.0, 12, VolatilityLevel.MEDIUM, 0.5, 0.2) == pytest.approx(49.0)

    def test_viability(self):
        engine = ProfitEngine()
        assert engine.is_viable_profit(0.05)
        assert not engine.is_viable_profit(0.049)


class TestFeeTables:
    def test_withdrawal_fee(self):
        assert fees.withdrawal_fee("BTC", "kraken") == 0.0002
        assert fees.withdrawal_fee("ETH/USDT", "okx") == 0.005
        assert fees.withdrawal_fee("DOGE", "binance") == fees.FALLBACK_WITHDRAWAL_FEE

    def test_network_and_deposit(self):
        assert fees.network_fee("ETH") == 0.003
        assert fees.network_fee("NEW") == fees.DEFAULT_NETWORK_FEE
        assert fees.deposit_fee("BTC", "binance") == 0.0

    def test_transfer_cost_pct(self):
        assert fees.transfer_cost_pct("BTC", 0.05) == pytest.approx(1.0)
        assert fees.transfer_cost_pct("BTC", 0) == 0.0
        assert ProfitEngine.transfer_cost_pct("USDT", 1000) == pytest.approx(1.0)
