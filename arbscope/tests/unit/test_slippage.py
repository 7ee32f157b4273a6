"""
ARBSCOPE - Tests for Slippage Engine and History
"""
import pytest
from datetime import timedelta

from arbscope.slippage.engine import SlippageEngine
from arbscope.slippage.history import SlippageHistory, SlippageObservation, history_key
from arbscope.data.models import (
    OrderBook, OrderBookLevel, Ticker, TradeSide, VolatilityLevel,
)
from arbscope.tests.conftest import FIXED_NOW


def _obs(slippage, at=FIXED_NOW, size=1.0):
    return SlippageObservation(timestamp=at, slippage=slippage, trade_size=size, fill_rate=1.0)


# ─── Order Book Simulation ──────────────────────────────────────

class TestSimulate:
    def test_buy_walks_asks(self, store, simple_book):
        est = SlippageEngine(store=store).simulate(simple_book, 2.0, TradeSide.BUY)
        assert est.avg_execution_price == pytest.approx(100.5)
        assert est.best_price == 100.0
        assert est.slippage == pytest.approx(0.005)
        assert est.fill_rate == 1.0
        assert est.filled_volume == 2.0
        assert not est.low_confidence

    def test_sell_walks_bids(self, store, simple_book):
        est = SlippageEngine(store=store).simulate(simple_book, 2.0, TradeSide.SELL)
        assert est.avg_execution_price == pytest.approx(98.5)
        assert est.slippage == pytest.approx(0.5 / 99)

    def test_single_level_fill_has_no_slippage(self, store, simple_book):
        est = SlippageEngine(store=store).simulate(simple_book, 0.5, TradeSide.BUY)
        assert est.slippage == 0.0
        assert est.fill_rate == 1.0

    def test_partial_fill(self, store, simple_book):
        est = SlippageEngine(store=store).simulate(simple_book, 5.0, TradeSide.BUY)
        assert est.fill_rate == pytest.approx(0.6)
        assert est.avg_execution_price == pytest.approx(101.0)
        assert est.slippage == pytest.approx(0.01)

    def test_empty_book_defaults(self, store, empty_book):
        est = SlippageEngine(store=store).simulate(empty_book, 1.0, TradeSide.BUY)
        assert est.slippage == 0.001
        assert est.fill_rate == 0.5
        assert est.low_confidence

    def test_missing_book_or_size_defaults(self, store, simple_book):
        engine = SlippageEngine(store=store)
        assert engine.simulate(None, 1.0, TradeSide.BUY).low_confidence
        assert engine.simulate(simple_book, 0.0, TradeSide.BUY).low_confidence
        assert engine.simulate(simple_book, -1.0, TradeSide.SELL).low_confidence

    def test_zero_volume_levels_skipped(self, store):
        book = OrderBook(exchange="kraken", symbol="ETH/USDT",
                         asks=[OrderBookLevel(price=10.0, volume=0.0),
                               OrderBookLevel(price=11.0, volume=5.0)])
        est = SlippageEngine(store=store).simulate(book, 1.0, TradeSide.BUY)
        assert est.avg_execution_price == pytest.approx(11.0)
        assert est.fill_rate == 1.0


# ─── Adjustment Factors ─────────────────────────────────────────

class TestFactors:
    def test_exchange_factor(self, store):
        engine = SlippageEngine(store=store)
        assert engine.exchange_factor("binance") == 0.85
        assert engine.exchange_factor("gateio") == 1.15
        assert engine.exchange_factor("somewhere") == 1.0

    def test_hour_factor_wraps(self, store):
        engine = SlippageEngine(store=store)
        assert engine.hour_factor(12) == 0.85
        assert engine.hour_factor(2) == 1.3
        assert engine.hour_factor(26) == engine.hour_factor(2)

    def test_volatility_factor(self, store):
        engine = SlippageEngine(store=store)
        assert engine.volatility_factor(None) == 1.0
        assert engine.volatility_factor(VolatilityLevel.VERY_LOW) == 0.8
        assert engine.volatility_factor(VolatilityLevel.VERY_HIGH) == 1.8

    @pytest.mark.parametrize("last,expected", [
        (100.5, 1.0), (101.5, 1.1), (103.0, 1.2), (106.0, 1.5), (94.0, 1.5),
    ])
    def test_momentum_factor(self, store, last, expected):
        ticker = Ticker(exchange="binance", symbol="BTC/USDT", last_price=last, open_price=100.0)
        assert SlippageEngine(store=store).momentum_factor(ticker) == expected

    def test_momentum_without_open(self, store):
        engine = SlippageEngine(store=store)
        assert engine.momentum_factor(None) == 1.0
        ticker = Ticker(exchange="binance", symbol="BTC/USDT", last_price=100.0)
        assert engine.momentum_factor(ticker) == 1.0


# ─── Full Estimate ──────────────────────────────────────────────

class TestEstimate:
    def test_blend_of_simulated_and_adjusted(self, store, simple_book, fixed_now):
        engine = SlippageEngine(store=store)
        est = engine.estimate(simple_book, 2.0, TradeSide.BUY,
                              volatility=VolatilityLevel.MEDIUM, now=fixed_now)
        # adjusted = 0.001 * 0.85 (binance) * 0.85 (12:00 UTC)
        adjusted = 0.001 * 0.85 * 0.85
        assert est.slippage == pytest.approx(0.005 * 0.7 + adjusted * 0.3)
        assert est.fill_rate == 1.0

    def test_partial_fill_penalized(self, store, simple_book, fixed_now):
        engine = SlippageEngine(store=store)
        est = engine.estimate(simple_book, 5.0, TradeSide.BUY,
                              volatility=VolatilityLevel.MEDIUM, now=fixed_now, record=False)
        adjusted = 0.001 * 0.85 * 0.85 * (1 + 0.4 * 2)
        assert est.slippage == pytest.approx(0.01 * 0.7 + adjusted * 0.3)
        assert est.fill_rate == pytest.approx(0.6)

    def test_illiquid_asset_scales_simulated(self, store, fixed_now):
        book = OrderBook(exchange="binance", symbol="NEW/USDT",
                         asks=[OrderBookLevel(price=100.0, volume=1.0),
                               OrderBookLevel(price=101.0, volume=1.0)])
        est = SlippageEngine(store=store).estimate(
            book, 2.0, TradeSide.BUY, volatility=VolatilityLevel.MEDIUM,
            now=fixed_now, record=False,
        )
        adjusted = 0.001 * 0.85 * 0.85
        assert est.slippage == pytest.approx(0.005 / 0.75 * 0.7 + adjusted * 0.3)

    def test_capped(self, store, fixed_now):
        book = OrderBook(exchange="binance", symbol="BTC/USDT",
                         asks=[OrderBookLevel(price=100.0, volume=1.0),
                               OrderBookLevel(price=200.0, volume=1.0)])
        engine = SlippageEngine(store=store)
        normal = engine.estimate(book, 2.0, TradeSide.BUY, volatility=VolatilityLevel.HIGH,
                                 now=fixed_now, record=False)
        wild = engine.estimate(book, 2.0, TradeSide.BUY, volatility=VolatilityLevel.VERY_HIGH,
                               now=fixed_now, record=False)
        assert normal.slippage == pytest.approx(0.05)
        assert wild.slippage == pytest.approx(0.08)

    def test_never_below_adjusted_base(self, store, simple_book, fixed_now):
        est = SlippageEngine(store=store).estimate(
            simple_book, 0.5, TradeSide.BUY, volatility=VolatilityLevel.VERY_HIGH,
            now=fixed_now, record=False,
        )
        assert est.slippage >= 0.001 * 0.85 * 0.85 * 1.8

    def test_missing_book_still_estimates(self, store, fixed_now):
        est = SlippageEngine(store=store).estimate(
            None, 1.0, TradeSide.SELL, exchange="kraken", symbol="BTC/USDT",
            now=fixed_now, record=False,
        )
        assert est.low_confidence
        assert 0 < est.slippage <= 0.05

    def test_bad_input_degrades_to_default(self, store, simple_book, fixed_now):
        est = SlippageEngine(store=store).estimate(
            simple_book, 1.0, TradeSide.BUY, volatility="bogus", now=fixed_now,
        )
        assert est.slippage == 0.001
        assert est.low_confidence
        assert store.stats["total_observations"] == 0

    def test_records_observation(self, store, simple_book, fixed_now):
        engine = SlippageEngine(store=store)
        est = engine.estimate(simple_book, 2.0, TradeSide.BUY, now=fixed_now)
        history = store.get_history("binance_BTC_buy")
        assert history.count == 1
        assert history.observations[0].slippage == est.slippage

    def test_record_disabled(self, store, simple_book, fixed_now):
        SlippageEngine(store=store).estimate(simple_book, 2.0, TradeSide.BUY,
                                             now=fixed_now, record=False)
        assert store.stats["slippage_histories"] == 0


# ─── Learning Loop ──────────────────────────────────────────────

class TestLearning:
    def test_empty_history_uses_default(self, store, fixed_now):
        assert SlippageEngine(store=store).learned_base("binance_BTC_buy", fixed_now) == 0.001

    def test_fresh_history_shifts_base(self, store, fixed_now):
        for _ in range(10):
            store.record_observation("binance_BTC_buy", _obs(0.01))
        # confidence 10/50 = 0.2
        learned = SlippageEngine(store=store).learned_base("binance_BTC_buy", fixed_now)
        assert learned == pytest.approx(0.01 * 0.2 + 0.001 * 0.8)

    def test_stale_history_ignored(self, store, fixed_now):
        store.record_observation("binance_BTC_buy", _obs(0.02, at=fixed_now - timedelta(hours=2)))
        assert SlippageEngine(store=store).learned_base("binance_BTC_buy", fixed_now) == 0.001

    def test_trade_execution_feedback(self, store):
        engine = SlippageEngine(store=store)
        engine.record_pending_trade("t-1", "Kraken", "ETH/USDT", TradeSide.SELL, 2.0, 0.002)
        assert store.stats["pending_trades"] == 1

        error = engine.record_trade_execution("t-1", 0.003, fill_rate=0.9)
        assert error == pytest.approx(0.001)
        assert store.stats["pending_trades"] == 0

        history = store.get_history("kraken_ETH_sell")
        assert history.count == 1
        assert history.observations[0].fill_rate == 0.9
        assert history.observations[0].trade_size == 2.0

    def test_unknown_trade_ignored(self, store):
        assert SlippageEngine(store=store).record_trade_execution("missing", 0.01) is None
        assert store.stats["slippage_histories"] == 0

    def test_negative_actual_floored(self, store):
        engine = SlippageEngine(store=store)
        engine.record_pending_trade("t-2", "binance", "BTC/USDT", TradeSide.BUY, 1.0, 0.001)
        error = engine.record_trade_execution("t-2", -0.002)
        assert error == pytest.approx(-0.003)
        assert store.get_history("binance_BTC_buy").observations[0].slippage == 0.0


# ─── History ────────────────────────────────────────────────────

class TestSlippageHistory:
    def test_key_format(self):
        assert history_key("Gate.io", "ETH/USDT", TradeSide.SELL) == "gateio_ETH_sell"
        assert history_key("binance", "SOLUSDT", "buy") == "binance_SOL_buy"

    def test_append_is_immutable(self):
        empty = SlippageHistory()
        updated = empty.append(_obs(0.01))
        assert empty.count == 0
        assert updated.count == 1
        assert updated.last_updated == FIXED_NOW

    def test_capacity_and_means(self):
        history = SlippageHistory(capacity=3, short_term_window=2)
        for value in (1.0, 2.0, 3.0, 4.0, 5.0):
            history = history.append(_obs(value))
        assert history.count == 3
        assert history.long_term_mean == pytest.approx(4.0)
        assert history.short_term_mean == pytest.approx(4.5)
        assert history.predicted_slippage(3600, 0.001, FIXED_NOW) == pytest.approx(4.35)

    def test_confidence_capped(self):
        history = SlippageHistory(capacity=10)
        for _ in range(5):
            history = history.append(_obs(0.001))
        assert history.confidence == pytest.approx(0.5)
        for _ in range(5):
            history = history.append(_obs(0.001))
        assert history.confidence == pytest.approx(0.9)

    def test_staleness(self):
        history = SlippageHistory().append(_obs(0.004))
        assert not history.is_stale(3600, FIXED_NOW + timedelta(minutes=30))
        assert history.is_stale(3600, FIXED_NOW + timedelta(hours=2))
        assert history.predicted_slippage(3600, 0.001, FIXED_NOW + timedelta(hours=2)) == 0.001
        assert SlippageHistory().is_stale(3600, FIXED_NOW)

    def test_store_sweep_evicts_stale(self, store):
        store.record_observation("binance_BTC_buy", _obs(0.002))
        store.record_observation("kraken_BTC_sell", _obs(0.002, at=FIXED_NOW + timedelta(hours=2)))
        result = store.sweep(now=FIXED_NOW + timedelta(hours=2))
        assert result["histories_evicted"] == 1
        assert store.get_history("binance_BTC_buy").count == 0
        assert store.get_history("kraken_BTC_sell").count == 1
