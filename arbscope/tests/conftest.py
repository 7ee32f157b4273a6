"""
ARBSCOPE - Test Configuration & Fixtures
Shared fixtures for all test modules.
"""
import pytest
import numpy as np
from datetime import datetime, timezone, timedelta

from arbscope.data.models import (
    Ticker, OrderBook, OrderBookLevel, Candle, ArbitrageOpportunity,
)
from arbscope.data.cache.market_cache import MarketStateStore


FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_book(exchange, symbol, mid, levels=10, step=0.0005, volume=2.0):
    """Symmetric book around `mid`, `step` apart as a fraction of mid."""
    bids = [
        OrderBookLevel(price=mid * (1 - step * (i + 1)), volume=volume)
        for i in range(levels)
    ]
    asks = [
        OrderBookLevel(price=mid * (1 + step * (i + 1)), volume=volume)
        for i in range(levels)
    ]
    return OrderBook(exchange=exchange, symbol=symbol, bids=bids, asks=asks, timestamp=FIXED_NOW)


def make_candles(base=100.0, n=24, range_pct=1.0, seed=42):
    np.random.seed(seed)
    closes = base * np.exp(np.cumsum(np.random.normal(0, 0.002, n)))
    candles = []
    for i, close in enumerate(closes):
        low = close * (1 - range_pct / 200)
        high = close * (1 + range_pct / 200)
        candles.append(Candle(
            open=float(close), high=float(high), low=float(low), close=float(close),
            volume=1000.0, timestamp=FIXED_NOW - timedelta(hours=n - i),
        ))
    return candles


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def store():
    """Fresh, isolated state store."""
    return MarketStateStore()


@pytest.fixture
def simple_book():
    """Three-level book with unit volume per level."""
    return OrderBook(
        exchange="binance",
        symbol="BTC/USDT",
        bids=[
            OrderBookLevel(price=99.0, volume=1.0),
            OrderBookLevel(price=98.0, volume=1.0),
            OrderBookLevel(price=97.0, volume=1.0),
        ],
        asks=[
            OrderBookLevel(price=100.0, volume=1.0),
            OrderBookLevel(price=101.0, volume=1.0),
            OrderBookLevel(price=102.0, volume=1.0),
        ],
    )


@pytest.fixture
def empty_book():
    return OrderBook(exchange="binance", symbol="BTC/USDT")


@pytest.fixture
def buy_book():
    return make_book("binance", "BTC/USDT", 50_000.0, volume=3.0)


@pytest.fixture
def sell_book():
    return make_book("kraken", "BTC/USDT", 50_100.0, volume=3.0)


@pytest.fixture
def buy_ticker():
    return Ticker(
        exchange="binance", symbol="BTC/USDT", last_price=50_000.0,
        bid_price=49_975.0, ask_price=50_025.0, high_price=50_800.0,
        low_price=49_500.0, open_price=49_900.0, volume=12_000.0, timestamp=FIXED_NOW,
    )


@pytest.fixture
def sell_ticker():
    return Ticker(
        exchange="kraken", symbol="BTC/USDT", last_price=50_100.0,
        bid_price=50_075.0, ask_price=50_125.0, high_price=50_900.0,
        low_price=49_600.0, open_price=50_000.0, volume=4_000.0, timestamp=FIXED_NOW,
    )


@pytest.fixture
def calm_candles():
    return make_candles(base=50_000.0, range_pct=0.5)


@pytest.fixture
def opportunity(buy_ticker, sell_ticker, buy_book, sell_book, calm_candles):
    """Fully populated BTC opportunity: buy on Binance, sell on Kraken."""
    return ArbitrageOpportunity(
        symbol="BTC/USDT",
        buy_exchange="binance",
        sell_exchange="kraken",
        buy_price=50_000.0,
        sell_price=50_300.0,
        buy_fee=0.001,
        sell_fee=0.001,
        trade_size=1000.0,
        buy_ticker=buy_ticker,
        sell_ticker=sell_ticker,
        buy_order_book=buy_book,
        sell_order_book=sell_book,
        buy_candles=calm_candles,
        sell_candles=calm_candles,
    )


@pytest.fixture
def bare_opportunity():
    """Opportunity with prices only; snapshots must come from adapters."""
    return ArbitrageOpportunity(
        symbol="ETH/USDT",
        buy_exchange="binance",
        sell_exchange="coinbase",
        buy_price=3_000.0,
        sell_price=3_012.0,
    )
