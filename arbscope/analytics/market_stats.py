"""
ARBSCOPE - Market Statistics
Volatility and liquidity estimators over ticker, candle and order-book snapshots.

All estimators are pure functions of their inputs apart from the explicit
TTL caches held by the MarketStateStore.
"""
import math
from typing import Optional, List

import numpy as np

from arbscope.data.models import Ticker, OrderBook, Candle, VolatilityLevel
from arbscope.data.adapters.base import candles_to_dataframe
from arbscope.data.cache.market_cache import MarketStateStore, get_store
from arbscope.analytics.exchange_profiles import asset_liquidity, default_asset_volatility
from arbscope.config.settings import get_settings, MarketStatsSettings
from arbscope.utils.logger import get_logger
from arbscope.utils.helpers import clamp, safe_divide, extract_base_asset, normalize_exchange

logger = get_logger("market_stats")

NEUTRAL_SCORE = 0.5


class MarketStatistics:
    """Volatility classification, candle volatility, liquidity and depth scoring."""

    def __init__(
        self,
        store: Optional[MarketStateStore] = None,
        settings: Optional[MarketStatsSettings] = None,
    ):
        self.store = store or get_store()
        self.settings = settings or get_settings().market

    # ─── Volatility ─────────────────────────────────────────────

    def volatility_from_ticker(self, ticker: Optional[Ticker]) -> float:
        """24h range as a percentage of the low, or the default when unknown."""
        if ticker is None or ticker.high_price is None or ticker.low_price is None:
            return self.settings.default_volatility_pct
        if ticker.low_price <= 0 or ticker.high_price < ticker.low_price:
            return self.settings.default_volatility_pct
        return (ticker.high_price - ticker.low_price) / ticker.low_price * 100

    def classify_volatility(self, pct: float) -> VolatilityLevel:
        very_low, low, medium, high = self.settings.volatility_bucket_bounds
        if pct < very_low:
            return VolatilityLevel.VERY_LOW
        elif pct < low:
            return VolatilityLevel.LOW
        elif pct < medium:
            return VolatilityLevel.MEDIUM
        elif pct < high:
            return VolatilityLevel.HIGH
        return VolatilityLevel.VERY_HIGH

    def asset_volatility_level(self, asset: str, ticker: Optional[Ticker] = None) -> VolatilityLevel:
        """Cached volatility bucket for an asset."""
        asset = extract_base_asset(asset)
        cached = self.store.get_volatility(asset)
        if cached is not None:
            return cached
        level = self.classify_volatility(self.volatility_from_ticker(ticker))
        # Only a real ticker range is worth caching
        if ticker is not None:
            self.store.put_volatility(asset, level)
        return level

    def clear_volatility_cache(self) -> None:
        self.store.clear_volatility()
        logger.info("volatility_cache_cleared")

    def volatility_from_candles(self, candles: Optional[List[Candle]]) -> float:
        """
        Daily volatility from hourly closes: population std of simple
        returns scaled by sqrt(24), clamped to the configured band.
        """
        s = self.settings
        if not candles or len(candles) < 2:
            return s.candle_vol_default
        df = candles_to_dataframe(candles)
        returns = df["close"].astype(float).pct_change().dropna()
        returns = returns.replace([np.inf, -np.inf], np.nan).dropna()
        if returns.empty:
            return s.candle_vol_default
        daily = float(returns.std(ddof=0)) * math.sqrt(s.candle_vol_annualizer)
        return clamp(daily, s.candle_vol_min, s.candle_vol_max)

    def default_asset_volatility(self, asset: str) -> float:
        return default_asset_volatility(extract_base_asset(asset))

    def volatility_score_from_candles(self, candles: Optional[List[Candle]]) -> float:
        """1.0 for calm candles, approaching 0.1 as average ranges widen."""
        if not candles:
            return NEUTRAL_SCORE
        s = self.settings
        avg_range = float(np.mean([c.price_range_percent for c in candles]))
        return 1.0 - clamp(avg_range / s.candle_range_divisor, s.candle_range_floor, s.candle_range_ceil)

    def volatility_score_from_pct(self, pct: float) -> float:
        return 1.0 - clamp(pct / self.settings.ticker_score_ceiling_pct, 0.0, 1.0)

    # ─── Liquidity ──────────────────────────────────────────────

    def depth_factor(self, book: Optional[OrderBook]) -> float:
        if book is None or book.is_empty:
            return NEUTRAL_SCORE
        n = self.settings.depth_levels
        volume = sum(l.volume for l in book.bids[:n]) + sum(l.volume for l in book.asks[:n])
        return clamp(math.log10(1 + volume) / self.settings.depth_log_divisor, 0.1, 1.0)

    def spread_factor(self, buy_book: Optional[OrderBook], sell_book: Optional[OrderBook]) -> float:
        """Executable cross-book spread: buy venue best ask against sell venue best bid."""
        if buy_book is None or sell_book is None:
            return NEUTRAL_SCORE
        ask, bid = buy_book.best_ask, sell_book.best_bid
        if bid is None or ask is None or bid <= 0 or ask <= 0:
            return NEUTRAL_SCORE
        mid = (bid + ask) / 2
        spread_pct = abs(ask - bid) / mid * 100
        return self._spread_to_factor(spread_pct)

    def _spread_to_factor(self, spread_pct: float) -> float:
        tight, wide = self.settings.spread_tight_pct, self.settings.spread_wide_pct
        if spread_pct <= tight:
            return 1.0
        if spread_pct >= wide:
            return 0.1
        return 1.0 - (spread_pct - tight) / (wide - tight) * 0.9

    def liquidity_score(
        self,
        buy_book: Optional[OrderBook],
        sell_book: Optional[OrderBook],
        asset: str,
        use_cache: bool = True,
    ) -> float:
        """Blend of asset base liquidity, per-side depth and cross-book spread."""
        s = self.settings
        asset = extract_base_asset(asset)
        key = None
        if use_cache and buy_book is not None and sell_book is not None:
            key = f"{normalize_exchange(buy_book.exchange)}:{normalize_exchange(sell_book.exchange)}:{asset}"
            cached = self.store.get_liquidity(key)
            if cached is not None:
                return cached

        base = asset_liquidity(asset)
        if buy_book is not None and sell_book is not None:
            score = (
                base * s.liquidity_base_weight
                + self.depth_factor(buy_book) * s.liquidity_buy_depth_weight
                + self.depth_factor(sell_book) * s.liquidity_sell_depth_weight
                + self.spread_factor(buy_book, sell_book) * s.liquidity_spread_weight
            )
        else:
            book = buy_book or sell_book
            spread = NEUTRAL_SCORE
            if book is not None and book.spread_pct is not None:
                spread = self._spread_to_factor(book.spread_pct)
            score = base * 0.4 + self.depth_factor(book) * 0.4 + spread * 0.2

        score = clamp(score, 0.1, 1.0)
        if key is not None:
            self.store.put_liquidity(key, score)
        return score

    def market_depth_score(self, buy_book: Optional[OrderBook], sell_book: Optional[OrderBook]) -> float:
        """Average notional within the configured band of mid, normalized."""
        depths = [
            b.depth_within(self.settings.market_depth_range_pct)
            for b in (buy_book, sell_book)
            if b is not None and not b.is_empty
        ]
        if not depths:
            return NEUTRAL_SCORE
        avg = safe_divide(sum(depths), len(depths))
        return clamp(avg / self.settings.market_depth_normalizer, 0.1, 1.0)


# Singleton
_stats: Optional[MarketStatistics] = None


def get_market_statistics() -> MarketStatistics:
    global _stats
    if _stats is None:
        _stats = MarketStatistics()
    return _stats
