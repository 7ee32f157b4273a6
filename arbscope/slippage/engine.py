"""
ARBSCOPE - Slippage Engine
Order-book depth simulation blended with an adjusted base slippage that
learns from recorded observations per (exchange, asset, side).
"""
from datetime import datetime
from typing import Optional

from arbscope.data.models import (
    OrderBook, Ticker, TradeSide, VolatilityLevel, SlippageEstimate,
)
from arbscope.data.cache.market_cache import MarketStateStore, get_store
from arbscope.slippage.history import SlippageObservation, history_key
from arbscope.analytics.exchange_profiles import (
    EXCHANGE_SLIPPAGE_FACTORS, asset_liquidity, lookup,
)
from arbscope.config.settings import get_settings, SlippageSettings
from arbscope.utils.logger import get_logger
from arbscope.utils.helpers import clamp, safe_divide, utc_now, extract_base_asset

logger = get_logger("slippage_engine")


class SlippageEngine:
    """
    Estimates the percentage price impact of a trade.

    The engine never raises for missing or malformed market data; it
    degrades to the default base slippage and flags the estimate as
    low confidence instead.
    """

    def __init__(
        self,
        store: Optional[MarketStateStore] = None,
        settings: Optional[SlippageSettings] = None,
    ):
        self.store = store or get_store()
        self.settings = settings or get_settings().slippage

    def _default_estimate(self, best_price: Optional[float] = None) -> SlippageEstimate:
        return SlippageEstimate(
            slippage=self.settings.default_slippage,
            fill_rate=self.settings.default_fill_rate,
            best_price=best_price,
            low_confidence=True,
        )

    def simulate(self, book: Optional[OrderBook], trade_size: float, side: TradeSide) -> SlippageEstimate:
        """Walk the book from the best level until `trade_size` base units are filled."""
        if book is None or trade_size is None or trade_size <= 0:
            return self._default_estimate()

        levels = book.levels(TradeSide(side))
        if not levels:
            return self._default_estimate()

        best_price = levels[0].price
        if best_price <= 0:
            return self._default_estimate()

        remaining = trade_size
        filled = 0.0
        cost = 0.0
        for level in levels:
            if level.volume <= 0 or level.price <= 0:
                continue
            take = min(remaining, level.volume)
            filled += take
            cost += take * level.price
            remaining -= take
            if remaining <= trade_size * 1e-12:
                break

        if filled <= 0:
            return self._default_estimate(best_price)

        if remaining <= trade_size * 1e-12:
            filled = trade_size
            fill_rate = 1.0
        else:
            fill_rate = filled / trade_size

        avg_price = cost / filled
        if side == TradeSide.BUY:
            raw = (avg_price - best_price) / best_price
        else:
            raw = (best_price - avg_price) / best_price

        return SlippageEstimate(
            slippage=abs(raw),
            fill_rate=fill_rate,
            avg_execution_price=avg_price,
            best_price=best_price,
            filled_volume=filled,
        )

    # ─── Adjustment Factors ─────────────────────────────────────

    def exchange_factor(self, exchange: Optional[str]) -> float:
        return lookup(EXCHANGE_SLIPPAGE_FACTORS, exchange, 1.0)

    def hour_factor(self, hour: int) -> float:
        factors = self.settings.hourly_factors
        return factors[hour % len(factors)]

    def volatility_factor(self, level: Optional[VolatilityLevel]) -> float:
        if level is None:
            return 1.0
        return self.settings.volatility_factors.get(VolatilityLevel(level).value, 1.0)

    def momentum_factor(self, ticker: Optional[Ticker]) -> float:
        """Price moves since open thin out books; stronger moves widen slippage."""
        if ticker is None or not ticker.open_price or ticker.open_price <= 0:
            return 1.0
        change = abs(ticker.last_price - ticker.open_price) / ticker.open_price
        if change > 0.05:
            return 1.5
        elif change > 0.02:
            return 1.2
        elif change > 0.01:
            return 1.1
        return 1.0

    def learned_base(self, key: str, now: Optional[datetime] = None) -> float:
        """Default base slippage blended with fresh history by its confidence."""
        base = self.settings.default_slippage
        history = self.store.get_history(key)
        if history.is_stale(self.store.history_stale_seconds, now):
            return base
        predicted = history.predicted_slippage(self.store.history_stale_seconds, base, now)
        conf = history.confidence
        return predicted * conf + base * (1 - conf)

    # ─── Estimation ─────────────────────────────────────────────

    def estimate(
        self,
        book: Optional[OrderBook],
        trade_size: float,
        side: TradeSide,
        ticker: Optional[Ticker] = None,
        volatility: Optional[VolatilityLevel] = None,
        exchange: Optional[str] = None,
        symbol: Optional[str] = None,
        now: Optional[datetime] = None,
        record: bool = True,
    ) -> SlippageEstimate:
        """
        Full slippage estimate for one side of a trade.

        Args:
            book: Order book of the venue the trade executes on
            trade_size: Size in base-asset units
            side: BUY consumes asks, SELL consumes bids
            ticker: Optional ticker used for the momentum factor
            volatility: Volatility bucket of the asset
            now: Clock override for hour-of-day and history staleness
            record: Whether to append the result to the slippage history
        """
        s = self.settings
        side = TradeSide(side)
        now = now or utc_now()
        exchange = exchange or (book.exchange if book else None) or (ticker.exchange if ticker else "")
        symbol = symbol or (book.symbol if book else None) or (ticker.symbol if ticker else "")
        key = history_key(exchange, symbol, side)

        try:
            sim = self.simulate(book, trade_size, side)

            adjusted = (
                self.learned_base(key, now)
                * self.exchange_factor(exchange)
                * self.hour_factor(now.hour)
                * self.volatility_factor(volatility)
                * self.momentum_factor(ticker)
            )
            if sim.fill_rate < s.unfilled_penalty_threshold:
                adjusted *= 1 + (1 - sim.fill_rate) * s.unfilled_penalty_multiplier

            liquidity = asset_liquidity(extract_base_asset(symbol))
            simulated = safe_divide(sim.slippage, liquidity, sim.slippage)

            blended = simulated * s.simulated_weight + adjusted * s.base_weight
            cap = s.max_slippage_very_high_vol if volatility == VolatilityLevel.VERY_HIGH else s.max_slippage
            final = clamp(blended, min(adjusted, cap), cap)
        except (ValueError, TypeError, ZeroDivisionError, ArithmeticError) as e:
            logger.warning("slippage_estimate_degraded", key=key, error=str(e))
            return self._default_estimate()

        if record:
            self.store.record_observation(
                key,
                SlippageObservation(
                    timestamp=now, slippage=final,
                    trade_size=trade_size or 0.0, fill_rate=sim.fill_rate,
                ),
            )

        return SlippageEstimate(
            slippage=final,
            fill_rate=sim.fill_rate,
            avg_execution_price=sim.avg_execution_price,
            best_price=sim.best_price,
            filled_volume=sim.filled_volume,
            low_confidence=sim.low_confidence,
        )

    # ─── Outcome Feedback ───────────────────────────────────────

    def record_pending_trade(
        self,
        trade_id: str,
        exchange: str,
        symbol: str,
        side: TradeSide,
        trade_size: float,
        predicted_slippage: float,
    ) -> None:
        """Remember a prediction so the realized outcome can be learned later."""
        self.store.put_pending_trade(trade_id, {
            "key": history_key(exchange, symbol, side),
            "trade_size": trade_size,
            "predicted": predicted_slippage,
            "created_at": utc_now(),
        })

    def record_trade_execution(
        self,
        trade_id: str,
        actual_slippage: float,
        fill_rate: float = 1.0,
        now: Optional[datetime] = None,
    ) -> Optional[float]:
        """
        Record the realized slippage of a pending trade.
        Returns the prediction error (actual - predicted), or None for unknown ids.
        """
        pending = self.store.pop_pending_trade(trade_id)
        if pending is None:
            logger.warning("unknown_trade_execution", trade_id=trade_id)
            return None

        self.store.record_observation(
            pending["key"],
            SlippageObservation(
                timestamp=now or utc_now(),
                slippage=max(0.0, actual_slippage),
                trade_size=pending["trade_size"],
                fill_rate=clamp(fill_rate, 0.0, 1.0),
            ),
        )
        error = actual_slippage - pending["predicted"]
        logger.info("trade_execution_recorded",
                    trade_id=trade_id, key=pending["key"],
                    predicted=f"{pending['predicted']:.5f}",
                    actual=f"{actual_slippage:.5f}")
        return error


# Singleton
_engine: Optional[SlippageEngine] = None


def get_slippage_engine() -> SlippageEngine:
    global _engine
    if _engine is None:
        _engine = SlippageEngine()
    return _engine
