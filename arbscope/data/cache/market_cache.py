"""
ARBSCOPE - Market State Store
Process-scoped TTL caches and slippage histories shared by the engines.
Values are replaced wholesale per key, never partially mutated.
"""
import threading
from datetime import datetime
from typing import Optional, Dict, Any, Callable

from cachetools import TTLCache

from arbscope.data.models import RiskAssessment, VolatilityLevel
from arbscope.slippage.history import SlippageHistory, SlippageObservation
from arbscope.config.settings import get_settings
from arbscope.utils.logger import get_logger
from arbscope.utils.helpers import utc_now

logger = get_logger("market_cache")


class MarketStateStore:
    """Thread-safe in-memory store for volatility, liquidity, assessments and slippage history."""

    def __init__(
        self,
        volatility_ttl: Optional[float] = None,
        liquidity_ttl: Optional[float] = None,
        assessment_ttl: Optional[float] = None,
        history_stale_seconds: Optional[float] = None,
        maxsize: Optional[int] = None,
        timer: Callable[[], float] = None,
    ):
        coord = get_settings().coordinator
        slip = get_settings().slippage
        maxsize = maxsize or coord.cache_maxsize
        timer_kwargs = {"timer": timer} if timer is not None else {}

        self._volatility: TTLCache = TTLCache(
            maxsize=maxsize, ttl=volatility_ttl or coord.volatility_ttl_seconds, **timer_kwargs
        )
        self._liquidity: TTLCache = TTLCache(
            maxsize=maxsize, ttl=liquidity_ttl or coord.liquidity_ttl_seconds, **timer_kwargs
        )
        self._assessments: TTLCache = TTLCache(
            maxsize=maxsize, ttl=assessment_ttl or coord.assessment_ttl_seconds, **timer_kwargs
        )
        self.history_stale_seconds = history_stale_seconds or slip.history_stale_seconds
        self._history_capacity = slip.history_capacity
        self._short_term_window = slip.short_term_window
        self._short_term_weight = slip.short_term_weight
        self._long_term_weight = slip.long_term_weight
        self._max_confidence = slip.max_history_confidence

        self._histories: Dict[str, SlippageHistory] = {}
        self._pending_trades: Dict[str, Dict[str, Any]] = {}
        # cachetools caches are not thread-safe on their own
        self._lock = threading.Lock()

    # ─── Volatility ─────────────────────────────────────────────

    def get_volatility(self, asset: str) -> Optional[VolatilityLevel]:
        with self._lock:
            return self._volatility.get(asset)

    def put_volatility(self, asset: str, level: VolatilityLevel) -> None:
        with self._lock:
            self._volatility[asset] = level

    def clear_volatility(self) -> None:
        with self._lock:
            self._volatility.clear()

    # ─── Liquidity ──────────────────────────────────────────────

    def get_liquidity(self, key: str) -> Optional[float]:
        with self._lock:
            return self._liquidity.get(key)

    def put_liquidity(self, key: str, score: float) -> None:
        with self._lock:
            self._liquidity[key] = score

    # ─── Assessments ────────────────────────────────────────────

    def get_assessment(self, key: str) -> Optional[RiskAssessment]:
        with self._lock:
            return self._assessments.get(key)

    def put_assessment(self, key: str, assessment: RiskAssessment) -> None:
        with self._lock:
            self._assessments[key] = assessment

    def invalidate_assessment(self, key: str) -> None:
        with self._lock:
            self._assessments.pop(key, None)

    # ─── Slippage History ───────────────────────────────────────

    def get_history(self, key: str) -> SlippageHistory:
        with self._lock:
            history = self._histories.get(key)
        return history if history is not None else self._empty_history()

    def record_observation(self, key: str, observation: SlippageObservation) -> SlippageHistory:
        """Append an observation and swap in the new history snapshot."""
        with self._lock:
            current = self._histories.get(key) or self._empty_history()
            updated = current.append(observation)
            self._histories[key] = updated
        return updated

    def _empty_history(self) -> SlippageHistory:
        return SlippageHistory(
            capacity=self._history_capacity,
            short_term_window=self._short_term_window,
            short_term_weight=self._short_term_weight,
            long_term_weight=self._long_term_weight,
            max_confidence=self._max_confidence,
        )

    # ─── Pending Trades ─────────────────────────────────────────

    def put_pending_trade(self, trade_id: str, record: Dict[str, Any]) -> None:
        with self._lock:
            self._pending_trades[trade_id] = record

    def pop_pending_trade(self, trade_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._pending_trades.pop(trade_id, None)

    # ─── Maintenance ────────────────────────────────────────────

    def sweep(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Evict stale histories and pending trades, and expire TTL entries."""
        now = now or utc_now()
        with self._lock:
            stale = [
                k for k, h in self._histories.items()
                if h.is_stale(self.history_stale_seconds, now)
            ]
            for k in stale:
                del self._histories[k]

            old_trades = [
                tid for tid, rec in self._pending_trades.items()
                if (now - rec["created_at"]).total_seconds() > self.history_stale_seconds
            ]
            for tid in old_trades:
                del self._pending_trades[tid]

            self._volatility.expire()
            self._liquidity.expire()
            self._assessments.expire()

        result = {"histories_evicted": len(stale), "pending_trades_evicted": len(old_trades)}
        logger.info("market_state_swept", **result)
        return result

    def clear(self) -> None:
        """Clear all caches."""
        with self._lock:
            self._volatility.clear()
            self._liquidity.clear()
            self._assessments.clear()
            self._histories.clear()
            self._pending_trades.clear()
        logger.info("market_state_cleared")

    @property
    def stats(self) -> Dict[str, Any]:
        """Return cache statistics."""
        with self._lock:
            return {
                "volatility_entries": len(self._volatility),
                "liquidity_entries": len(self._liquidity),
                "assessment_entries": len(self._assessments),
                "slippage_histories": len(self._histories),
                "total_observations": sum(h.count for h in self._histories.values()),
                "pending_trades": len(self._pending_trades),
            }


# Singleton instance
_store: Optional[MarketStateStore] = None


def get_store() -> MarketStateStore:
    global _store
    if _store is None:
        _store = MarketStateStore()
    return _store
