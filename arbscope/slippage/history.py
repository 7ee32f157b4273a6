"""
ARBSCOPE - Slippage History
Bounded, immutable per-(exchange, asset, side) record of slippage observations.
Every append returns a new snapshot so a store can swap it in atomically.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

import numpy as np

from arbscope.data.models import TradeSide
from arbscope.utils.helpers import utc_now, normalize_exchange, extract_base_asset


def history_key(exchange: str, symbol: str, side: TradeSide) -> str:
    """Key format: exchange_ASSET_side, e.g. binance_BTC_buy."""
    return f"{normalize_exchange(exchange)}_{extract_base_asset(symbol)}_{TradeSide(side).value}"


@dataclass(frozen=True)
class SlippageObservation:
    timestamp: datetime
    slippage: float
    trade_size: float
    fill_rate: float


@dataclass(frozen=True)
class SlippageHistory:
    """
    Up to `capacity` most recent observations, oldest first.
    Means are recomputed on every append.
    """
    observations: Tuple[SlippageObservation, ...] = ()
    capacity: int = 50
    short_term_window: int = 10
    long_term_mean: float = 0.0
    short_term_mean: float = 0.0
    short_term_weight: float = 0.7
    long_term_weight: float = 0.3
    max_confidence: float = 0.9

    def append(self, observation: SlippageObservation) -> "SlippageHistory":
        observations = (self.observations + (observation,))[-self.capacity:]
        values = np.array([o.slippage for o in observations], dtype=float)
        return SlippageHistory(
            observations=observations,
            capacity=self.capacity,
            short_term_window=self.short_term_window,
            long_term_mean=float(values.mean()),
            short_term_mean=float(values[-self.short_term_window:].mean()),
            short_term_weight=self.short_term_weight,
            long_term_weight=self.long_term_weight,
            max_confidence=self.max_confidence,
        )

    @property
    def count(self) -> int:
        return len(self.observations)

    @property
    def last_updated(self) -> Optional[datetime]:
        return self.observations[-1].timestamp if self.observations else None

    @property
    def confidence(self) -> float:
        return min(self.max_confidence, self.count / self.capacity)

    def is_stale(self, stale_seconds: float, now: Optional[datetime] = None) -> bool:
        if not self.observations:
            return True
        now = now or utc_now()
        return (now - self.last_updated).total_seconds() > stale_seconds

    def predicted_slippage(
        self, stale_seconds: float, default: float, now: Optional[datetime] = None
    ) -> float:
        """Blend of short- and long-term means, or `default` when stale."""
        if self.is_stale(stale_seconds, now):
            return default
        return self.short_term_mean * self.short_term_weight + self.long_term_mean * self.long_term_weight
