"""
ARBSCOPE - Risk Factors
Pluggable scoring units consumed by risk profiles. Every factor returns
a score in [0, 1] where 1.0 means lowest risk.
"""
from abc import ABC, abstractmethod
from typing import Optional

from arbscope.data.models import ArbitrageOpportunity
from arbscope.analytics.exchange_profiles import EXCHANGE_RELIABILITY, lookup
from arbscope.config.settings import get_settings
from arbscope.utils.helpers import clamp


class RiskFactor(ABC):
    """Abstract base class for a single weighted risk dimension."""

    name: str = "base"

    def __init__(self, weight: float):
        self.weight = weight

    @abstractmethod
    def compute_score(self, opportunity: ArbitrageOpportunity) -> float:
        """Score the opportunity on this dimension, 1.0 = lowest risk."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(weight={self.weight})"


class SlippageRiskFactor(RiskFactor):
    """Linear penalty up to the maximum acceptable total slippage."""

    name = "Slippage Risk"

    def __init__(self, weight: float, max_acceptable_pct: Optional[float] = None):
        super().__init__(weight)
        self.max_acceptable_pct = max_acceptable_pct or get_settings().risk.max_acceptable_slippage_pct

    def compute_score(self, opportunity: ArbitrageOpportunity) -> float:
        total_pct = opportunity.slippage * 100
        if total_pct >= self.max_acceptable_pct:
            return 0.0
        return clamp(1.0 - total_pct / self.max_acceptable_pct)


class VolatilityRiskFactor(RiskFactor):
    name = "Volatility Risk"

    def compute_score(self, opportunity: ArbitrageOpportunity) -> float:
        return clamp(opportunity.volatility)


class LiquidityRiskFactor(RiskFactor):
    name = "Liquidity Risk"

    def compute_score(self, opportunity: ArbitrageOpportunity) -> float:
        return clamp(opportunity.liquidity)


class ExchangeReliabilityRiskFactor(RiskFactor):
    """Joint reliability of both venues: both legs must complete."""

    name = "Exchange Reliability Risk"

    def __init__(self, weight: float, default_reliability: float = 0.9):
        super().__init__(weight)
        self.default_reliability = default_reliability

    def compute_score(self, opportunity: ArbitrageOpportunity) -> float:
        buy = lookup(EXCHANGE_RELIABILITY, opportunity.buy_exchange, self.default_reliability)
        sell = lookup(EXCHANGE_RELIABILITY, opportunity.sell_exchange, self.default_reliability)
        return clamp(buy * sell)


FACTOR_TYPES = {
    "slippage": SlippageRiskFactor,
    "volatility": VolatilityRiskFactor,
    "liquidity": LiquidityRiskFactor,
    "exchange_reliability": ExchangeReliabilityRiskFactor,
}
