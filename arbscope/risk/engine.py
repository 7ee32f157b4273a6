"""
ARBSCOPE - Risk Scoring Engine
Combines liquidity, volatility, slippage, market-depth, execution-speed and
fee scores into one normalized risk score using regime-adaptive weights.
"""
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, List, Tuple

from arbscope.data.models import (
    ArbitrageOpportunity, OrderBook, RiskAssessment, MarketRegime,
)
from arbscope.risk.profiles import RiskProfile, get_profile
from arbscope.analytics.exchange_profiles import (
    EXCHANGE_RELIABILITY, EXCHANGE_SPEED, EXCHANGE_TIME_FACTORS, lookup,
)
from arbscope.config.settings import get_settings, RiskSettings
from arbscope.utils.logger import get_logger
from arbscope.utils.helpers import clamp, safe_divide, normalize_exchange

logger = get_logger("risk_engine")

COMPONENTS = ("liquidity", "volatility", "slippage", "market_depth", "execution_speed", "fees")

# Upper bounds of each band; scores at or above the last bound are Minimal
RISK_BANDS: List[Tuple[float, str]] = [
    (0.1, "Critical Risk"),
    (0.2, "Extreme Risk"),
    (0.3, "Very High Risk"),
    (0.4, "High Risk"),
    (0.5, "Medium-High Risk"),
    (0.6, "Medium Risk"),
    (0.8, "Low Risk"),  # 0.6-0.8, no separate Low-Medium band
    (0.9, "Very Low Risk"),
]
MINIMAL_RISK = "Minimal Risk"
RISK_LEVELS: List[str] = [label for _, label in RISK_BANDS] + [MINIMAL_RISK]


def risk_level_for(score: float) -> str:
    """Map an overall score to its band label."""
    for upper, label in RISK_BANDS:
        if score < upper:
            return label
    return MINIMAL_RISK


@dataclass
class RiskInputs:
    """Market-derived measurements the engine scores."""
    buy_exchange: str
    sell_exchange: str
    quoted_profit_pct: float = 0.0
    volatility_pct: float = 5.0
    liquidity_score: float = 0.5
    volatility_score: float = 0.5
    market_depth_score: float = 0.5
    buy_slippage: float = 0.001
    sell_slippage: float = 0.001
    buy_fee: float = 0.001
    sell_fee: float = 0.001
    execution_time_minutes: float = 1.0
    optimal_trade_size: float = 1000.0

    @property
    def total_slippage(self) -> float:
        return self.buy_slippage + self.sell_slippage


@dataclass
class RiskComponents:
    """Per-component scores, each in [0, 1]."""
    liquidity: float
    volatility: float
    slippage: float
    market_depth: float
    execution_speed: float
    fees: float
    exchange_reliability: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


class RiskScoringEngine:
    """
    Regime-adaptive weighted risk scorer.

    Regimes:
    - VOLATILE when 24h volatility exceeds the configured percentage
    - ILLIQUID when the liquidity score falls below its threshold
    - STABLE otherwise
    """

    def __init__(
        self,
        settings: Optional[RiskSettings] = None,
        profile: Optional[RiskProfile] = None,
    ):
        self.settings = settings or get_settings().risk
        self.profile = profile or get_profile(self.settings.active_profile, self.settings)

    # ─── Regime & Weights ───────────────────────────────────────

    def select_regime(self, volatility_pct: float, liquidity: float) -> MarketRegime:
        if volatility_pct > self.settings.volatile_threshold_pct:
            return MarketRegime.VOLATILE
        if liquidity < self.settings.illiquid_threshold:
            return MarketRegime.ILLIQUID
        return MarketRegime.STABLE

    def weights_for(self, regime: Optional[MarketRegime]) -> Dict[str, float]:
        """Weight vector for a regime, or the fixed vector when adaptation is off."""
        s = self.settings
        if regime is None or not s.adaptive_weights:
            raw = s.fixed_weights
        else:
            raw = {
                MarketRegime.STABLE: s.stable_weights,
                MarketRegime.VOLATILE: s.volatile_weights,
                MarketRegime.ILLIQUID: s.illiquid_weights,
            }[MarketRegime(regime)]
        weights = {k: max(0.0, float(raw.get(k, 0.0))) for k in COMPONENTS}
        total = sum(weights.values())
        if total <= 0:
            return {k: 1.0 / len(COMPONENTS) for k in COMPONENTS}
        return {k: v / total for k, v in weights.items()}

    def score(self, components: Dict[str, float], weights: Dict[str, float]) -> float:
        """Weighted sum of component scores, clamped to [0, 1]."""
        total = sum(clamp(components.get(k, 0.5)) * w for k, w in weights.items())
        return clamp(total)

    # ─── Component Scores ───────────────────────────────────────

    def slippage_score(self, total_slippage: float) -> float:
        """0.5% -> 0.95, 2% -> 0.8, 5% -> 0.5, 10%+ -> 0."""
        return 1.0 - min(1.0, max(0.0, total_slippage) * self.settings.slippage_penalty_multiplier)

    def fee_score(self, buy_fee: float, sell_fee: float) -> float:
        """1.0 at or below 0.05% total fees, 0.2 at 1% and above."""
        s = self.settings
        total = max(0.0, buy_fee) + max(0.0, sell_fee)
        excess = clamp(safe_divide(total - s.fee_free_threshold, s.fee_normalization), 0.0, 1.0)
        return 1.0 - excess * s.fee_max_penalty

    def exchange_reliability_score(self, buy_exchange: str, sell_exchange: str) -> float:
        default = self.settings.default_exchange_reliability
        score = (
            lookup(EXCHANGE_RELIABILITY, buy_exchange, default)
            * lookup(EXCHANGE_RELIABILITY, sell_exchange, default)
        )
        if normalize_exchange(buy_exchange) == normalize_exchange(sell_exchange):
            score -= self.settings.same_exchange_penalty
        return clamp(score)

    def execution_speed_score(self, buy_exchange: str, sell_exchange: str) -> float:
        """Average routing speed of both venues, tempered by their joint reliability."""
        default = self.settings.default_exchange_speed
        speed = (
            lookup(EXCHANGE_SPEED, buy_exchange, default)
            + lookup(EXCHANGE_SPEED, sell_exchange, default)
        ) / 2
        return clamp((speed + self.exchange_reliability_score(buy_exchange, sell_exchange)) / 2)

    def components_for(self, inputs: RiskInputs) -> RiskComponents:
        return RiskComponents(
            liquidity=clamp(inputs.liquidity_score),
            volatility=clamp(inputs.volatility_score),
            slippage=self.slippage_score(inputs.total_slippage),
            market_depth=clamp(inputs.market_depth_score),
            execution_speed=self.execution_speed_score(inputs.buy_exchange, inputs.sell_exchange),
            fees=self.fee_score(inputs.buy_fee, inputs.sell_fee),
            exchange_reliability=self.exchange_reliability_score(inputs.buy_exchange, inputs.sell_exchange),
        )

    # ─── Warnings & Special States ──────────────────────────────

    def early_warnings(self, components: RiskComponents, total_slippage: float) -> List[str]:
        s = self.settings
        warnings = []
        if 1.0 - components.liquidity > s.warning_liquidity_risk:
            warnings.append("liquidity")
        if 1.0 - components.volatility > s.warning_volatility_risk:
            warnings.append("volatility")
        if total_slippage > s.warning_slippage:
            warnings.append("slippage")
        if 1.0 - components.market_depth > s.warning_market_depth_risk:
            warnings.append("market_depth")
        if total_slippage > s.warning_extreme_slippage:
            warnings.append("extreme_slippage")
        return warnings

    def is_suspicious(self, quoted_profit_pct: float) -> bool:
        return quoted_profit_pct > self.settings.suspicious_profit_pct

    def default_assessment(self, risk_level: Optional[float] = None) -> RiskAssessment:
        """Fallback assessment whose fields all derive from a single risk level."""
        r = clamp(self.settings.default_risk_level if risk_level is None else risk_level)
        exec_time = 1.0 + (1.0 - r) * 9.0
        slippage = 0.001 + (1.0 - r) * 0.049
        return RiskAssessment(
            overall_risk_score=r,
            liquidity_score=r * 0.7 + 0.2,
            volatility_score=r * 0.8 + 0.1,
            exchange_risk_score=r * 0.6 + 0.3,
            market_depth_score=r * 0.7 + 0.2,
            execution_speed_score=r * 0.6 + 0.3,
            fee_score=0.5,
            slippage_score=self.slippage_score(slippage),
            slippage_estimate=slippage,
            buy_slippage=slippage / 2,
            sell_slippage=slippage / 2,
            execution_time_minutes=exec_time,
            roi_efficiency=0.01 * 60.0 / exec_time,
            optimal_trade_size=100.0 + r * 900.0,
            risk_level=risk_level_for(r),
            is_viable=False,
            is_default=True,
        )

    def suspicious_assessment(self, opportunity: Optional[ArbitrageOpportunity] = None) -> RiskAssessment:
        """Low-score state for quoted spreads too large to be real."""
        assessment = self.default_assessment(0.1)
        assessment.liquidity_score = 0.2
        assessment.volatility_score = 0.2
        assessment.risk_level = risk_level_for(0.1)
        assessment.is_default = False
        assessment.is_suspicious = True
        assessment.is_viable = False
        assessment.warnings = ["suspicious_profit"]
        if opportunity is not None:
            assessment.buy_fee_pct = (opportunity.buy_fee or 0.0) * 100
            assessment.sell_fee_pct = (opportunity.sell_fee or 0.0) * 100
            logger.warning("suspicious_profit_detected",
                           symbol=opportunity.symbol,
                           buy_exchange=opportunity.buy_exchange,
                           sell_exchange=opportunity.sell_exchange,
                           quoted_profit=f"{opportunity.quoted_profit_pct:.2f}%")
        return assessment

    # ─── Supplementary Estimates ────────────────────────────────

    def estimate_execution_time(self, buy_exchange: str, sell_exchange: str, volatility_score: float) -> float:
        """Expected minutes to complete both legs."""
        avg_factor = (
            lookup(EXCHANGE_TIME_FACTORS, buy_exchange, 1.0)
            + lookup(EXCHANGE_TIME_FACTORS, sell_exchange, 1.0)
        ) / 2
        minutes = 1.5 * avg_factor * (1.0 + (1.0 - clamp(volatility_score)) * 3.75)
        return clamp(minutes, 0.5, 15.0)

    def optimal_trade_size(self, buy_book: Optional[OrderBook], sell_book: Optional[OrderBook]) -> float:
        """Quote-currency size that stays well inside 1% of both books."""
        if buy_book is None or sell_book is None or buy_book.is_empty or sell_book.is_empty:
            return 1000.0
        depth = min(buy_book.depth_within(1.0), sell_book.depth_within(1.0))
        if depth <= 0:
            return 1000.0
        return clamp(depth / 2 * 0.1, 100.0, 10000.0)

    @staticmethod
    def trade_size_for_profit(profit_pct: float) -> float:
        if profit_pct <= 0.3:
            return 500.0
        if profit_pct >= 1.0:
            return 2000.0
        return 1000.0

    # ─── Assessment ─────────────────────────────────────────────

    def profile_score(self, opportunity: ArbitrageOpportunity, inputs: RiskInputs) -> float:
        """Evaluate the active profile against the freshly measured values."""
        scratch = opportunity.model_copy(update={
            "liquidity": clamp(inputs.liquidity_score),
            "volatility": clamp(inputs.volatility_score),
            "slippage": inputs.total_slippage,
        })
        return self.profile.evaluate(scratch)

    def assess(self, inputs: RiskInputs, opportunity: Optional[ArbitrageOpportunity] = None) -> RiskAssessment:
        """
        Full risk assessment. Suspiciously high quoted profits short-circuit
        to the suspicious state before any scoring.
        """
        if self.is_suspicious(inputs.quoted_profit_pct):
            return self.suspicious_assessment(opportunity)

        regime = self.select_regime(inputs.volatility_pct, inputs.liquidity_score)
        weights = self.weights_for(regime)
        components = self.components_for(inputs)
        overall = self.score(components.as_dict(), weights)
        warnings = self.early_warnings(components, inputs.total_slippage)

        if opportunity is not None:
            profile_score = self.profile_score(opportunity, inputs)
        else:
            profile_score = overall
        is_viable = profile_score >= self.profile.min_acceptable_score and not warnings

        assessment = RiskAssessment(
            overall_risk_score=overall,
            liquidity_score=components.liquidity,
            volatility_score=components.volatility,
            exchange_risk_score=components.exchange_reliability,
            market_depth_score=components.market_depth,
            execution_speed_score=components.execution_speed,
            fee_score=components.fees,
            slippage_score=components.slippage,
            slippage_estimate=inputs.total_slippage,
            buy_slippage=inputs.buy_slippage,
            sell_slippage=inputs.sell_slippage,
            fee_impact=inputs.buy_fee + inputs.sell_fee,
            execution_time_minutes=inputs.execution_time_minutes,
            optimal_trade_size=inputs.optimal_trade_size,
            risk_level=risk_level_for(overall),
            buy_fee_pct=inputs.buy_fee * 100,
            sell_fee_pct=inputs.sell_fee * 100,
            is_viable=is_viable,
            regime=regime,
            warnings=warnings,
        )

        logger.debug("risk_assessed",
                     regime=regime.value,
                     overall=f"{overall:.3f}",
                     profile=self.profile.name,
                     profile_score=f"{profile_score:.3f}",
                     warnings=warnings)
        return assessment

    def report(self, assessment: RiskAssessment) -> Dict[str, Any]:
        return {
            "risk_level": assessment.risk_level,
            "display_score": assessment.display_score,
            "stars": assessment.risk_stars,
            "regime": assessment.regime.value if assessment.regime else None,
            "profile": self.profile.name,
            "warnings": list(assessment.warnings),
        }


# Singleton
_engine: Optional[RiskScoringEngine] = None


def get_risk_engine() -> RiskScoringEngine:
    global _engine
    if _engine is None:
        _engine = RiskScoringEngine()
    return _engine
