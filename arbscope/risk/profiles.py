"""
ARBSCOPE - Risk Profiles
Named, weighted collections of risk factors plus a viability threshold.
"""
from typing import Dict, List, Optional, Tuple

from arbscope.data.models import ArbitrageOpportunity
from arbscope.risk.factors import RiskFactor, FACTOR_TYPES
from arbscope.config.settings import get_settings, RiskSettings
from arbscope.utils.helpers import clamp, safe_divide


class RiskProfile:
    """Weighted mean over an ordered set of risk factors."""

    def __init__(self, name: str, factors: List[RiskFactor], min_acceptable_score: float):
        self.name = name
        self.factors = list(factors)
        self.min_acceptable_score = min_acceptable_score

    @classmethod
    def from_weights(cls, name: str, weights: Dict[str, float], min_acceptable_score: float) -> "RiskProfile":
        factors = [FACTOR_TYPES[key](weight) for key, weight in weights.items() if key in FACTOR_TYPES]
        return cls(name, factors, min_acceptable_score)

    def breakdown(self, opportunity: ArbitrageOpportunity) -> List[Tuple[str, float, float]]:
        """(factor name, score, weight) for every factor, in order."""
        return [(f.name, f.compute_score(opportunity), f.weight) for f in self.factors]

    def evaluate(self, opportunity: ArbitrageOpportunity) -> float:
        rows = self.breakdown(opportunity)
        total_weight = sum(w for _, _, w in rows)
        weighted = sum(score * w for _, score, w in rows)
        return clamp(safe_divide(weighted, total_weight))

    def is_acceptable(self, opportunity: ArbitrageOpportunity) -> bool:
        return self.evaluate(opportunity) >= self.min_acceptable_score

    def __repr__(self) -> str:
        return f"RiskProfile(name={self.name!r}, factors={len(self.factors)}, min={self.min_acceptable_score})"


def standard_profile(settings: Optional[RiskSettings] = None) -> RiskProfile:
    s = settings or get_settings().risk
    return RiskProfile.from_weights("Standard", s.standard_weights, s.standard_min_score)


def conservative_profile(settings: Optional[RiskSettings] = None) -> RiskProfile:
    s = settings or get_settings().risk
    return RiskProfile.from_weights("Conservative", s.conservative_weights, s.conservative_min_score)


PROFILE_BUILDERS = {
    "standard": standard_profile,
    "conservative": conservative_profile,
}


def get_profile(name: str, settings: Optional[RiskSettings] = None) -> RiskProfile:
    """Build a profile by name, falling back to Standard."""
    builder = PROFILE_BUILDERS.get((name or "").lower(), standard_profile)
    return builder(settings)
