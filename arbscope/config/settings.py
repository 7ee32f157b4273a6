"""
ARBSCOPE - Central Configuration
All tunable constants are loaded from environment variables with sensible defaults.
"""
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Dict, List, Optional


class MarketStatsSettings(BaseSettings):
    """Volatility and liquidity estimator parameters."""
    default_volatility_pct: float = Field(default=5.0, env="DEFAULT_VOLATILITY_PCT")
    volatility_bucket_bounds: List[float] = [1.0, 2.5, 5.0, 10.0]  # VERY_LOW..HIGH upper bounds (%)

    candle_vol_min: float = 0.01
    candle_vol_max: float = 0.2
    candle_vol_default: float = 0.03
    candle_vol_annualizer: float = 24.0  # hourly -> daily, applied as sqrt

    # Candle range score: 1 - clamp(avg_range / divisor, floor, ceil)
    candle_range_divisor: float = 5.0
    candle_range_floor: float = 0.1
    candle_range_ceil: float = 0.9
    ticker_score_ceiling_pct: float = 20.0

    liquidity_base_weight: float = 0.4
    liquidity_buy_depth_weight: float = 0.25
    liquidity_sell_depth_weight: float = 0.25
    liquidity_spread_weight: float = 0.1
    depth_levels: int = 10
    depth_log_divisor: float = 5.0

    spread_tight_pct: float = 0.1
    spread_wide_pct: float = 2.0

    market_depth_range_pct: float = 2.0
    market_depth_normalizer: float = 1_000_000.0

    class Config:
        env_file = ".env"
        extra = "ignore"


class SlippageSettings(BaseSettings):
    """Order-book slippage simulation and feedback-learning parameters."""
    default_slippage: float = Field(default=0.001, env="DEFAULT_SLIPPAGE")
    default_fill_rate: float = 0.5
    simulated_weight: float = Field(default=0.7, validation_alias="SLIPPAGE_SIMULATED_WEIGHT")
    base_weight: float = Field(default=0.3, validation_alias="SLIPPAGE_BASE_WEIGHT")
    max_slippage: float = 0.05
    max_slippage_very_high_vol: float = 0.08
    unfilled_penalty_threshold: float = 0.9
    unfilled_penalty_multiplier: float = 2.0

    history_capacity: int = Field(default=50, validation_alias="SLIPPAGE_HISTORY_CAPACITY")
    short_term_window: int = 10
    short_term_weight: float = 0.7
    long_term_weight: float = 0.3
    max_history_confidence: float = 0.9
    history_stale_seconds: float = Field(default=3600.0, validation_alias="SLIPPAGE_STALE_SECONDS")

    # UTC hour -> liquidity multiplier (thinner books overnight)
    hourly_factors: List[float] = [
        1.2, 1.25, 1.3, 1.3, 1.2, 1.1, 1.05, 1.0,
        0.95, 0.90, 0.85, 0.80, 0.85, 0.90, 0.85, 0.80,
        0.80, 0.85, 0.90, 0.95, 1.0, 1.05, 1.1, 1.15,
    ]
    volatility_factors: Dict[str, float] = {
        "VERY_LOW": 0.8, "LOW": 0.9, "MEDIUM": 1.0, "HIGH": 1.3, "VERY_HIGH": 1.8,
    }

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


class RiskSettings(BaseSettings):
    """Risk scoring weights, regime thresholds and viability rules."""
    adaptive_weights: bool = Field(default=True, validation_alias="RISK_ADAPTIVE_WEIGHTS")
    volatile_threshold_pct: float = Field(default=5.0, validation_alias="RISK_VOLATILE_THRESHOLD")
    illiquid_threshold: float = Field(default=0.30, validation_alias="RISK_ILLIQUID_THRESHOLD")
    suspicious_profit_pct: float = Field(default=3.5, validation_alias="RISK_SUSPICIOUS_PROFIT_PCT")

    # Component order: liquidity, volatility, slippage, market_depth, execution_speed, fees
    stable_weights: Dict[str, float] = {
        "liquidity": 0.25, "volatility": 0.20, "slippage": 0.20,
        "market_depth": 0.10, "execution_speed": 0.10, "fees": 0.15,
    }
    volatile_weights: Dict[str, float] = {
        "liquidity": 0.20, "volatility": 0.35, "slippage": 0.20,
        "market_depth": 0.10, "execution_speed": 0.10, "fees": 0.05,
    }
    illiquid_weights: Dict[str, float] = {
        "liquidity": 0.35, "volatility": 0.10, "slippage": 0.25,
        "market_depth": 0.20, "execution_speed": 0.05, "fees": 0.05,
    }
    fixed_weights: Dict[str, float] = {
        "liquidity": 0.25, "volatility": 0.25, "slippage": 0.20,
        "market_depth": 0.15, "execution_speed": 0.05, "fees": 0.10,
    }

    slippage_penalty_multiplier: float = 10.0
    fee_free_threshold: float = 0.0005
    fee_normalization: float = 0.0095
    fee_max_penalty: float = 0.8
    same_exchange_penalty: float = 0.1
    default_exchange_reliability: float = 0.5
    default_exchange_speed: float = 0.5

    # Profile factor weights
    standard_weights: Dict[str, float] = {
        "slippage": 0.30, "volatility": 0.25, "liquidity": 0.25, "exchange_reliability": 0.20,
    }
    standard_min_score: float = 0.70
    conservative_weights: Dict[str, float] = {
        "slippage": 0.35, "volatility": 0.30, "liquidity": 0.20, "exchange_reliability": 0.15,
    }
    conservative_min_score: float = 0.85
    active_profile: str = Field(default="standard", validation_alias="RISK_PROFILE")
    max_acceptable_slippage_pct: float = 0.5

    # Early warnings fire when risk (1 - score) or raw slippage exceeds the threshold
    warning_liquidity_risk: float = 0.7
    warning_volatility_risk: float = 0.7
    warning_market_depth_risk: float = 0.7
    warning_slippage: float = 0.01
    warning_extreme_slippage: float = 0.03

    default_risk_level: float = Field(default=0.4, validation_alias="RISK_DEFAULT_LEVEL")

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


class ProfitSettings(BaseSettings):
    """Profit, time-decay and ranking parameters."""
    min_viable_profit_pct: float = Field(default=0.05, env="MIN_VIABLE_PROFIT_PCT")
    fill_penalty_threshold: float = 0.95
    fill_penalty_floor: float = 0.5
    risk_free_rate: float = 0.02
    annualized_cap: float = 1_000_000.0

    # Annual volatility premium (%) per bucket, VERY_LOW..VERY_HIGH
    volatility_premiums: List[float] = [5.0, 10.0, 15.0, 25.0, 40.0]
    volatility_time_factors: List[float] = [0.85, 0.9, 1.0, 1.2, 1.5]

    score_profit_weight: float = 0.4
    score_time_weight: float = 0.2
    score_volatility_weight: float = 0.15
    score_liquidity_weight: float = 0.15
    score_exchange_weight: float = 0.1

    class Config:
        env_file = ".env"
        extra = "ignore"


class CoordinatorSettings(BaseSettings):
    """Assessment orchestration, timeouts and cache lifetimes."""
    fetch_timeout_seconds: float = Field(default=5.0, env="FETCH_TIMEOUT_SECONDS")
    volatility_ttl_seconds: int = Field(default=600, env="VOLATILITY_TTL_SECONDS")
    liquidity_ttl_seconds: int = Field(default=300, env="LIQUIDITY_TTL_SECONDS")
    assessment_ttl_seconds: int = Field(default=60, env="ASSESSMENT_TTL_SECONDS")
    sweep_interval_seconds: float = Field(default=3600.0, env="SWEEP_INTERVAL_SECONDS")
    max_workers: int = Field(default=4, validation_alias="ASSESSMENT_MAX_WORKERS")
    cache_maxsize: int = 1000
    order_book_depth: int = 20
    candle_interval: str = "1h"
    candle_count: int = 24

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


class AppSettings(BaseSettings):
    """Top-level application settings."""
    app_name: str = "ARBSCOPE"
    version: str = "1.0.0"
    debug: bool = Field(default=False, env="DEBUG")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=8000, env="PORT")

    market: MarketStatsSettings = MarketStatsSettings()
    slippage: SlippageSettings = SlippageSettings()
    risk: RiskSettings = RiskSettings()
    profit: ProfitSettings = ProfitSettings()
    coordinator: CoordinatorSettings = CoordinatorSettings()

    class Config:
        env_file = ".env"
        extra = "ignore"


# Singleton
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings
