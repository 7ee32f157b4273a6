"""
ARBSCOPE - Data Models for Market Snapshots and Assessments
Canonical data structures shared by every engine and consumer.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

from arbscope.utils.helpers import utc_now, extract_base_asset


class TradeSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class VolatilityLevel(str, Enum):
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"

    @property
    def index(self) -> int:
        """Ordinal position, VERY_LOW=0 .. VERY_HIGH=4."""
        return list(VolatilityLevel).index(self)


class MarketRegime(str, Enum):
    STABLE = "STABLE"
    VOLATILE = "VOLATILE"
    ILLIQUID = "ILLIQUID"


# ─── Market Snapshots ───────────────────────────────────────────

class Ticker(BaseModel):
    """Single ticker observation from an exchange."""
    model_config = ConfigDict(frozen=True)

    exchange: str
    symbol: str
    last_price: float
    bid_price: Optional[float] = None
    ask_price: Optional[float] = None
    high_price: Optional[float] = None
    low_price: Optional[float] = None
    open_price: Optional[float] = None
    volume: Optional[float] = None
    timestamp: datetime = Field(default_factory=utc_now)


class OrderBookLevel(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: float
    volume: float


class OrderBook(BaseModel):
    """Order book snapshot. Bids descend by price, asks ascend."""
    model_config = ConfigDict(frozen=True)

    exchange: str
    symbol: str
    bids: List[OrderBookLevel] = Field(default_factory=list)
    asks: List[OrderBookLevel] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def is_empty(self) -> bool:
        return not self.bids and not self.asks

    @property
    def best_bid(self) -> Optional[float]:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> Optional[float]:
        return self.asks[0].price if self.asks else None

    @property
    def mid_price(self) -> Optional[float]:
        if self.best_bid is None or self.best_ask is None:
            return None
        return (self.best_bid + self.best_ask) / 2

    @property
    def spread_pct(self) -> Optional[float]:
        mid = self.mid_price
        if not mid:
            return None
        return (self.best_ask - self.best_bid) / mid * 100

    def levels(self, side: TradeSide) -> List[OrderBookLevel]:
        """Levels a trade on this side consumes: buys lift asks, sells hit bids."""
        return self.asks if side == TradeSide.BUY else self.bids

    def depth_within(self, pct: float) -> float:
        """Quote-currency notional on both sides within pct% of mid."""
        mid = self.mid_price
        if not mid:
            return 0.0
        lower = mid * (1 - pct / 100)
        upper = mid * (1 + pct / 100)
        bid_notional = sum(l.price * l.volume for l in self.bids if l.price >= lower)
        ask_notional = sum(l.price * l.volume for l in self.asks if l.price <= upper)
        return bid_notional + ask_notional


class Candle(BaseModel):
    """Single OHLCV candle."""
    model_config = ConfigDict(frozen=True)

    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def price_range_percent(self) -> float:
        if self.low <= 0:
            return 0.0
        return (self.high - self.low) / self.low * 100


# ─── Engine Outputs ─────────────────────────────────────────────

class SlippageEstimate(BaseModel):
    """Result of a slippage estimate for one side of a trade."""
    model_config = ConfigDict(frozen=True)

    slippage: float
    fill_rate: float
    avg_execution_price: Optional[float] = None
    best_price: Optional[float] = None
    filled_volume: float = 0.0
    low_confidence: bool = False


class ProfitResult(BaseModel):
    """Absolute and relative profit of a trade."""
    absolute_profit: float = 0.0
    percentage_profit: float = 0.0
    profit_per_unit: float = 0.0


class WaterfallStep(BaseModel):
    name: str
    quantity: float
    unit: str


class FeeWaterfall(BaseModel):
    """Ordered intermediate quantities of a fee waterfall."""
    steps: List[WaterfallStep] = Field(default_factory=list)
    result: ProfitResult = Field(default_factory=ProfitResult)


class ProfitMetrics(BaseModel):
    """Profit figures derived alongside a risk assessment."""
    basic_profit_pct: float = 0.0
    slippage_adjusted_profit_pct: float = 0.0
    net_profit_pct: float = 0.0
    time_adjusted_profit_pct: float = 0.0
    annualized_return: float = 0.0
    risk_adjusted_return: float = 0.0
    opportunity_score: float = 0.0
    trade_size: float = 0.0
    volatility_level: VolatilityLevel = VolatilityLevel.MEDIUM
    profit: ProfitResult = Field(default_factory=ProfitResult)


class RiskAssessment(BaseModel):
    """
    Authoritative risk record for one opportunity.
    All component scores lie in [0, 1] where 1.0 means lowest risk.
    """
    overall_risk_score: float = 0.5
    liquidity_score: float = 0.5
    volatility_score: float = 0.5
    exchange_risk_score: float = 0.5
    market_depth_score: float = 0.5
    execution_speed_score: float = 0.5
    fee_score: float = 0.5
    slippage_score: float = 0.5

    slippage_estimate: float = 0.001
    buy_slippage: float = 0.0005
    sell_slippage: float = 0.0005
    fee_impact: float = 0.0
    execution_time_minutes: float = 1.0
    roi_efficiency: float = 0.0
    optimal_trade_size: float = 1000.0

    risk_level: str = "Medium Risk"
    buy_fee_pct: float = 0.0
    sell_fee_pct: float = 0.0
    is_viable: bool = False
    is_suspicious: bool = False
    is_default: bool = False
    regime: Optional[MarketRegime] = None
    warnings: List[str] = Field(default_factory=list)
    profit_metrics: Optional[ProfitMetrics] = None
    assessed_at: datetime = Field(default_factory=utc_now)

    @property
    def display_score(self) -> int:
        """0-100 score shown to users."""
        return int(round(self.overall_risk_score * 100))

    @property
    def risk_stars(self) -> str:
        filled = max(0, min(5, int(round(self.overall_risk_score * 5))))
        return "★" * filled + "☆" * (5 - filled)

    def to_dict(self) -> Dict[str, Any]:
        d = self.model_dump(mode="json")
        d["display_score"] = self.display_score
        d["risk_stars"] = self.risk_stars
        return d


class ArbitrageOpportunity(BaseModel):
    """
    A cross-exchange opportunity plus the derived fields the coordinator
    writes back after assessment.
    """
    symbol: str
    buy_exchange: str
    sell_exchange: str
    buy_price: float
    sell_price: float
    buy_fee: Optional[float] = None  # fraction; fetched from the venue when absent
    sell_fee: Optional[float] = None
    trade_size: Optional[float] = None

    buy_ticker: Optional[Ticker] = None
    sell_ticker: Optional[Ticker] = None
    buy_order_book: Optional[OrderBook] = None
    sell_order_book: Optional[OrderBook] = None
    buy_candles: Optional[List[Candle]] = None
    sell_candles: Optional[List[Candle]] = None

    # Written by the assessment coordinator
    risk_assessment: Optional[RiskAssessment] = None
    profit: Optional[ProfitResult] = None
    profit_percent: float = 0.0
    net_profit_percent: float = 0.0
    slippage_adjusted_profit_percent: float = 0.0
    time_adjusted_profit_percent: float = 0.0
    annualized_return: float = 0.0
    risk_adjusted_return: float = 0.0
    opportunity_score: float = 0.0
    risk_score: float = 0.5
    liquidity: float = 0.5
    volatility: float = 0.5
    slippage: float = 0.0
    execution_time_minutes: float = 0.0
    is_viable: bool = False

    @property
    def base_asset(self) -> str:
        return extract_base_asset(self.symbol)

    @property
    def cache_key(self) -> str:
        return (
            f"{self.symbol}:{self.buy_exchange}:{self.sell_exchange}:"
            f"{self.buy_price!r}:{self.sell_price!r}:"
            f"{self.trade_size!r}:{self.buy_fee!r}:{self.sell_fee!r}"
        )

    @property
    def quoted_profit_pct(self) -> float:
        """Raw price gap before fees, in percent."""
        if self.buy_price <= 0:
            return 0.0
        return (self.sell_price - self.buy_price) / self.buy_price * 100
