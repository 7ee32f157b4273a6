"""
ARBSCOPE - Profit Engine
Basic, slippage-adjusted, time-adjusted and fee-waterfall profit, plus
derived ranking metrics. Every function is pure.
"""
import math
from typing import Optional

import numpy as np

from arbscope.data.models import ProfitResult, FeeWaterfall, WaterfallStep, VolatilityLevel
from arbscope.analytics.exchange_profiles import EXCHANGE_RISK, DEFAULT_EXCHANGE_RISK, lookup
from arbscope.profit import fees
from arbscope.config.settings import get_settings, ProfitSettings
from arbscope.utils.logger import get_logger
from arbscope.utils.helpers import clamp, safe_divide

logger = get_logger("profit_engine")

MINUTES_PER_YEAR = 525_600
MINUTES_PER_DAY = 1_440


class ProfitEngine:
    """Profit and return calculations for cross-exchange arbitrage."""

    def __init__(self, settings: Optional[ProfitSettings] = None):
        self.settings = settings or get_settings().profit

    # ─── Profit ─────────────────────────────────────────────────

    @staticmethod
    def basic_profit_pct(buy_price: float, sell_price: float, buy_fee: float, sell_fee: float) -> float:
        """Net profit percentage after taker fees on both legs."""
        if buy_price is None or sell_price is None or buy_price <= 0 or sell_price <= 0:
            return 0.0
        cost = buy_price * (1 + buy_fee)
        proceeds = sell_price * (1 - sell_fee)
        return (proceeds - cost) / cost * 100

    def slippage_adjusted_profit_pct(
        self,
        buy_price: float,
        sell_price: float,
        buy_fee: float,
        sell_fee: float,
        buy_slippage: float,
        sell_slippage: float,
        buy_fill_rate: float = 1.0,
        sell_fill_rate: float = 1.0,
    ) -> float:
        """Profit with execution prices moved against us and a partial-fill haircut."""
        profit = self.basic_profit_pct(
            buy_price * (1 + max(0.0, buy_slippage)),
            sell_price * (1 - max(0.0, sell_slippage)),
            buy_fee,
            sell_fee,
        )
        fill = min(buy_fill_rate, sell_fill_rate)
        if fill < self.settings.fill_penalty_threshold:
            profit *= max(self.settings.fill_penalty_floor, 1 - (1 - fill) * 2)
        return profit

    def time_adjusted_profit(self, profit_pct: float, minutes: float, volatility: VolatilityLevel) -> float:
        """Decay profit over execution time and charge a volatility premium."""
        minutes = max(0.0, minutes)
        premium = self.settings.volatility_premiums[VolatilityLevel(volatility).index]
        return profit_pct * (1 - minutes / MINUTES_PER_DAY) - premium / 365 / 24 * minutes

    def fee_waterfall(
        self,
        initial_amount: float,
        buy_price: float,
        sell_price: float,
        buy_fee: float,
        sell_fee: float,
        withdrawal_fee: float = 0.0,
        network_fee: float = 0.0,
        deposit_fee: float = 0.0,
    ) -> FeeWaterfall:
        """
        Ordered fee pipeline:
        buy (trading fee) -> withdrawal -> network -> deposit -> sell (trading fee).
        Trading fees are proportional; transfer fees are fixed asset-unit amounts.
        """
        if initial_amount is None or initial_amount <= 0 or buy_price <= 0 or sell_price <= 0:
            return FeeWaterfall()

        steps = [WaterfallStep(name="initial", quantity=initial_amount, unit="quote")]
        units = initial_amount / buy_price * (1 - buy_fee)
        steps.append(WaterfallStep(name="after_buy", quantity=units, unit="asset"))
        for name, fee in (
            ("after_withdrawal", withdrawal_fee),
            ("after_network", network_fee),
            ("after_deposit", deposit_fee),
        ):
            units = max(0.0, units - max(0.0, fee))
            steps.append(WaterfallStep(name=name, quantity=units, unit="asset"))

        final = units * sell_price * (1 - sell_fee)
        steps.append(WaterfallStep(name="final", quantity=final, unit="quote"))

        absolute = final - initial_amount
        result = ProfitResult(
            absolute_profit=absolute,
            percentage_profit=(final / initial_amount - 1) * 100,
            profit_per_unit=absolute / initial_amount,
        )
        return FeeWaterfall(steps=steps, result=result)

    def comprehensive_arbitrage_profit(
        self,
        initial_amount: float,
        buy_price: float,
        sell_price: float,
        buy_fee: float,
        sell_fee: float,
        withdrawal_fee: float = 0.0,
        network_fee: float = 0.0,
        deposit_fee: float = 0.0,
    ) -> ProfitResult:
        return self.fee_waterfall(
            initial_amount, buy_price, sell_price, buy_fee, sell_fee,
            withdrawal_fee, network_fee, deposit_fee,
        ).result

    def transfer_fees_for(self, asset: str, buy_exchange: str, sell_exchange: str) -> dict:
        """Fee-table lookup for moving `asset` from the buy venue to the sell venue."""
        return {
            "withdrawal_fee": fees.withdrawal_fee(asset, buy_exchange),
            "network_fee": fees.network_fee(asset),
            "deposit_fee": fees.deposit_fee(asset, sell_exchange),
        }

    @staticmethod
    def transfer_cost_pct(asset: str, amount: float) -> float:
        return fees.transfer_cost_pct(asset, amount)

    # ─── Derived Metrics ────────────────────────────────────────

    def annualized_return(self, profit_pct: float, minutes: float) -> float:
        """Compound the per-trade return over a year, in log space to avoid overflow."""
        if minutes is None or minutes <= 0:
            return 0.0
        rate = profit_pct / 100
        if rate <= -1:
            return -1.0
        exponent = (MINUTES_PER_YEAR / minutes) * float(np.log1p(rate))
        cap = self.settings.annualized_cap
        if exponent >= math.log1p(cap):
            return cap
        return float(np.expm1(exponent))

    @staticmethod
    def roi_efficiency(profit_pct: float, minutes: float) -> float:
        """Profit percentage per hour of execution."""
        return safe_divide(profit_pct * 60, minutes)

    def risk_adjusted_return(self, annualized: float, volatility: VolatilityLevel) -> float:
        factor = self.settings.volatility_time_factors[VolatilityLevel(volatility).index]
        return (annualized - self.settings.risk_free_rate) / factor

    @staticmethod
    def combined_exchange_risk(buy_exchange: str, sell_exchange: str) -> float:
        """Counterparty risk of the pair, dominated by the weaker venue."""
        a = lookup(EXCHANGE_RISK, buy_exchange, DEFAULT_EXCHANGE_RISK)
        b = lookup(EXCHANGE_RISK, sell_exchange, DEFAULT_EXCHANGE_RISK)
        return max(a, b) * 0.6 + min(a, b) * 0.4

    def opportunity_score(
        self,
        profit_pct: float,
        minutes: float,
        volatility: VolatilityLevel,
        liquidity: float,
        exchange_risk: float,
    ) -> float:
        """0-100 ranking composite of profit, speed, calm, depth and venue safety."""
        s = self.settings
        profit_part = min(100.0, max(0.0, profit_pct * 20))
        time_part = max(0.0, 100 - max(0.0, minutes) / 1.2)
        volatility_part = 100 - VolatilityLevel(volatility).index * 25
        liquidity_part = clamp(liquidity) * 100
        exchange_part = (1 - clamp(exchange_risk)) * 100
        score = (
            s.score_profit_weight * profit_part
            + s.score_time_weight * time_part
            + s.score_volatility_weight * volatility_part
            + s.score_liquidity_weight * liquidity_part
            + s.score_exchange_weight * exchange_part
        )
        return clamp(score, 0.0, 100.0)

    def is_viable_profit(self, profit_pct: float) -> bool:
        return profit_pct >= self.settings.min_viable_profit_pct


# Singleton
_engine: Optional[ProfitEngine] = None


def get_profit_engine() -> ProfitEngine:
    global _engine
    if _engine is None:
        _engine = ProfitEngine()
    return _engine
