"""
ARBSCOPE - Assessment Coordinator
Single writer of risk and profit fields on an opportunity. Fetches missing
snapshots concurrently with per-request timeouts, scores off the event loop,
caches results with TTL and sweeps stale state hourly.
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, List, Any, Awaitable, Callable

from arbscope.data.models import (
    ArbitrageOpportunity, RiskAssessment, ProfitMetrics, Ticker, OrderBook,
    Candle, TradeSide, VolatilityLevel,
)
from arbscope.data.adapters.base import BaseExchangeAdapter
from arbscope.data.cache.market_cache import MarketStateStore, get_store
from arbscope.analytics.market_stats import MarketStatistics
from arbscope.slippage.engine import SlippageEngine
from arbscope.risk.engine import RiskScoringEngine, RiskInputs
from arbscope.profit.engine import ProfitEngine
from arbscope.config.settings import get_settings, CoordinatorSettings
from arbscope.utils.logger import get_logger
from arbscope.utils.helpers import normalize_exchange, safe_divide, utc_now

logger = get_logger("assessment_coordinator")

DEFAULT_FEE = 0.001


class MarketDataError(Exception):
    """A collaborator request failed or timed out."""


@dataclass
class MarketSnapshot:
    """Everything the engines need for one opportunity."""
    buy_ticker: Optional[Ticker] = None
    sell_ticker: Optional[Ticker] = None
    buy_book: Optional[OrderBook] = None
    sell_book: Optional[OrderBook] = None
    buy_candles: Optional[List[Candle]] = None
    sell_candles: Optional[List[Candle]] = None
    buy_fee: float = DEFAULT_FEE
    sell_fee: float = DEFAULT_FEE

    @property
    def candles(self) -> List[Candle]:
        return list(self.buy_candles or []) + list(self.sell_candles or [])


class AssessmentCoordinator:
    """
    Orchestrates data collection and scoring for arbitrage opportunities.

    Guarantees:
    - `assess` never raises; failures resolve to the default assessment
    - every opportunity-level field derives from one cached RiskAssessment
    - engines share one MarketStateStore owned by this coordinator
    """

    def __init__(
        self,
        adapters: Optional[Dict[str, BaseExchangeAdapter]] = None,
        store: Optional[MarketStateStore] = None,
        market_stats: Optional[MarketStatistics] = None,
        slippage_engine: Optional[SlippageEngine] = None,
        risk_engine: Optional[RiskScoringEngine] = None,
        profit_engine: Optional[ProfitEngine] = None,
        settings: Optional[CoordinatorSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or get_settings().coordinator
        self.clock = clock
        self.store = store or MarketStateStore()
        self.market_stats = market_stats or MarketStatistics(store=self.store)
        self.slippage_engine = slippage_engine or SlippageEngine(store=self.store)
        self.risk_engine = risk_engine or RiskScoringEngine()
        self.profit_engine = profit_engine or ProfitEngine()

        self._adapters: Dict[str, BaseExchangeAdapter] = {}
        for adapter in (adapters or {}).values():
            self.register_adapter(adapter)

        self._executor = ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix="arbscope-assess",
        )
        self._sweeper: Optional[asyncio.Task] = None
        self._counters = {
            "assessments": 0,
            "cache_hits": 0,
            "defaults": 0,
            "suspicious": 0,
        }

    def register_adapter(self, adapter: BaseExchangeAdapter) -> None:
        self._adapters[normalize_exchange(adapter.exchange)] = adapter
        logger.info("adapter_registered", exchange=adapter.exchange)

    def adapter_for(self, exchange: str) -> Optional[BaseExchangeAdapter]:
        return self._adapters.get(normalize_exchange(exchange))

    # ─── Public API ─────────────────────────────────────────────

    async def assess(self, opportunity: ArbitrageOpportunity, force_recalculate: bool = False) -> RiskAssessment:
        """
        Assess an opportunity and write consistent values back onto it.
        Idempotent: repeated calls within the cache TTL return the same record.
        """
        key = opportunity.cache_key
        if not force_recalculate:
            cached = self.store.get_assessment(key)
            if cached is not None:
                self._counters["cache_hits"] += 1
                opportunity.risk_assessment = cached
                self.ensure_consistent_values(opportunity)
                return cached

        if self.risk_engine.is_suspicious(opportunity.quoted_profit_pct):
            self._counters["suspicious"] += 1
            assessment = self.risk_engine.suspicious_assessment(opportunity)
            assessment.profit_metrics = self._fallback_metrics(opportunity, assessment)
            return self._commit(opportunity, assessment, key)

        try:
            snapshot = await self._collect(opportunity)
            loop = asyncio.get_running_loop()
            assessment = await loop.run_in_executor(self._executor, self._score, opportunity, snapshot)
            opportunity.buy_fee = snapshot.buy_fee
            opportunity.sell_fee = snapshot.sell_fee
        except MarketDataError as e:
            logger.warning("market_data_unavailable", key=key, error=str(e))
            assessment = self._default_for(opportunity)
        except Exception as e:
            logger.error("assessment_failed", key=key, error=str(e), error_type=type(e).__name__)
            assessment = self._default_for(opportunity)

        self._counters["assessments"] += 1
        return self._commit(opportunity, assessment, key)

    def submit(self, opportunity: ArbitrageOpportunity, force_recalculate: bool = False) -> "asyncio.Task[RiskAssessment]":
        """Schedule an assessment and return a handle the caller may abandon."""
        return asyncio.ensure_future(self.assess(opportunity, force_recalculate))

    async def assess_many(
        self, opportunities: List[ArbitrageOpportunity], force_recalculate: bool = False
    ) -> List[RiskAssessment]:
        return list(await asyncio.gather(*(self.assess(o, force_recalculate) for o in opportunities)))

    def ensure_consistent_values(self, opportunity: ArbitrageOpportunity) -> ArbitrageOpportunity:
        """Re-derive every opportunity-level field from its authoritative assessment."""
        assessment = opportunity.risk_assessment
        if assessment is None:
            assessment = self._default_for(opportunity)
            opportunity.risk_assessment = assessment
        metrics = assessment.profit_metrics
        if metrics is None:
            metrics = self._fallback_metrics(opportunity, assessment)
            assessment.profit_metrics = metrics

        opportunity.risk_score = assessment.overall_risk_score
        opportunity.liquidity = assessment.liquidity_score
        opportunity.volatility = assessment.volatility_score
        opportunity.slippage = assessment.slippage_estimate
        opportunity.execution_time_minutes = assessment.execution_time_minutes

        opportunity.profit = metrics.profit
        opportunity.profit_percent = metrics.basic_profit_pct
        opportunity.slippage_adjusted_profit_percent = metrics.slippage_adjusted_profit_pct
        opportunity.net_profit_percent = metrics.net_profit_pct
        opportunity.time_adjusted_profit_percent = metrics.time_adjusted_profit_pct
        opportunity.annualized_return = metrics.annualized_return
        opportunity.risk_adjusted_return = metrics.risk_adjusted_return
        opportunity.opportunity_score = metrics.opportunity_score
        opportunity.is_viable = (
            assessment.is_viable
            and self.profit_engine.is_viable_profit(metrics.slippage_adjusted_profit_pct)
        )
        return opportunity

    # ─── Data Collection ────────────────────────────────────────

    async def _fetch(self, label: str, exchange: str, request: Awaitable) -> Any:
        try:
            return await asyncio.wait_for(request, timeout=self.settings.fetch_timeout_seconds)
        except asyncio.TimeoutError:
            raise MarketDataError(f"{label} from {exchange} timed out")
        except Exception as e:
            raise MarketDataError(f"{label} from {exchange} failed: {e}") from e

    async def _collect(self, opportunity: ArbitrageOpportunity) -> MarketSnapshot:
        """Reuse snapshots already on the opportunity; fetch the rest concurrently."""
        snapshot = MarketSnapshot(
            buy_ticker=opportunity.buy_ticker,
            sell_ticker=opportunity.sell_ticker,
            buy_book=opportunity.buy_order_book,
            sell_book=opportunity.sell_order_book,
            buy_candles=opportunity.buy_candles,
            sell_candles=opportunity.sell_candles,
            buy_fee=opportunity.buy_fee if opportunity.buy_fee is not None else DEFAULT_FEE,
            sell_fee=opportunity.sell_fee if opportunity.sell_fee is not None else DEFAULT_FEE,
        )
        s = self.settings
        symbol = opportunity.symbol
        requests: Dict[str, Awaitable] = {}

        for prefix, exchange, is_buy, fee in (
            ("buy", opportunity.buy_exchange, True, opportunity.buy_fee),
            ("sell", opportunity.sell_exchange, False, opportunity.sell_fee),
        ):
            adapter = self.adapter_for(exchange)
            if adapter is None:
                continue
            if getattr(snapshot, f"{prefix}_ticker") is None:
                requests[f"{prefix}_ticker"] = self._fetch(
                    "ticker", exchange, adapter.get_ticker(symbol))
            if getattr(snapshot, f"{prefix}_book") is None:
                requests[f"{prefix}_book"] = self._fetch(
                    "order_book", exchange, adapter.get_order_book(symbol, s.order_book_depth))
            if getattr(snapshot, f"{prefix}_candles") is None:
                requests[f"{prefix}_candles"] = self._fetch(
                    "candles", exchange,
                    adapter.get_historical_candles(symbol, s.candle_interval, s.candle_count))
            if fee is None:
                requests[f"{prefix}_fee"] = self._fetch(
                    "trading_fee", exchange, adapter.get_trading_fee(symbol, is_buy))

        if not requests:
            return snapshot

        results = await asyncio.gather(*requests.values(), return_exceptions=True)
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            # Let every request finish (bounded by its timeout) before reporting
            raise MarketDataError("; ".join(str(f) for f in failures))

        for name, value in zip(requests.keys(), results):
            if value is not None:
                setattr(snapshot, name, value)

        logger.debug("market_data_collected", symbol=symbol, fetched=list(requests.keys()))
        return snapshot

    # ─── Scoring ────────────────────────────────────────────────

    def _score(self, opportunity: ArbitrageOpportunity, snapshot: MarketSnapshot) -> RiskAssessment:
        """CPU-side scoring; runs on the worker pool."""
        ms = self.market_stats
        asset = opportunity.base_asset

        tickers = [t for t in (snapshot.buy_ticker, snapshot.sell_ticker) if t is not None]
        candles = snapshot.candles
        reference = None
        if tickers:
            volatility_pct = max(ms.volatility_from_ticker(t) for t in tickers)
            reference = max(tickers, key=ms.volatility_from_ticker)
            level = ms.asset_volatility_level(asset, reference)
        elif candles:
            # Per venue, so returns never span the two series; daily fraction -> percent
            series = [c for c in (snapshot.buy_candles, snapshot.sell_candles) if c]
            volatility_pct = max(ms.volatility_from_candles(c) for c in series) * 100
            level = ms.classify_volatility(volatility_pct)
        else:
            volatility_pct = ms.settings.default_volatility_pct
            level = ms.asset_volatility_level(asset, reference)

        if candles:
            volatility_score = ms.volatility_score_from_candles(candles)
        else:
            volatility_score = ms.volatility_score_from_pct(volatility_pct)

        liquidity = ms.liquidity_score(snapshot.buy_book, snapshot.sell_book, asset)
        depth = ms.market_depth_score(snapshot.buy_book, snapshot.sell_book)

        if opportunity.trade_size:
            trade_size = opportunity.trade_size
        elif snapshot.buy_book is not None and snapshot.sell_book is not None:
            trade_size = self.risk_engine.optimal_trade_size(snapshot.buy_book, snapshot.sell_book)
        else:
            trade_size = self.risk_engine.trade_size_for_profit(opportunity.quoted_profit_pct)
        units = safe_divide(trade_size, opportunity.buy_price)
        now = self.clock()

        buy_est = self.slippage_engine.estimate(
            snapshot.buy_book, units, TradeSide.BUY, ticker=snapshot.buy_ticker,
            volatility=level, exchange=opportunity.buy_exchange, symbol=opportunity.symbol, now=now,
        )
        sell_est = self.slippage_engine.estimate(
            snapshot.sell_book, units, TradeSide.SELL, ticker=snapshot.sell_ticker,
            volatility=level, exchange=opportunity.sell_exchange, symbol=opportunity.symbol, now=now,
        )

        exec_time = self.risk_engine.estimate_execution_time(
            opportunity.buy_exchange, opportunity.sell_exchange, volatility_score)

        inputs = RiskInputs(
            buy_exchange=opportunity.buy_exchange,
            sell_exchange=opportunity.sell_exchange,
            quoted_profit_pct=opportunity.quoted_profit_pct,
            volatility_pct=volatility_pct,
            liquidity_score=liquidity,
            volatility_score=volatility_score,
            market_depth_score=depth,
            buy_slippage=buy_est.slippage,
            sell_slippage=sell_est.slippage,
            buy_fee=snapshot.buy_fee,
            sell_fee=snapshot.sell_fee,
            execution_time_minutes=exec_time,
            optimal_trade_size=trade_size,
        )
        assessment = self.risk_engine.assess(inputs, opportunity)

        pe = self.profit_engine
        basic = pe.basic_profit_pct(
            opportunity.buy_price, opportunity.sell_price, snapshot.buy_fee, snapshot.sell_fee)
        adjusted = pe.slippage_adjusted_profit_pct(
            opportunity.buy_price, opportunity.sell_price, snapshot.buy_fee, snapshot.sell_fee,
            buy_est.slippage, sell_est.slippage, buy_est.fill_rate, sell_est.fill_rate,
        )
        transfer = pe.transfer_fees_for(asset, opportunity.buy_exchange, opportunity.sell_exchange)
        profit = pe.comprehensive_arbitrage_profit(
            trade_size,
            opportunity.buy_price * (1 + buy_est.slippage),
            opportunity.sell_price * (1 - sell_est.slippage),
            snapshot.buy_fee, snapshot.sell_fee,
            **transfer,
        )
        annualized = pe.annualized_return(adjusted, exec_time)
        exchange_risk = pe.combined_exchange_risk(opportunity.buy_exchange, opportunity.sell_exchange)

        assessment.roi_efficiency = pe.roi_efficiency(adjusted, exec_time)
        assessment.profit_metrics = ProfitMetrics(
            basic_profit_pct=basic,
            slippage_adjusted_profit_pct=adjusted,
            net_profit_pct=profit.percentage_profit,
            time_adjusted_profit_pct=pe.time_adjusted_profit(adjusted, exec_time, level),
            annualized_return=annualized,
            risk_adjusted_return=pe.risk_adjusted_return(annualized, level),
            opportunity_score=pe.opportunity_score(adjusted, exec_time, level, liquidity, exchange_risk),
            trade_size=trade_size,
            volatility_level=level,
            profit=profit,
        )
        return assessment

    def _fallback_metrics(self, opportunity: ArbitrageOpportunity, assessment: RiskAssessment) -> ProfitMetrics:
        """Profit figures from quoted prices alone, for default and suspicious states."""
        pe = self.profit_engine
        buy_fee = opportunity.buy_fee if opportunity.buy_fee is not None else DEFAULT_FEE
        sell_fee = opportunity.sell_fee if opportunity.sell_fee is not None else DEFAULT_FEE
        basic = pe.basic_profit_pct(opportunity.buy_price, opportunity.sell_price, buy_fee, sell_fee)
        adjusted = pe.slippage_adjusted_profit_pct(
            opportunity.buy_price, opportunity.sell_price, buy_fee, sell_fee,
            assessment.buy_slippage, assessment.sell_slippage,
        )
        minutes = assessment.execution_time_minutes
        trade_size = opportunity.trade_size or assessment.optimal_trade_size
        level = VolatilityLevel.MEDIUM
        annualized = pe.annualized_return(adjusted, minutes)
        return ProfitMetrics(
            basic_profit_pct=basic,
            slippage_adjusted_profit_pct=adjusted,
            net_profit_pct=adjusted,
            time_adjusted_profit_pct=pe.time_adjusted_profit(adjusted, minutes, level),
            annualized_return=annualized,
            risk_adjusted_return=pe.risk_adjusted_return(annualized, level),
            opportunity_score=pe.opportunity_score(
                adjusted, minutes, level, assessment.liquidity_score,
                pe.combined_exchange_risk(opportunity.buy_exchange, opportunity.sell_exchange)),
            trade_size=trade_size,
            volatility_level=level,
            profit=pe.comprehensive_arbitrage_profit(
                trade_size, opportunity.buy_price, opportunity.sell_price, buy_fee, sell_fee),
        )

    def _default_for(self, opportunity: ArbitrageOpportunity) -> RiskAssessment:
        self._counters["defaults"] += 1
        assessment = self.risk_engine.default_assessment()
        assessment.buy_fee_pct = (opportunity.buy_fee if opportunity.buy_fee is not None else DEFAULT_FEE) * 100
        assessment.sell_fee_pct = (opportunity.sell_fee if opportunity.sell_fee is not None else DEFAULT_FEE) * 100
        assessment.profit_metrics = self._fallback_metrics(opportunity, assessment)
        return assessment

    def _commit(self, opportunity: ArbitrageOpportunity, assessment: RiskAssessment,
                request_key: str) -> RiskAssessment:
        opportunity.risk_assessment = assessment
        self.ensure_consistent_values(opportunity)
        # Defaults are not cached so the next call retries the fetch
        if not assessment.is_default:
            # Fetched fees change the key; file under both the request and the resolved form
            self.store.put_assessment(request_key, assessment)
            resolved_key = opportunity.cache_key
            if resolved_key != request_key:
                self.store.put_assessment(resolved_key, assessment)
        logger.info("opportunity_assessed",
                    symbol=opportunity.symbol,
                    buy_exchange=opportunity.buy_exchange,
                    sell_exchange=opportunity.sell_exchange,
                    risk_level=assessment.risk_level,
                    score=assessment.display_score,
                    viable=opportunity.is_viable,
                    default=assessment.is_default)
        return assessment

    # ─── Maintenance ────────────────────────────────────────────

    def sweep(self) -> Dict[str, int]:
        return self.store.sweep()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                logger.error("sweep_failed", error=str(e))

    def start_sweeper(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.ensure_future(self._sweep_loop())
            logger.info("sweeper_started", interval=self.settings.sweep_interval_seconds)

    async def stop_sweeper(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
            logger.info("sweeper_stopped")

    async def shutdown(self) -> None:
        await self.stop_sweeper()
        self._executor.shutdown(wait=False)

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            **self._counters,
            "adapters": sorted(self._adapters.keys()),
            "sweeper_running": self._sweeper is not None and not self._sweeper.done(),
            "cache": self.store.stats,
        }


# Singleton
_coordinator: Optional[AssessmentCoordinator] = None


def get_coordinator() -> AssessmentCoordinator:
    global _coordinator
    if _coordinator is None:
        _coordinator = AssessmentCoordinator(store=get_store())
    return _coordinator
