"""
ARBSCOPE - Base Exchange Adapter Interface
Exchange collaborators implement this interface; the scoring core only
consumes the typed snapshots it returns.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Tuple
import pandas as pd

from arbscope.data.models import Ticker, OrderBook, Candle
from arbscope.utils.logger import get_logger

logger = get_logger("adapters")


def candles_to_dataframe(candles: Optional[List[Candle]]) -> pd.DataFrame:
    """Convert a list of candles to a pandas DataFrame indexed by timestamp."""
    if not candles:
        return pd.DataFrame(columns=["open", "high", "low", "close", "volume", "timestamp"])
    data = [
        {
            "open": c.open,
            "high": c.high,
            "low": c.low,
            "close": c.close,
            "volume": c.volume,
            "timestamp": c.timestamp,
        }
        for c in candles
    ]
    df = pd.DataFrame(data)
    df.set_index("timestamp", inplace=True)
    df.sort_index(inplace=True)
    return df


class BaseExchangeAdapter(ABC):
    """Abstract base class for per-exchange market data collaborators."""

    def __init__(self, exchange: str):
        self.exchange = exchange

    @abstractmethod
    async def get_ticker(self, symbol: str) -> Optional[Ticker]:
        """Fetch the latest ticker for a symbol."""
        pass

    @abstractmethod
    async def get_order_book(self, symbol: str, depth: int = 20) -> Optional[OrderBook]:
        """Fetch an order book snapshot limited to `depth` levels per side."""
        pass

    @abstractmethod
    async def get_historical_candles(
        self, symbol: str, interval: str = "1h", count: int = 24
    ) -> List[Candle]:
        """Fetch historical candles, oldest first."""
        pass

    @abstractmethod
    async def get_trading_fee(self, symbol: str, is_buy: bool) -> Optional[float]:
        """Fetch the taker fee as a fraction (0.001 = 0.1%)."""
        pass

    def candles_to_dataframe(self, candles: List[Candle]) -> pd.DataFrame:
        return candles_to_dataframe(candles)


class SnapshotAdapter(BaseExchangeAdapter):
    """
    In-memory adapter serving preloaded snapshots.
    Used to replay captured market state and to feed the API surface.
    """

    def __init__(self, exchange: str, latency_seconds: float = 0.0):
        super().__init__(exchange)
        self.latency_seconds = latency_seconds
        self._tickers: Dict[str, Ticker] = {}
        self._books: Dict[str, OrderBook] = {}
        self._candles: Dict[str, List[Candle]] = {}
        self._fees: Dict[Tuple[str, bool], float] = {}
        self.default_fee = 0.001

    def load_ticker(self, ticker: Ticker) -> None:
        self._tickers[ticker.symbol] = ticker

    def load_order_book(self, book: OrderBook) -> None:
        self._books[book.symbol] = book

    def load_candles(self, symbol: str, candles: List[Candle]) -> None:
        self._candles[symbol] = list(candles)

    def load_fee(self, symbol: str, fee: float, is_buy: Optional[bool] = None) -> None:
        sides = (True, False) if is_buy is None else (is_buy,)
        for side in sides:
            self._fees[(symbol, side)] = fee

    async def _simulate_latency(self) -> None:
        if self.latency_seconds > 0:
            await asyncio.sleep(self.latency_seconds)

    async def get_ticker(self, symbol: str) -> Optional[Ticker]:
        await self._simulate_latency()
        return self._tickers.get(symbol)

    async def get_order_book(self, symbol: str, depth: int = 20) -> Optional[OrderBook]:
        await self._simulate_latency()
        book = self._books.get(symbol)
        if book is None:
            return None
        if len(book.bids) <= depth and len(book.asks) <= depth:
            return book
        return book.model_copy(update={"bids": book.bids[:depth], "asks": book.asks[:depth]})

    async def get_historical_candles(
        self, symbol: str, interval: str = "1h", count: int = 24
    ) -> List[Candle]:
        await self._simulate_latency()
        return self._candles.get(symbol, [])[-count:]

    async def get_trading_fee(self, symbol: str, is_buy: bool) -> Optional[float]:
        await self._simulate_latency()
        return self._fees.get((symbol, is_buy), self.default_fee)
