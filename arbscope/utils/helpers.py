"""
ARBSCOPE - Common Utility Functions
"""
from datetime import datetime, timezone
from typing import Optional
import math

QUOTE_ASSETS = ("USDT", "USDC", "BUSD", "USD", "EUR", "BTC", "ETH")


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def utc_timestamp() -> str:
    """Return current UTC timestamp as ISO string."""
    return utc_now().isoformat()


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safe division avoiding ZeroDivisionError."""
    if denominator == 0:
        return default
    return numerator / denominator


def clamp(value: float, min_val: float = 0.0, max_val: float = 1.0) -> float:
    """Clamp a value between min and max. NaN collapses to the lower bound."""
    if value is None or math.isnan(value):
        return min_val
    return max(min_val, min(max_val, value))


def normalize_exchange(exchange: Optional[str]) -> str:
    """Normalize an exchange id for table lookups: 'Gate.io' -> 'gateio'."""
    if not exchange:
        return ""
    return exchange.strip().lower().replace(".", "").replace(" ", "").replace("-", "")


def extract_base_asset(symbol: Optional[str]) -> str:
    """
    Extract the base asset of a trading pair.
    BTC/USDT -> BTC, ETH-USD -> ETH, SOLUSDT -> SOL.
    """
    if not symbol:
        return ""
    upper = symbol.strip().upper()
    for sep in ("/", "-", "_", ":"):
        if sep in upper:
            return upper.split(sep)[0]
    for quote in QUOTE_ASSETS:
        if upper.endswith(quote) and len(upper) > len(quote):
            return upper[: -len(quote)]
    return upper
