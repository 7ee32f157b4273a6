"""
ARBSCOPE - Exchange & Asset Profiles
Static per-exchange and per-asset lookup tables used by the scoring engines.
"""
from typing import Dict

from arbscope.utils.helpers import normalize_exchange

# Base liquidity of an asset, independent of any order book
ASSET_LIQUIDITY: Dict[str, float] = {
    "BTC": 1.0, "ETH": 0.95, "SOL": 0.9, "BNB": 0.9, "XRP": 0.85,
    "ADA": 0.8, "USDT": 1.0, "USDC": 0.98,
}
DEFAULT_ASSET_LIQUIDITY = 0.75

# Execution quality multiplier on base slippage (lower = tighter fills)
EXCHANGE_SLIPPAGE_FACTORS: Dict[str, float] = {
    "binance": 0.85, "coinbase": 0.90, "kraken": 0.88, "bybit": 0.95,
    "okx": 1.0, "kucoin": 1.05, "huobi": 1.05, "gate": 1.15,
}

# Counterparty risk, lower is better
EXCHANGE_RISK: Dict[str, float] = {
    "binance": 0.15, "coinbase": 0.18, "kraken": 0.17, "bybit": 0.25,
    "okx": 0.28, "kucoin": 0.30, "huobi": 0.32, "gate": 0.35,
}
DEFAULT_EXCHANGE_RISK = 0.40

# Reliability, higher is better
EXCHANGE_RELIABILITY: Dict[str, float] = {
    "binance": 0.9, "coinbase": 0.85, "kraken": 0.8, "bybit": 0.75,
    "kucoin": 0.75, "okx": 0.75, "gemini": 0.7, "bitfinex": 0.65,
    "huobi": 0.7, "gateio": 0.7,
}

# Order-routing speed, higher is faster
EXCHANGE_SPEED: Dict[str, float] = {
    "binance": 0.9, "okx": 0.85, "bybit": 0.8, "kucoin": 0.75,
    "huobi": 0.7, "gateio": 0.7, "kraken": 0.65, "coinbase": 0.6,
    "gemini": 0.6, "bitfinex": 0.5,
}

# Multiplier on expected execution minutes
EXCHANGE_TIME_FACTORS: Dict[str, float] = {
    "binance": 0.7, "coinbase": 1.1, "kraken": 1.3, "kucoin": 1.2,
    "okx": 0.85, "bybit": 0.8, "huobi": 0.9,
}

# Fallback daily volatility by asset family
_VOLATILITY_MAJORS = {"BTC": 0.025, "ETH": 0.03}
_VOLATILITY_ALTS = {"SOL", "AVAX", "DOT"}
_VOLATILITY_MEMES = {"SHIB", "DOGE", "PEPE"}


def lookup(table: Dict[str, float], exchange: str, default: float) -> float:
    """Find an exchange in a table, tolerating suffixes like 'gateio' vs 'gate'."""
    name = normalize_exchange(exchange)
    if not name:
        return default
    if name in table:
        return table[name]
    if len(name) < 3:
        return default
    for key, value in table.items():
        if name.startswith(key) or key.startswith(name):
            return value
    return default


def asset_liquidity(asset: str) -> float:
    return ASSET_LIQUIDITY.get((asset or "").upper(), DEFAULT_ASSET_LIQUIDITY)


def default_asset_volatility(asset: str) -> float:
    asset = (asset or "").upper()
    if asset in _VOLATILITY_MAJORS:
        return _VOLATILITY_MAJORS[asset]
    if asset in _VOLATILITY_ALTS:
        return 0.06
    if asset in _VOLATILITY_MEMES:
        return 0.09
    if "USD" in asset:
        return 0.002
    return 0.04
