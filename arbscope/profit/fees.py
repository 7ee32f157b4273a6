"""
ARBSCOPE - Transfer Fee Tables
Withdrawal, network and deposit fees in asset units, plus fixed transfer costs.
"""
from typing import Dict

from arbscope.analytics.exchange_profiles import lookup
from arbscope.utils.helpers import extract_base_asset, safe_divide

WITHDRAWAL_FEES: Dict[str, Dict[str, float]] = {
    "BTC": {"binance": 0.0005, "coinbase": 0.0003, "kraken": 0.0002, "kucoin": 0.0005, "bybit": 0.0006},
    "ETH": {"binance": 0.005, "coinbase": 0.003, "kraken": 0.004, "kucoin": 0.006, "bybit": 0.004},
    "USDT": {"binance": 20.0, "coinbase": 25.0, "kraken": 5.0, "kucoin": 10.0, "bybit": 15.0},
}
DEFAULT_WITHDRAWAL_FEES: Dict[str, float] = {"BTC": 0.0005, "ETH": 0.005, "USDT": 20.0}
FALLBACK_WITHDRAWAL_FEE = 0.001

NETWORK_FEES: Dict[str, float] = {
    "BTC": 0.0001, "ETH": 0.003, "SOL": 0.0001, "XRP": 0.0001, "USDT": 5.0, "USDC": 5.0,
}
DEFAULT_NETWORK_FEE = 0.001

TRANSFER_FIXED_COSTS: Dict[str, float] = {
    "BTC": 0.0005, "ETH": 0.005, "SOL": 0.01, "XRP": 0.02, "USDT": 10.0, "USDC": 10.0,
}
DEFAULT_TRANSFER_COST = 0.01


def withdrawal_fee(asset: str, exchange: str) -> float:
    asset = extract_base_asset(asset)
    table = WITHDRAWAL_FEES.get(asset)
    if table is None:
        return FALLBACK_WITHDRAWAL_FEE
    return lookup(table, exchange, DEFAULT_WITHDRAWAL_FEES[asset])


def network_fee(asset: str) -> float:
    return NETWORK_FEES.get(extract_base_asset(asset), DEFAULT_NETWORK_FEE)


def deposit_fee(asset: str, exchange: str) -> float:
    # Deposits are free on every supported venue
    return 0.0


def transfer_cost_pct(asset: str, amount: float) -> float:
    """Fixed transfer cost as a percentage of the transferred amount."""
    fixed = TRANSFER_FIXED_COSTS.get(extract_base_asset(asset), DEFAULT_TRANSFER_COST)
    return safe_divide(fixed, amount) * 100
