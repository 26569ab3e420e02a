"""
Return Modeler
==============

Turns a current price and per-asset volatility/drift assumptions into a
synthetic price history, and price histories into return series.

Synthetic histories follow geometric Brownian motion, generated backward
from the most recent price:

    P[t-1] = P[t] / exp(mu * dt + sigma * sqrt(dt) * z),   dt = 1 / 252

with z drawn by the Box-Muller transform from an explicit random stream.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from portfolio_optimizer.core.config import DEFAULT_CONFIG, OptimizerConfig
from portfolio_optimizer.core.models import AssetSeries

logger = logging.getLogger(__name__)

BASE_PRICE = 100.0


def box_muller(rng: np.random.Generator, size) -> np.ndarray:
    """
    Draw standard normal variates with the Box-Muller transform.

    Formula: z = sqrt(-2 ln u1) * cos(2 pi u2)

    Args:
        rng: Random stream; the only source of randomness
        size: Output shape (int or tuple)

    Returns:
        Array of independent N(0, 1) draws
    """
    # rng.random() is in [0, 1); 1 - u keeps u1 away from zero
    u1 = 1.0 - rng.random(size)
    u2 = rng.random(size)
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def asset_assumptions(symbol: str, config: OptimizerConfig = DEFAULT_CONFIG) -> Tuple[float, float]:
    """Return (annual volatility, annual drift) assumed for *symbol*."""
    return config.volatility_for(symbol), config.return_for(symbol)


def generate_price_history(
    current_price: float,
    volatility: float,
    drift: float,
    days: int,
    rng: np.random.Generator,
    trading_days: int = 252
) -> np.ndarray:
    """
    Generate a GBM price path of ``days`` points ending at ``current_price``.

    Args:
        current_price: Most recent price (last element of the result)
        volatility: Annual volatility
        drift: Annual expected return
        days: Number of price points
        rng: Random stream
        trading_days: Periods per year

    Returns:
        Chronological price array
    """
    dt = 1.0 / trading_days
    shocks = box_muller(rng, days - 1) * volatility * np.sqrt(dt)
    log_steps = drift * dt + shocks

    # Walk backward: each earlier price divides out one step
    prices = np.empty(days)
    prices[-1] = current_price
    for i in range(days - 2, -1, -1):
        prices[i] = prices[i + 1] / np.exp(log_steps[i])
    return prices


def simple_returns(prices: Sequence[float]) -> np.ndarray:
    """Period-over-period simple returns: (P[t] - P[t-1]) / P[t-1]."""
    prices = np.asarray(prices, dtype=float)
    return np.diff(prices) / prices[:-1]


def annualized_mean_return(returns: Sequence[float], trading_days: int = 252) -> float:
    """Arithmetic mean daily return scaled to a year."""
    returns = np.asarray(returns, dtype=float)
    if len(returns) == 0:
        return 0.0
    return float(np.mean(returns) * trading_days)


def annualized_geometric_return(returns: Sequence[float], trading_days: int = 252) -> float:
    """Compound growth of the return series, expressed per year."""
    returns = np.asarray(returns, dtype=float)
    if len(returns) == 0:
        return 0.0
    growth = np.prod(1.0 + returns)
    if growth <= 0:
        return -1.0
    return float(growth ** (trading_days / len(returns)) - 1.0)


def synthetic_series(
    symbol: str,
    rng: np.random.Generator,
    current_price: Optional[float] = None,
    config: OptimizerConfig = DEFAULT_CONFIG
) -> AssetSeries:
    """
    Build a synthetic ``AssetSeries`` for *symbol*.

    When no current price is known the path ends at a base price of 100;
    returns are scale-free, so the statistics are unaffected.
    """
    volatility, drift = asset_assumptions(symbol, config)
    end_price = BASE_PRICE if current_price is None else current_price
    prices = generate_price_history(
        end_price, volatility, drift, config.history_days, rng, config.trading_days
    )
    series = AssetSeries(symbol, prices, synthetic=True)
    logger.debug(
        "%s: synthetic history (vol=%.2f, drift=%.2f, geometric annual return=%.2f%%)",
        symbol, volatility, drift,
        annualized_geometric_return(series.returns, config.trading_days) * 100
    )
    return series
