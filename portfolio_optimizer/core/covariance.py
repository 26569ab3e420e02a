"""
Covariance Estimator
====================

Pairwise sample statistics of daily return series, annualized.

Series of different lengths are compared on their shared leading window:
for a pair (a, b) both are truncated to min(len(a), len(b)) before the
means are taken. Because truncation is pairwise the matrix is assembled
entry by entry rather than with a single ``np.cov`` call.

Formulas (n = shared length):
    cov(a, b)  = sum((a - mean_a) * (b - mean_b)) / (n - 1)
    corr(a, b) = sum((a - mean_a) * (b - mean_b)) / sqrt(SSa * SSb)
    annualized covariance = daily covariance * 252
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from portfolio_optimizer.core.errors import OptimizationError
from portfolio_optimizer.core.models import AssetSeries, CovarianceEstimate
from portfolio_optimizer.core.returns import annualized_mean_return


def _aligned(a: Sequence[float], b: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    n = min(len(a), len(b))
    return np.asarray(a[:n], dtype=float), np.asarray(b[:n], dtype=float)


def sample_covariance(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Sample covariance (N-1 denominator) of two return series.

    Returns 0.0 when fewer than two paired observations exist.
    """
    x, y = _aligned(a, b)
    if len(x) < 2:
        return 0.0
    return float(np.dot(x - x.mean(), y - y.mean()) / (len(x) - 1))


def sample_correlation(a: Sequence[float], b: Sequence[float]) -> float:
    """Pearson correlation; 0.0 when either series has no variance."""
    x, y = _aligned(a, b)
    if len(x) == 0:
        return 0.0
    dx = x - x.mean()
    dy = y - y.mean()
    denominator = np.sqrt(np.dot(dx, dx) * np.dot(dy, dy))
    if denominator == 0:
        return 0.0
    return float(np.dot(dx, dy) / denominator)


def covariance_matrix(
    return_series: Sequence[Sequence[float]],
    trading_days: int = 252
) -> np.ndarray:
    """
    Annualized covariance matrix of the given return series.

    Only the lower triangle is computed; the upper triangle is mirrored so
    the result is exactly symmetric.
    """
    n = len(return_series)
    cov = np.zeros((n, n))
    for i in range(n):
        for j in range(i + 1):
            value = sample_covariance(return_series[i], return_series[j]) * trading_days
            cov[i, j] = value
            cov[j, i] = value
    return cov


def correlation_matrix(return_series: Sequence[Sequence[float]]) -> np.ndarray:
    """Correlation matrix with a unit diagonal."""
    n = len(return_series)
    corr = np.eye(n)
    for i in range(n):
        for j in range(i):
            value = sample_correlation(return_series[i], return_series[j])
            corr[i, j] = value
            corr[j, i] = value
    return corr


def estimate(series: Sequence[AssetSeries], trading_days: int = 252) -> CovarianceEstimate:
    """
    Estimate annualized expected returns, covariance and correlation.

    Args:
        series: One price/return series per asset, in portfolio order
        trading_days: Periods per year used for annualization

    Returns:
        CovarianceEstimate indexed by the order of ``series``
    """
    if not series:
        raise OptimizationError("Cannot estimate covariance without any asset series")

    returns = [s.returns for s in series]
    cov = covariance_matrix(returns, trading_days)
    corr = correlation_matrix(returns)
    expected = np.array([annualized_mean_return(r, trading_days) for r in returns])

    return CovarianceEstimate(
        symbols=[s.symbol for s in series],
        covariance=cov,
        correlation=corr,
        expected_returns=expected,
    )


def compute_stats_from_returns(
    returns: np.ndarray,
    asset_names: Optional[List[str]] = None,
    trading_days: int = 1
) -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """
    Compute expected returns and covariance matrix from a T x N return table.

    Unlike ``estimate`` this assumes aligned columns and uses ``np.cov``
    directly (sample covariance, N-1).

    Args:
        returns: 2D array of returns (rows = time periods, cols = assets)
        asset_names: Optional list of asset names
        trading_days: Annualization factor (1 leaves statistics per period)

    Returns:
        Tuple of (expected_returns, cov_matrix, asset_names)

    Example:
        >>> returns = np.random.default_rng(0).normal(0, 0.01, (252, 3))
        >>> means, cov, names = compute_stats_from_returns(returns, trading_days=252)
    """
    returns = np.array(returns, dtype=float)

    if returns.ndim == 1:
        returns = returns.reshape(-1, 1)

    n_periods, n_assets = returns.shape

    expected_returns = np.mean(returns, axis=0) * trading_days

    if n_periods < 2:
        cov_matrix = np.zeros((n_assets, n_assets))
    else:
        cov_matrix = np.atleast_2d(np.cov(returns, rowvar=False, ddof=1)) * trading_days

    if asset_names is None:
        asset_names = [f"Asset_{i+1}" for i in range(n_assets)]

    return expected_returns, cov_matrix, list(asset_names)
