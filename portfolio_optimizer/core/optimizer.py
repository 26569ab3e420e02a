"""
Mean-Variance Optimizer - Efficient Frontier Construction
=========================================================

This module builds a long-only efficient frontier by sweeping target
returns between the lowest and highest asset expected return and solving
for the weights at each target.

Solvers:
- One asset: the whole portfolio sits in that asset
- Two assets: closed form from the return constraint
      w1 * r1 + (1 - w1) * r2 = target  =>  w1 = (target - r2) / (r1 - r2)
  and, when r1 == r2, the analytic minimum variance weight
      w1 = (s2^2 - s12) / (s1^2 + s2^2 - 2 * s12)
- N > 2 assets, 'heuristic' (default): Sharpe-score base weights nudged
  toward the target return. This is an approximation to the quadratic
  program, not an exact solution.
- N > 2 assets, 'slsqp': exact quadratic program solved with scipy
      minimize: w^T * Sigma * w
      subject to: sum(w) = 1, w^T * mu = target, 0 <= w <= 1

Whatever the solver, every weight vector is long-only and fully invested,
and the frontier is returned sorted ascending by risk sqrt(w^T * Sigma * w).
"""

import logging
import warnings
from typing import Dict, List, Optional

import numpy as np
from scipy.optimize import minimize

from portfolio_optimizer.core.errors import OptimizationError
from portfolio_optimizer.core.models import FrontierPoint

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-6
EQUAL_RETURN_TOLERANCE = 1e-6
# Heuristic skips the return nudge when already this close to the target
TARGET_RETURN_TOLERANCE = 0.01


class MeanVarianceOptimizer:
    """
    Long-only mean-variance optimizer over a fixed asset ordering.

    Attributes:
        expected_returns (np.ndarray): Annual expected return per asset
        cov_matrix (np.ndarray): Annualized covariance matrix
        asset_names (List[str]): Symbols, in matrix order
        n_assets (int): Number of assets
        rf_rate (float): Annual risk-free rate
        method (str): 'heuristic' or 'slsqp' for more than two assets

    Example:
        >>> optimizer = MeanVarianceOptimizer(
        ...     np.array([0.10, 0.05]),
        ...     np.array([[0.0225, 0.0], [0.0, 0.0025]]),
        ...     ['A', 'B'])
        >>> weights = optimizer.optimize_for_target_return(0.075)
    """

    def __init__(
        self,
        expected_returns: np.ndarray,
        cov_matrix: np.ndarray,
        asset_names: Optional[List[str]] = None,
        rf_rate: float = 0.045,
        method: str = 'heuristic'
    ):
        """
        Initialize the optimizer.

        Args:
            expected_returns: Vector of annual expected returns
            cov_matrix: Annualized covariance matrix (n x n)
            asset_names: Optional symbols (default: Asset_1, Asset_2, ...)
            rf_rate: Annual risk-free rate
            method: Solver for more than two assets

        Raises:
            OptimizationError: If dimensions don't match or inputs are not finite
        """
        self.expected_returns = np.array(expected_returns, dtype=float).flatten()
        self.cov_matrix = np.atleast_2d(np.array(cov_matrix, dtype=float))
        self.n_assets = len(self.expected_returns)
        self.rf_rate = rf_rate
        self.method = method

        self._validate_inputs()

        if asset_names is None:
            self.asset_names = [f"Asset_{i+1}" for i in range(self.n_assets)]
        else:
            self.asset_names = list(asset_names)
            if len(self.asset_names) != self.n_assets:
                raise OptimizationError(
                    f"Got {len(self.asset_names)} asset names for {self.n_assets} assets"
                )

    def _validate_inputs(self):
        """Validate that inputs are properly formatted."""
        if self.n_assets == 0:
            raise OptimizationError("At least one asset is required")

        if self.cov_matrix.shape != (self.n_assets, self.n_assets):
            raise OptimizationError(
                f"Covariance matrix shape {self.cov_matrix.shape} doesn't match "
                f"number of assets {self.n_assets}"
            )

        if not (np.all(np.isfinite(self.expected_returns)) and np.all(np.isfinite(self.cov_matrix))):
            raise OptimizationError("Expected returns and covariance must be finite")

        if not np.allclose(self.cov_matrix, self.cov_matrix.T):
            warnings.warn("Covariance matrix is not symmetric. Symmetrizing...")
            self.cov_matrix = (self.cov_matrix + self.cov_matrix.T) / 2

        eigenvalues = np.linalg.eigvalsh(self.cov_matrix)
        if np.any(eigenvalues < -1e-10):
            logger.debug("Covariance matrix has negative eigenvalues (min %.3e)", eigenvalues.min())

    # ------------------------------------------------------------------
    #  Portfolio statistics
    # ------------------------------------------------------------------

    def portfolio_return(self, weights: np.ndarray) -> float:
        """
        Expected portfolio return.

        Formula: mu_p = w^T * mu
        """
        return float(np.dot(weights, self.expected_returns))

    def portfolio_variance(self, weights: np.ndarray) -> float:
        """
        Portfolio variance, clamped at zero for near-singular matrices.

        Formula: sigma_p^2 = w^T * Sigma * w
        """
        return max(0.0, float(np.dot(weights, np.dot(self.cov_matrix, weights))))

    def portfolio_std(self, weights: np.ndarray) -> float:
        """Portfolio standard deviation (volatility)."""
        return float(np.sqrt(self.portfolio_variance(weights)))

    def portfolio_sharpe(self, weights: np.ndarray) -> float:
        """
        Portfolio Sharpe ratio, 0 for a riskless portfolio.

        Formula: Sharpe = (mu_p - rf) / sigma_p
        """
        std = self.portfolio_std(weights)
        if std < 1e-10:
            return 0.0
        return (self.portfolio_return(weights) - self.rf_rate) / std

    def portfolio_stats(self, weights: np.ndarray) -> Dict[str, float]:
        """Mean, std, variance and Sharpe ratio of a weight vector."""
        var = self.portfolio_variance(weights)
        std = float(np.sqrt(var))
        ret = self.portfolio_return(weights)
        sharpe = (ret - self.rf_rate) / std if std > 1e-10 else 0.0

        return {
            'mean': ret,
            'std': std,
            'variance': var,
            'sharpe': sharpe
        }

    def get_asset_stats(self) -> Dict[str, Dict[str, float]]:
        """Per-asset mean, std and variance keyed by symbol."""
        stats = {}
        for i, name in enumerate(self.asset_names):
            variance = max(0.0, float(self.cov_matrix[i, i]))
            stats[name] = {
                'mean': float(self.expected_returns[i]),
                'std': float(np.sqrt(variance)),
                'variance': variance
            }
        return stats

    def weights_to_dict(self, weights: np.ndarray) -> Dict[str, float]:
        return {name: float(w) for name, w in zip(self.asset_names, weights)}

    # ------------------------------------------------------------------
    #  Solvers
    # ------------------------------------------------------------------

    def optimize_for_target_return(self, target_return: float) -> np.ndarray:
        """
        Find long-only weights for a target return.

        Args:
            target_return: Target annual expected return

        Returns:
            Weight vector in asset order (sums to 1, all in [0, 1])
        """
        if self.n_assets == 1:
            weights = np.ones(1)
        elif self.n_assets == 2:
            weights = self._two_asset_weights(target_return)
        elif self.method == 'slsqp':
            weights = self._slsqp_weights(target_return)
        else:
            weights = self._heuristic_weights(target_return)

        return self._finalize(weights)

    def _two_asset_weights(self, target_return: float) -> np.ndarray:
        r1, r2 = self.expected_returns
        var1 = self.cov_matrix[0, 0]
        var2 = self.cov_matrix[1, 1]
        cov12 = self.cov_matrix[0, 1]

        if abs(r1 - r2) < EQUAL_RETURN_TOLERANCE:
            # Target constraint is degenerate; take the minimum variance mix
            denominator = var1 + var2 - 2 * cov12
            w1 = (var2 - cov12) / denominator if denominator > 0 else 0.5
        else:
            w1 = (target_return - r2) / (r1 - r2)

        w1 = min(1.0, max(0.0, w1))
        return np.array([w1, 1.0 - w1])

    def _heuristic_weights(self, target_return: float) -> np.ndarray:
        """
        Sharpe-score weighting nudged toward the target return.

        1. Score each asset by max(0, (r_i - rf) / sigma_i)
        2. Normalize scores (equal weights if every score is zero)
        3. If the mix misses the target by more than 1%, scale each weight
           by 1 + adj * r_i / r_p with adj = (target - r_p) / r_p and
           renormalize
        """
        variances = np.diag(self.cov_matrix)
        scores = np.zeros(self.n_assets)
        positive = variances > 0
        scores[positive] = (self.expected_returns[positive] - self.rf_rate) / np.sqrt(variances[positive])
        scores = np.maximum(scores, 0.0)

        total = scores.sum()
        if total == 0:
            weights = np.ones(self.n_assets) / self.n_assets
        else:
            weights = scores / total

        current = self.portfolio_return(weights)
        if abs(current - target_return) <= TARGET_RETURN_TOLERANCE or current == 0:
            return weights

        adjustment = (target_return - current) / current
        adjusted = weights * (1.0 + adjustment * self.expected_returns / current)
        adjusted = np.maximum(adjusted, 0.0)

        if adjusted.sum() <= 0:
            return weights
        return adjusted / adjusted.sum()

    def _slsqp_weights(self, target_return: float) -> np.ndarray:
        w0 = np.ones(self.n_assets) / self.n_assets

        constraints = [
            {'type': 'eq', 'fun': lambda w: np.sum(w) - 1},
            {'type': 'eq', 'fun': lambda w: self.portfolio_return(w) - target_return}
        ]
        bounds = [(0, 1) for _ in range(self.n_assets)]

        result = minimize(
            self.portfolio_variance,
            w0,
            method='SLSQP',
            bounds=bounds,
            constraints=constraints,
            options={'ftol': 1e-12}
        )

        if not result.success:
            logger.warning(
                "SLSQP did not converge for target %.4f (%s); using heuristic weights",
                target_return, result.message
            )
            return self._heuristic_weights(target_return)

        return result.x

    def _finalize(self, weights: np.ndarray) -> np.ndarray:
        """Clip to [0, 1], renormalize and check the fully-invested invariant."""
        weights = np.clip(np.asarray(weights, dtype=float), 0.0, 1.0)
        total = weights.sum()
        if not np.isfinite(total) or total <= 0:
            weights = np.ones(self.n_assets) / self.n_assets
        else:
            weights = weights / total

        if (not np.all(np.isfinite(weights)) or abs(weights.sum() - 1.0) > WEIGHT_TOLERANCE
                or np.any(weights < 0) or np.any(weights > 1)):
            raise OptimizationError(f"Solver produced invalid weights: {weights}")
        return weights

    # ------------------------------------------------------------------
    #  Frontier
    # ------------------------------------------------------------------

    def efficient_frontier(self, n_points: int = 100) -> List[FrontierPoint]:
        """
        Compute the efficient frontier by discretization.

        Loops over n_points + 1 equally spaced target returns from the lowest
        to the highest asset expected return (a single target when they
        coincide) and solves for the weights at each.

        Args:
            n_points: Number of intervals in the target-return sweep

        Returns:
            Frontier points sorted ascending by risk
        """
        min_ret = float(np.min(self.expected_returns))
        max_ret = float(np.max(self.expected_returns))

        if np.isclose(min_ret, max_ret, rtol=0.0, atol=1e-12):
            target_returns = np.array([min_ret])
        else:
            target_returns = np.linspace(min_ret, max_ret, n_points + 1)

        frontier = []
        for target in target_returns:
            weights = self.optimize_for_target_return(target)
            frontier.append(FrontierPoint(
                risk=self.portfolio_std(weights),
                expected_return=self.portfolio_return(weights),
                weights=self.weights_to_dict(weights)
            ))

        frontier.sort(key=lambda p: p.risk)
        return frontier

    def minimum_variance_portfolio(self, n_points: int = 100) -> FrontierPoint:
        """Lowest-risk point of the efficient frontier."""
        return self.efficient_frontier(n_points)[0]
