"""
Data Model
==========

Value objects exchanged between the pipeline stages. Every object is
created and discarded inside a single optimization call.

Fractions (weights, returns, volatility) are kept at full precision;
``to_dict`` methods produce the presentation form of the output contract.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from portfolio_optimizer.core.errors import InputValidationError


RISK_TOLERANCES = ('conservative', 'moderate', 'aggressive', 'very_aggressive')

BUY = 'BUY'
SELL = 'SELL'


def _pct(value: float) -> float:
    """Fraction -> percent rounded to 2 decimals."""
    return round(value * 100, 2)


@dataclass(frozen=True)
class Holding:
    """A position in the portfolio, valued at cost basis."""

    symbol: str
    quantity: float
    average_cost: float

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.average_cost

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> 'Holding':
        """
        Build a holding from a request dictionary.

        Accepts ``averageCost`` or ``average_cost`` for the cost field.
        """
        if not isinstance(data, dict):
            raise InputValidationError(f"Holding must be a mapping, got {type(data).__name__}")
        missing = [k for k in ('symbol', 'quantity') if k not in data]
        cost = data.get('averageCost', data.get('average_cost'))
        if cost is None:
            missing.append('averageCost')
        if missing:
            raise InputValidationError(f"Holding is missing fields: {', '.join(missing)}")
        return cls(symbol=data['symbol'], quantity=data['quantity'], average_cost=cost)


@dataclass
class AssetSeries:
    """
    Chronological price history for one symbol.

    Attributes:
        symbol: Ticker symbol
        prices: Ordered prices, oldest first (at least 2 points)
        returns: Simple returns derived from prices (len(prices) - 1)
        synthetic: True when the series was generated instead of fetched
    """

    symbol: str
    prices: np.ndarray
    returns: np.ndarray = field(init=False)
    synthetic: bool = False

    def __post_init__(self):
        self.prices = np.asarray(self.prices, dtype=float).flatten()
        if len(self.prices) < 2:
            raise InputValidationError(
                f"Price series for {self.symbol} needs at least 2 points, got {len(self.prices)}"
            )
        self.returns = np.diff(self.prices) / self.prices[:-1]


@dataclass
class CovarianceEstimate:
    """
    Annualized statistics for a fixed asset ordering.

    ``covariance[i][j]`` and ``correlation[i][j]`` refer to ``symbols[i]``
    and ``symbols[j]``.
    """

    symbols: List[str]
    covariance: np.ndarray
    correlation: np.ndarray
    expected_returns: np.ndarray

    @property
    def volatilities(self) -> np.ndarray:
        return np.sqrt(np.clip(np.diag(self.covariance), 0.0, None))

    def expected_return_map(self) -> Dict[str, float]:
        return {s: float(r) for s, r in zip(self.symbols, self.expected_returns)}


@dataclass
class FrontierPoint:
    """One portfolio on the efficient frontier."""

    risk: float
    expected_return: float
    weights: Dict[str, float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'risk': self.risk,
            'return': self.expected_return,
            'weights': dict(self.weights),
        }


@dataclass
class SimulationResult:
    """
    Terminal-value distribution of a Monte Carlo run.

    ``values`` is sorted ascending; ``percentiles`` maps 5/25/75/95 to the
    value at index ``floor(p * scenarios)``.
    """

    scenarios: int
    values: np.ndarray
    mean: float
    success_rate: float
    percentiles: Dict[int, float]

    @property
    def worst_case(self) -> float:
        return self.percentiles[5]

    @property
    def best_case(self) -> float:
        return self.percentiles[95]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'scenarios': self.scenarios,
            'successRate': self.success_rate,
            'expectedFinalValue': self.mean,
            'worstCase': self.worst_case,
            'bestCase': self.best_case,
            'confidenceIntervals': {
                f'percentile_{p}': v for p, v in sorted(self.percentiles.items())
            },
        }


@dataclass
class RiskMetrics:
    """Risk statistics of a weighted portfolio, as fractions."""

    expected_return: float
    volatility: float
    sharpe_ratio: float
    max_drawdown: float
    value_at_risk: float
    conditional_var: float

    def to_dict(self) -> Dict[str, float]:
        """Percent values rounded to 2 decimals; VaR/CVaR as absolute losses."""
        return {
            'expectedReturn': _pct(self.expected_return),
            'volatility': _pct(self.volatility),
            'sharpeRatio': round(self.sharpe_ratio, 2),
            'maxDrawdown': _pct(self.max_drawdown),
            'valueAtRisk': _pct(abs(self.value_at_risk)),
            'conditionalVaR': _pct(abs(self.conditional_var)),
        }


@dataclass
class RebalanceAction:
    """A single buy or sell instruction moving one symbol to its target weight."""

    symbol: str
    current_weight: float
    target_weight: float
    action: str
    amount: float

    @property
    def delta(self) -> float:
        return self.target_weight - self.current_weight

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'currentWeight': _pct(self.current_weight),
            'targetWeight': _pct(self.target_weight),
            'action': self.action,
            'amount': round(self.amount, 2),
        }


@dataclass
class OptimizationResult:
    """Everything produced by one run of the optimization pipeline."""

    optimal_weights: Dict[str, float]
    efficient_frontier: List[FrontierPoint]
    risk_metrics: RiskMetrics
    monte_carlo_results: SimulationResult
    rebalance_recommendations: List[RebalanceAction]
    covariance: Optional[CovarianceEstimate] = None
    current_weights: Dict[str, float] = field(default_factory=dict)
    synthetic_symbols: Sequence[str] = ()

    @property
    def expected_returns(self) -> Dict[str, float]:
        if self.covariance is None:
            return {}
        return self.covariance.expected_return_map()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'optimalWeights': dict(self.optimal_weights),
            'efficientFrontier': [p.to_dict() for p in self.efficient_frontier],
            'riskMetrics': self.risk_metrics.to_dict(),
            'monteCarloResults': self.monte_carlo_results.to_dict(),
            'rebalanceRecommendations': [r.to_dict() for r in self.rebalance_recommendations],
        }
