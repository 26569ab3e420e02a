"""
Optimizer Configuration
=======================

All tunable assumptions of an optimization run live in one immutable
``OptimizerConfig`` value that is passed to the engine at construction.

Defaults:
- 1,000 Monte Carlo scenarios over a one-year horizon (252 trading days)
- 252 days of price history per asset
- 4.5% annual risk-free rate
- 100 frontier intervals (101 target returns)
- Rebalance threshold of 1% weight drift
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping

from portfolio_optimizer.core.errors import InputValidationError


# Annualized volatility assumptions used when generating synthetic history
VOLATILITY_TABLE: Mapping[str, float] = MappingProxyType({
    'AAPL': 0.25,
    'MSFT': 0.22,
    'GOOGL': 0.28,
    'GOOG': 0.28,
    'AMZN': 0.32,
    'TSLA': 0.45,
    'META': 0.35,
    'NVDA': 0.40,
    'SPY': 0.16,
    'QQQ': 0.20,
    'VTI': 0.15,
    'IWM': 0.22,
    'BND': 0.03,
    'GLD': 0.18,
})

# Annualized drift assumptions used when generating synthetic history
RETURN_TABLE: Mapping[str, float] = MappingProxyType({
    'AAPL': 0.15,
    'MSFT': 0.14,
    'GOOGL': 0.12,
    'GOOG': 0.12,
    'AMZN': 0.16,
    'TSLA': 0.20,
    'META': 0.10,
    'NVDA': 0.25,
    'SPY': 0.10,
    'QQQ': 0.12,
    'VTI': 0.10,
    'IWM': 0.09,
    'BND': 0.03,
    'GLD': 0.05,
})

DEFAULT_VOLATILITY = 0.25
DEFAULT_RETURN = 0.10

FRONTIER_METHODS = ('heuristic', 'slsqp')


@dataclass(frozen=True)
class OptimizerConfig:
    """
    Immutable settings for one optimization pipeline.

    Attributes:
        scenarios: Number of Monte Carlo scenarios
        trading_days: Trading days per year (simulation horizon and annualization)
        history_days: Length of each price history in points
        risk_free_rate: Annual risk-free rate (decimal)
        frontier_points: Number of intervals in the target-return sweep
        rebalance_threshold: Minimum absolute weight drift that triggers an action
        confidence_level: Tail probability for VaR/CVaR (0.05 = 95% confidence)
        min_drawdown_observations: Minimum aligned returns needed for drawdown
        max_workers: Thread pool size for per-symbol history fetches
        fetch_timeout: Seconds to wait for one symbol's data before falling back
        frontier_method: 'heuristic' or 'slsqp' for the N-asset optimizer
        simulation_chunk_size: Scenarios per independent random sub-stream
        simulation_workers: Threads used to run simulation chunks
        volatility_table: Per-symbol annual volatility for synthetic history
        return_table: Per-symbol annual drift for synthetic history
        default_volatility: Volatility for symbols missing from the table
        default_return: Drift for symbols missing from the table
    """

    scenarios: int = 1000
    trading_days: int = 252
    history_days: int = 252
    risk_free_rate: float = 0.045
    frontier_points: int = 100
    rebalance_threshold: float = 0.01
    confidence_level: float = 0.05
    min_drawdown_observations: int = 20
    max_workers: int = 8
    fetch_timeout: float = 10.0
    frontier_method: str = 'heuristic'
    simulation_chunk_size: int = 250
    simulation_workers: int = 1
    volatility_table: Mapping[str, float] = field(default_factory=lambda: VOLATILITY_TABLE, repr=False)
    return_table: Mapping[str, float] = field(default_factory=lambda: RETURN_TABLE, repr=False)
    default_volatility: float = DEFAULT_VOLATILITY
    default_return: float = DEFAULT_RETURN

    def __post_init__(self):
        positive_ints = (
            'scenarios', 'trading_days', 'frontier_points', 'max_workers',
            'simulation_chunk_size', 'simulation_workers',
        )
        for name in positive_ints:
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise InputValidationError(f"{name} must be a positive integer, got {value!r}")

        if not isinstance(self.history_days, int) or self.history_days < 2:
            raise InputValidationError(
                f"history_days must be an integer >= 2, got {self.history_days!r}"
            )
        if not 0 < self.confidence_level < 1:
            raise InputValidationError(
                f"confidence_level must be in (0, 1), got {self.confidence_level}"
            )
        if self.rebalance_threshold < 0:
            raise InputValidationError("rebalance_threshold must be non-negative")
        if self.fetch_timeout <= 0:
            raise InputValidationError("fetch_timeout must be positive")
        if self.min_drawdown_observations < 0:
            raise InputValidationError("min_drawdown_observations must be non-negative")
        if self.frontier_method not in FRONTIER_METHODS:
            raise InputValidationError(
                f"Unknown frontier method: {self.frontier_method}. "
                f"Use one of {', '.join(FRONTIER_METHODS)}"
            )

        # Freeze caller-supplied tables
        object.__setattr__(self, 'volatility_table', MappingProxyType(dict(self.volatility_table)))
        object.__setattr__(self, 'return_table', MappingProxyType(dict(self.return_table)))

    def with_overrides(self, **changes) -> 'OptimizerConfig':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def volatility_for(self, symbol: str) -> float:
        """Annual volatility assumption for *symbol*."""
        return self.volatility_table.get(symbol, self.default_volatility)

    def return_for(self, symbol: str) -> float:
        """Annual drift assumption for *symbol*."""
        return self.return_table.get(symbol, self.default_return)


DEFAULT_CONFIG = OptimizerConfig()
