"""Core computational modules for portfolio optimization."""

from portfolio_optimizer.core.config import OptimizerConfig
from portfolio_optimizer.core.engine import PortfolioEngine, optimize_portfolio
from portfolio_optimizer.core.optimizer import MeanVarianceOptimizer
from portfolio_optimizer.core.simulation import MonteCarloSimulator

__all__ = [
    "OptimizerConfig",
    "PortfolioEngine",
    "optimize_portfolio",
    "MeanVarianceOptimizer",
    "MonteCarloSimulator",
]
