"""
Portfolio Optimizer - Mean-Variance Allocation and Risk Projection
==================================================================

Turns a set of holdings into an efficient frontier, a risk-tolerance
matched allocation, a correlated Monte Carlo projection, risk metrics and
rebalancing trades.

Usage:
    from portfolio_optimizer import PortfolioEngine, StaticPriceSource
    from portfolio_optimizer.visualization import plot_efficient_frontier

Classes:
    PortfolioEngine - End-to-end optimization pipeline
    OptimizerConfig - Immutable run settings
    MeanVarianceOptimizer - Efficient frontier construction
    MonteCarloSimulator - Correlated terminal-value simulation
    StaticPriceSource - In-memory price source

Functions:
    optimize_portfolio - One-shot pipeline helper
    load_holdings - Read holdings from CSV/Excel
"""

from portfolio_optimizer.core.config import OptimizerConfig
from portfolio_optimizer.core.engine import PortfolioEngine, optimize_portfolio
from portfolio_optimizer.core.errors import (
    DataUnavailableError,
    InputValidationError,
    OptimizationError,
    PortfolioOptimizerError,
    PriceSourceUnavailableError,
    SymbolNotFoundError,
)
from portfolio_optimizer.core.loader import load_holdings, load_price_table
from portfolio_optimizer.core.market_data import PriceSource, StaticPriceSource
from portfolio_optimizer.core.models import Holding, OptimizationResult
from portfolio_optimizer.core.optimizer import MeanVarianceOptimizer
from portfolio_optimizer.core.simulation import MonteCarloSimulator

__version__ = "1.0.0"

__all__ = [
    "PortfolioEngine",
    "OptimizerConfig",
    "MeanVarianceOptimizer",
    "MonteCarloSimulator",
    "StaticPriceSource",
    "PriceSource",
    "Holding",
    "OptimizationResult",
    "optimize_portfolio",
    "load_holdings",
    "load_price_table",
    "PortfolioOptimizerError",
    "InputValidationError",
    "DataUnavailableError",
    "SymbolNotFoundError",
    "PriceSourceUnavailableError",
    "OptimizationError",
]
