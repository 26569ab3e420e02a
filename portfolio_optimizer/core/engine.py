"""
Portfolio Optimization Pipeline
===============================

Runs one optimization request end to end:

1. Validate holdings, total value and risk tolerance
2. Load (or synthesize) price history for every symbol
3. Estimate annualized expected returns and covariance
4. Build the efficient frontier
5. Select the portfolio matching the risk tolerance
6. Compute current weights from the holdings' cost basis
7. Simulate terminal values with correlated Monte Carlo
8. Derive risk metrics
9. Diff current vs optimal weights into rebalance trades

Nothing is shared between calls: each request gets its own matrices and
random streams. Invalid input fails before step 2; any other failure is
raised as ``OptimizationError`` and no partial result is returned.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from portfolio_optimizer.core import covariance as covariance_estimator
from portfolio_optimizer.core.config import DEFAULT_CONFIG, OptimizerConfig
from portfolio_optimizer.core.errors import (
    InputValidationError,
    OptimizationError,
    PortfolioOptimizerError,
)
from portfolio_optimizer.core.market_data import HistoryLoader, PriceSource
from portfolio_optimizer.core.models import RISK_TOLERANCES, Holding, OptimizationResult
from portfolio_optimizer.core.optimizer import MeanVarianceOptimizer
from portfolio_optimizer.core.rebalance import current_weights, recommend_rebalance
from portfolio_optimizer.core.risk import calculate_risk_metrics
from portfolio_optimizer.core.selector import select_portfolio
from portfolio_optimizer.core.simulation import MonteCarloSimulator

logger = logging.getLogger(__name__)

HoldingInput = Union[Holding, Dict[str, Any]]


def _is_number(value) -> bool:
    return (isinstance(value, (int, float, np.number)) and not isinstance(value, bool)
            and math.isfinite(value))


def validate_request(
    holdings: Sequence[HoldingInput],
    total_value: float,
    risk_tolerance: str
) -> List[Holding]:
    """
    Check a request and normalize holdings to ``Holding`` objects.

    Raises:
        InputValidationError: On empty or malformed holdings, duplicate
            symbols, non-positive total value or unknown risk tolerance
    """
    if not holdings:
        raise InputValidationError("Holdings must not be empty")
    if not _is_number(total_value) or total_value <= 0:
        raise InputValidationError(f"Total value must be a positive number, got {total_value!r}")
    if risk_tolerance not in RISK_TOLERANCES:
        raise InputValidationError(
            f"Unknown risk tolerance: {risk_tolerance!r}. Use one of {', '.join(RISK_TOLERANCES)}"
        )

    normalized = []
    seen = set()
    for raw in holdings:
        holding = raw if isinstance(raw, Holding) else Holding.from_mapping(raw)
        if not isinstance(holding.symbol, str) or not holding.symbol.strip():
            raise InputValidationError(f"Holding symbol must be a non-empty string, got {holding.symbol!r}")
        if not _is_number(holding.quantity) or holding.quantity <= 0:
            raise InputValidationError(f"{holding.symbol}: quantity must be positive, got {holding.quantity!r}")
        if not _is_number(holding.average_cost) or holding.average_cost <= 0:
            raise InputValidationError(
                f"{holding.symbol}: average cost must be positive, got {holding.average_cost!r}"
            )
        if holding.symbol in seen:
            raise InputValidationError(f"Duplicate holding for {holding.symbol}")
        seen.add(holding.symbol)
        normalized.append(holding)

    return normalized


class PortfolioEngine:
    """
    Optimization pipeline bound to a price source and a configuration.

    Args:
        price_source: Collaborator for current prices (and optional history).
            Without one, every symbol uses a synthetic history.
        config: Immutable run settings

    Example:
        >>> engine = PortfolioEngine(StaticPriceSource({'AAPL': 190.0, 'BND': 72.0}))
        >>> result = engine.optimize(
        ...     [{'symbol': 'AAPL', 'quantity': 10, 'averageCost': 150},
        ...      {'symbol': 'BND', 'quantity': 20, 'averageCost': 70}],
        ...     total_value=2900, risk_tolerance='moderate', seed=7)
    """

    def __init__(
        self,
        price_source: Optional[PriceSource] = None,
        config: OptimizerConfig = DEFAULT_CONFIG
    ):
        self.price_source = price_source
        self.config = config

    def optimize(
        self,
        holdings: Sequence[HoldingInput],
        total_value: float,
        risk_tolerance: str = 'moderate',
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ) -> OptimizationResult:
        """
        Run the full pipeline for one request.

        Args:
            holdings: Holding objects or dicts with symbol, quantity, averageCost
            total_value: Portfolio value used for weights and trade sizes
            risk_tolerance: conservative, moderate, aggressive or very_aggressive
            seed: Seed making history synthesis and simulation reproducible
            rng: Parent random stream (takes precedence over seed)

        Returns:
            OptimizationResult

        Raises:
            InputValidationError: Before any computation, for invalid input
            OptimizationError: For any internal failure
        """
        positions = validate_request(holdings, total_value, risk_tolerance)

        try:
            return self._run(positions, total_value, risk_tolerance, seed, rng)
        except PortfolioOptimizerError:
            raise
        except Exception as e:
            logger.error("Portfolio optimization failed: %s", e)
            raise OptimizationError(f"Portfolio optimization failed: {e}") from e

    def _run(
        self,
        holdings: List[Holding],
        total_value: float,
        risk_tolerance: str,
        seed: Optional[int],
        rng: Optional[np.random.Generator]
    ) -> OptimizationResult:
        if rng is None:
            rng = np.random.default_rng(seed)
        history_rng, simulation_rng = rng.spawn(2)
        symbols = [h.symbol for h in holdings]

        logger.info(
            "Optimizing %d holdings (value %.2f, risk tolerance %s)",
            len(symbols), total_value, risk_tolerance
        )

        series = HistoryLoader(self.price_source, self.config).load(symbols, history_rng)
        synthetic = [s.symbol for s in series if s.synthetic]

        estimate = covariance_estimator.estimate(series, self.config.trading_days)
        expected = estimate.expected_return_map()
        logger.info(
            "Expected annual returns: %s",
            ", ".join(f"{s}: {r*100:.2f}%" for s, r in expected.items())
        )

        optimizer = MeanVarianceOptimizer(
            estimate.expected_returns,
            estimate.covariance,
            estimate.symbols,
            rf_rate=self.config.risk_free_rate,
            method=self.config.frontier_method,
        )
        frontier = optimizer.efficient_frontier(self.config.frontier_points)
        logger.info("Efficient frontier calculated with %d points", len(frontier))

        selected = select_portfolio(frontier, risk_tolerance, self.config.risk_free_rate)
        optimal = dict(selected.weights)
        logger.info(
            "Optimal weights: %s",
            ", ".join(f"{s}: {w*100:.1f}%" for s, w in optimal.items())
        )

        current = current_weights(holdings, total_value)

        simulation = MonteCarloSimulator(self.config).run(
            [optimal[s] for s in estimate.symbols],
            estimate.expected_returns,
            estimate.covariance,
            total_value,
            rng=simulation_rng,
        )

        metrics = calculate_risk_metrics(
            optimal, expected, estimate.covariance, series, self.config
        )

        recommendations = recommend_rebalance(
            current, optimal, total_value, self.config.rebalance_threshold, symbols
        )

        logger.info(
            "Optimization complete: return %.2f%%, volatility %.2f%%, %d rebalance actions",
            metrics.expected_return * 100, metrics.volatility * 100, len(recommendations)
        )

        return OptimizationResult(
            optimal_weights=optimal,
            efficient_frontier=frontier,
            risk_metrics=metrics,
            monte_carlo_results=simulation,
            rebalance_recommendations=recommendations,
            covariance=estimate,
            current_weights=current,
            synthetic_symbols=tuple(synthetic),
        )


def optimize_portfolio(
    holdings: Sequence[HoldingInput],
    total_value: float,
    risk_tolerance: str = 'moderate',
    price_source: Optional[PriceSource] = None,
    config: OptimizerConfig = DEFAULT_CONFIG,
    seed: Optional[int] = None
) -> OptimizationResult:
    """One-shot helper: ``PortfolioEngine(price_source, config).optimize(...)``."""
    return PortfolioEngine(price_source, config).optimize(
        holdings, total_value, risk_tolerance, seed=seed
    )
