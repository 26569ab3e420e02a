"""Pick the frontier portfolio that matches a qualitative risk tolerance."""

import logging
from typing import Dict, Sequence

from portfolio_optimizer.core.errors import InputValidationError, OptimizationError
from portfolio_optimizer.core.models import RISK_TOLERANCES, FrontierPoint

logger = logging.getLogger(__name__)

# Target annual volatility per risk tolerance
RISK_TOLERANCE_TARGETS: Dict[str, float] = {
    'conservative': 0.12,
    'moderate': 0.16,
    'aggressive': 0.22,
    'very_aggressive': 0.30,
}

RISK_SLACK = 1.1
EXCESS_RISK_PENALTY = 10.0


def target_volatility(risk_tolerance: str) -> float:
    """Target volatility for a risk tolerance, raising on unknown values."""
    if risk_tolerance not in RISK_TOLERANCE_TARGETS:
        raise InputValidationError(
            f"Unknown risk tolerance: {risk_tolerance!r}. Use one of {', '.join(RISK_TOLERANCES)}"
        )
    return RISK_TOLERANCE_TARGETS[risk_tolerance]


def select_portfolio(
    frontier: Sequence[FrontierPoint],
    risk_tolerance: str = 'moderate',
    risk_free_rate: float = 0.045
) -> FrontierPoint:
    """
    Choose the best frontier point within the tolerance's risk budget.

    Points with risk <= target * 1.1 qualify; among them the highest
    sharpe - max(0, risk - target) * 10 wins (first one on ties). When
    nothing qualifies the lowest-risk point is returned.

    Args:
        frontier: Frontier points sorted ascending by risk
        risk_tolerance: conservative, moderate, aggressive or very_aggressive
        risk_free_rate: Annual risk-free rate for the Sharpe ratio

    Returns:
        The selected frontier point
    """
    target = target_volatility(risk_tolerance)
    if not frontier:
        raise OptimizationError("Cannot select a portfolio from an empty frontier")

    best = None
    best_score = float('-inf')
    for point in frontier:
        if point.risk > target * RISK_SLACK:
            continue
        sharpe = (point.expected_return - risk_free_rate) / point.risk if point.risk > 0 else 0.0
        penalty = max(0.0, point.risk - target) * EXCESS_RISK_PENALTY
        score = sharpe - penalty
        if score > best_score:
            best_score = score
            best = point

    if best is None:
        best = min(frontier, key=lambda p: p.risk)
        logger.info(
            "No frontier point within %.0f%% volatility; using lowest-risk point (%.2f%%)",
            target * RISK_SLACK * 100, best.risk * 100
        )
    return best
