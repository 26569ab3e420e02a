"""Visualization modules for portfolio analysis."""

from portfolio_optimizer.visualization.plots import (
    plot_efficient_frontier,
    plot_rebalance,
    plot_simulation_distribution,
)

__all__ = [
    "plot_efficient_frontier",
    "plot_rebalance",
    "plot_simulation_distribution",
]
