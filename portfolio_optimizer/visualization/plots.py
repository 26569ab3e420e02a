"""
Plotting Module for Portfolio Optimization
==========================================

Visualizations of an ``OptimizationResult``:
- Efficient frontier with individual assets and the selected portfolio
- Monte Carlo terminal-value distribution with percentile markers
- Current vs target weights

Every function returns the matplotlib Figure and saves it when a
``save_path`` is given.
"""

from typing import Optional, Tuple

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from portfolio_optimizer.core.models import OptimizationResult


def _finish(fig: Figure, save_path: Optional[str]) -> Figure:
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
    return fig


def plot_efficient_frontier(
    result: OptimizationResult,
    show_assets: bool = True,
    figsize: Tuple[int, int] = (12, 8),
    save_path: Optional[str] = None,
    title: str = "Efficient Frontier"
) -> Figure:
    """
    Plot the frontier on the risk-return plane.

    Args:
        result: Optimization result holding the frontier
        show_assets: If True, mark each asset at (volatility, expected return)
        figsize: Figure size (width, height)
        save_path: If provided, save the figure to this path
        title: Plot title

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    risks = np.array([p.risk for p in result.efficient_frontier])
    returns = np.array([p.expected_return for p in result.efficient_frontier])
    ax.plot(risks * 100, returns * 100, 'b-', linewidth=2, marker='.',
            label='Efficient Frontier', zorder=2)

    if show_assets and result.covariance is not None:
        estimate = result.covariance
        asset_stds = estimate.volatilities
        ax.scatter(asset_stds * 100, estimate.expected_returns * 100,
                   c='red', s=100, marker='o', edgecolors='black',
                   label='Individual Assets', zorder=5)
        for name, std, ret in zip(estimate.symbols, asset_stds, estimate.expected_returns):
            ax.annotate(name, (std * 100, ret * 100),
                        xytext=(5, 5), textcoords='offset points',
                        fontsize=9, fontweight='bold')

    metrics = result.risk_metrics
    ax.scatter([metrics.volatility * 100], [metrics.expected_return * 100],
               c='gold', s=200, marker='D', edgecolors='black',
               label=f"Selected (Sharpe={metrics.sharpe_ratio:.3f})", zorder=6)

    ax.set_xlabel('Risk (Standard Deviation) %', fontsize=12)
    ax.set_ylabel('Expected Return %', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend(loc='upper left', fontsize=10)
    ax.grid(True, alpha=0.3)

    return _finish(fig, save_path)


def plot_simulation_distribution(
    result: OptimizationResult,
    bins: int = 50,
    figsize: Tuple[int, int] = (12, 6),
    save_path: Optional[str] = None,
    title: str = "Monte Carlo Terminal Values"
) -> Figure:
    """Histogram of simulated terminal values with 5/25/75/95 percentile lines."""
    simulation = result.monte_carlo_results
    fig, ax = plt.subplots(figsize=figsize)

    ax.hist(simulation.values, bins=bins, color='steelblue', edgecolor='black', alpha=0.7)

    styles = {5: ('red', '--'), 25: ('orange', ':'), 75: ('green', ':'), 95: ('darkgreen', '--')}
    for p, value in sorted(simulation.percentiles.items()):
        color, style = styles.get(p, ('black', '-'))
        ax.axvline(value, color=color, linestyle=style, linewidth=2,
                   label=f"P{p}: {value:,.0f}")
    ax.axvline(simulation.mean, color='black', linewidth=2,
               label=f"Mean: {simulation.mean:,.0f}")

    ax.set_xlabel('Portfolio Value', fontsize=12)
    ax.set_ylabel('Scenarios', fontsize=12)
    ax.set_title(f"{title} (success rate {simulation.success_rate*100:.1f}%)",
                 fontsize=14, fontweight='bold')
    ax.legend(fontsize=10)
    ax.grid(True, axis='y', alpha=0.3)

    return _finish(fig, save_path)


def plot_rebalance(
    result: OptimizationResult,
    figsize: Tuple[int, int] = (10, 6),
    save_path: Optional[str] = None,
    title: str = "Current vs Target Weights"
) -> Figure:
    """Side-by-side bars of current and optimal weights per symbol."""
    symbols = list(result.optimal_weights)
    current = np.array([result.current_weights.get(s, 0.0) for s in symbols])
    target = np.array([result.optimal_weights[s] for s in symbols])

    fig, ax = plt.subplots(figsize=figsize)
    x = np.arange(len(symbols))
    width = 0.38

    ax.bar(x - width / 2, current * 100, width, color='lightgray', edgecolor='black', label='Current')
    bars = ax.bar(x + width / 2, target * 100, width, color='green', edgecolor='black', label='Target')

    for bar, w in zip(bars, target):
        ax.annotate(f'{w*100:.1f}%',
                    xy=(bar.get_x() + bar.get_width() / 2, bar.get_height()),
                    xytext=(0, 3), textcoords='offset points',
                    ha='center', va='bottom', fontsize=10, fontweight='bold')

    ax.set_xticks(x)
    ax.set_xticklabels(symbols)
    ax.set_xlabel('Assets', fontsize=12)
    ax.set_ylabel('Weight %', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend(fontsize=10)
    ax.grid(True, axis='y', alpha=0.3)

    return _finish(fig, save_path)
