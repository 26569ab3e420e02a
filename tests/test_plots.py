"""Smoke tests for the matplotlib visualizations."""

import matplotlib
matplotlib.use('Agg')

import matplotlib.pyplot as plt
import pytest
from matplotlib.figure import Figure

from portfolio_optimizer.core.config import OptimizerConfig
from portfolio_optimizer.core.engine import PortfolioEngine
from portfolio_optimizer.visualization import (
    plot_efficient_frontier,
    plot_rebalance,
    plot_simulation_distribution,
)


@pytest.fixture(scope='module')
def result():
    config = OptimizerConfig(scenarios=100, frontier_points=20)
    holdings = [
        {'symbol': 'AAPL', 'quantity': 10, 'averageCost': 150.0},
        {'symbol': 'BND', 'quantity': 40, 'averageCost': 72.0},
    ]
    return PortfolioEngine(None, config).optimize(holdings, 4_380.0, seed=4)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')


@pytest.mark.parametrize("plot", [
    plot_efficient_frontier,
    plot_simulation_distribution,
    plot_rebalance,
])
def test_returns_figure(result, plot):
    assert isinstance(plot(result), Figure)


def test_saves_file(result, tmp_path):
    path = tmp_path / "frontier.png"
    plot_efficient_frontier(result, save_path=str(path))
    assert path.exists()
