"""End-to-end tests of the optimization pipeline."""

import numpy as np
import pytest

from portfolio_optimizer.core import engine as engine_module
from portfolio_optimizer.core.config import OptimizerConfig
from portfolio_optimizer.core.engine import PortfolioEngine, optimize_portfolio, validate_request
from portfolio_optimizer.core.errors import InputValidationError, OptimizationError
from portfolio_optimizer.core.market_data import StaticPriceSource
from portfolio_optimizer.core.models import Holding

from .conftest import RecordingPriceSource

FAST = OptimizerConfig(scenarios=200, frontier_points=40)


class TestValidation:

    @pytest.mark.parametrize("holdings,total_value,tolerance", [
        ([], 1000, 'moderate'),
        ([{'symbol': 'AAPL', 'quantity': 1, 'averageCost': 1}], 0, 'moderate'),
        ([{'symbol': 'AAPL', 'quantity': 1, 'averageCost': 1}], -5, 'moderate'),
        ([{'symbol': 'AAPL', 'quantity': 1, 'averageCost': 1}], float('nan'), 'moderate'),
        ([{'symbol': 'AAPL', 'quantity': 1, 'averageCost': 1}], 1000, 'yolo'),
        ([{'symbol': 'AAPL', 'quantity': 0, 'averageCost': 1}], 1000, 'moderate'),
        ([{'symbol': 'AAPL', 'quantity': 1, 'averageCost': -2}], 1000, 'moderate'),
        ([{'symbol': 'AAPL', 'quantity': 1}], 1000, 'moderate'),
        ([{'symbol': '  ', 'quantity': 1, 'averageCost': 1}], 1000, 'moderate'),
        ([{'symbol': 'AAPL', 'quantity': 1, 'averageCost': 1},
          {'symbol': 'AAPL', 'quantity': 2, 'averageCost': 1}], 1000, 'moderate'),
        (['AAPL'], 1000, 'moderate'),
    ])
    def test_invalid_requests_fail_before_any_fetch(self, holdings, total_value, tolerance):
        source = RecordingPriceSource(prices={'AAPL': 190.0})
        with pytest.raises(InputValidationError):
            PortfolioEngine(source, FAST).optimize(holdings, total_value, tolerance, seed=1)
        assert source.calls == []

    def test_normalizes_holdings(self):
        normalized = validate_request(
            [{'symbol': 'AAPL', 'quantity': 10, 'average_cost': 150.0}, Holding('BND', 5, 70.0)],
            1850.0, 'moderate'
        )
        assert normalized == [Holding('AAPL', 10, 150.0), Holding('BND', 5, 70.0)]


class TestPipeline:

    def test_full_run(self, holdings, recording_source):
        result = PortfolioEngine(recording_source, FAST).optimize(
            holdings, 45_000, 'moderate', seed=42
        )

        assert set(result.optimal_weights) == {'AAPL', 'MSFT', 'BND'}
        assert sum(result.optimal_weights.values()) == pytest.approx(1.0)
        assert all(0 <= w <= 1 for w in result.optimal_weights.values())

        risks = [p.risk for p in result.efficient_frontier]
        assert risks == sorted(risks)

        p = result.monte_carlo_results.percentiles
        assert p[5] <= p[25] <= p[75] <= p[95]
        assert result.monte_carlo_results.scenarios == 200
        assert result.synthetic_symbols == ()

        for action in result.rebalance_recommendations:
            assert abs(action.delta) > FAST.rebalance_threshold

    def test_current_weights_at_cost_basis(self, holdings, recording_source):
        result = PortfolioEngine(recording_source, FAST).optimize(holdings, 45_000, seed=0)
        assert result.current_weights['AAPL'] == pytest.approx(15_000 / 45_000)

    def test_same_seed_same_result(self, holdings):
        source = RecordingPriceSource(prices={'AAPL': 190.0}, missing={'MSFT', 'BND'})
        engine = PortfolioEngine(source, FAST)
        a = engine.optimize(holdings, 45_000, seed=7)
        b = engine.optimize(holdings, 45_000, seed=7)
        assert a.to_dict() == b.to_dict()
        np.testing.assert_array_equal(a.monte_carlo_results.values, b.monte_carlo_results.values)

    def test_unavailable_data_is_flagged_not_raised(self, holdings):
        source = RecordingPriceSource(broken={'AAPL', 'MSFT', 'BND'})
        result = PortfolioEngine(source, FAST).optimize(holdings, 45_000, seed=3)
        assert result.synthetic_symbols == ('AAPL', 'MSFT', 'BND')

    def test_single_holding(self):
        source = StaticPriceSource(histories={'SPY': [400.0, 404.0, 402.0, 410.0, 415.0]})
        result = PortfolioEngine(source, FAST).optimize(
            [{'symbol': 'SPY', 'quantity': 10, 'averageCost': 400.0}], 4_000, seed=1
        )
        assert len(result.efficient_frontier) == 1
        point = result.efficient_frontier[0]
        assert point.weights == {'SPY': 1.0}
        assert point.risk == pytest.approx(result.covariance.volatilities[0])
        assert result.optimal_weights == {'SPY': 1.0}

    def test_flat_prices_give_zero_risk(self):
        source = StaticPriceSource(histories={'A': [100.0] * 30, 'B': [50.0] * 30})
        holdings = [
            {'symbol': 'A', 'quantity': 1, 'averageCost': 100.0},
            {'symbol': 'B', 'quantity': 2, 'averageCost': 50.0},
        ]
        result = PortfolioEngine(source, FAST).optimize(holdings, 200.0, seed=1)
        assert result.risk_metrics.volatility == 0.0
        assert result.risk_metrics.sharpe_ratio == 0.0
        assert result.optimal_weights == {'A': 0.5, 'B': 0.5}
        assert result.monte_carlo_results.success_rate == 0.0

    def test_slsqp_method(self, holdings, recording_source):
        config = FAST.with_overrides(frontier_method='slsqp')
        result = PortfolioEngine(recording_source, config).optimize(holdings, 45_000, seed=2)
        assert sum(result.optimal_weights.values()) == pytest.approx(1.0)

    def test_unexpected_failure_is_wrapped(self, holdings, recording_source, monkeypatch):
        def explode(*args, **kwargs):
            raise ValueError("boom")

        monkeypatch.setattr(engine_module, 'select_portfolio', explode)
        with pytest.raises(OptimizationError, match="boom"):
            PortfolioEngine(recording_source, FAST).optimize(holdings, 45_000, seed=2)


def test_output_contract(holdings, recording_source):
    result = optimize_portfolio(
        holdings, 45_000, 'aggressive', price_source=recording_source, config=FAST, seed=5
    )
    data = result.to_dict()
    assert set(data) == {
        'optimalWeights', 'efficientFrontier', 'riskMetrics',
        'monteCarloResults', 'rebalanceRecommendations',
    }
    assert set(data['efficientFrontier'][0]) == {'risk', 'return', 'weights'}
    assert set(data['riskMetrics']) == {
        'expectedReturn', 'volatility', 'sharpeRatio',
        'maxDrawdown', 'valueAtRisk', 'conditionalVaR',
    }
    assert set(data['monteCarloResults']) == {
        'scenarios', 'successRate', 'expectedFinalValue',
        'worstCase', 'bestCase', 'confidenceIntervals',
    }
    assert set(data['monteCarloResults']['confidenceIntervals']) == {
        'percentile_5', 'percentile_25', 'percentile_75', 'percentile_95',
    }
    assert data['riskMetrics']['valueAtRisk'] >= 0
