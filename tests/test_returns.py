"""Tests for portfolio_optimizer.core.returns -- Box-Muller, GBM history, return helpers."""

import numpy as np
import pytest

from portfolio_optimizer.core.config import OptimizerConfig
from portfolio_optimizer.core.returns import (
    annualized_geometric_return,
    annualized_mean_return,
    asset_assumptions,
    box_muller,
    generate_price_history,
    simple_returns,
    synthetic_series,
)


class TestBoxMuller:

    def test_same_seed_same_draws(self):
        a = box_muller(np.random.default_rng(7), 100)
        b = box_muller(np.random.default_rng(7), 100)
        np.testing.assert_array_equal(a, b)

    def test_shape(self, rng):
        assert box_muller(rng, (3, 4, 5)).shape == (3, 4, 5)

    def test_moments_are_standard_normal(self, rng):
        z = box_muller(rng, 200_000)
        assert abs(z.mean()) < 0.01
        assert abs(z.std() - 1.0) < 0.01

    def test_all_finite(self, rng):
        assert np.all(np.isfinite(box_muller(rng, 50_000)))


class TestPriceHistory:

    def test_ends_at_current_price(self, rng):
        prices = generate_price_history(187.5, 0.25, 0.15, 252, rng)
        assert len(prices) == 252
        assert prices[-1] == 187.5

    def test_prices_positive(self, rng):
        prices = generate_price_history(10.0, 0.9, -0.2, 252, rng)
        assert np.all(prices > 0)

    def test_zero_volatility_is_pure_drift(self, rng):
        prices = generate_price_history(100.0, 0.0, 0.252, 3, rng, trading_days=252)
        # Each step back divides by exp(0.252 / 252)
        assert prices[1] == pytest.approx(100.0 / np.exp(0.001))
        assert prices[0] == pytest.approx(100.0 / np.exp(0.002))

    def test_reproducible_with_seed(self):
        a = generate_price_history(50.0, 0.3, 0.1, 100, np.random.default_rng(3))
        b = generate_price_history(50.0, 0.3, 0.1, 100, np.random.default_rng(3))
        np.testing.assert_array_equal(a, b)


class TestReturnHelpers:

    def test_simple_returns(self):
        np.testing.assert_allclose(simple_returns([100, 110, 99]), [0.1, -0.1])

    def test_annualized_mean_return(self):
        assert annualized_mean_return([0.001, 0.003], 252) == pytest.approx(0.504)

    def test_annualized_mean_return_empty(self):
        assert annualized_mean_return([]) == 0.0

    def test_annualized_geometric_return(self):
        # Two periods of +10% compounded to a 4-period year
        assert annualized_geometric_return([0.1, 0.1], 4) == pytest.approx(1.1 ** 4 - 1)


class TestAssumptions:

    def test_known_symbol(self):
        assert asset_assumptions('TSLA') == (0.45, 0.20)

    def test_unknown_symbol_uses_defaults(self):
        assert asset_assumptions('ZZZZ') == (0.25, 0.10)

    def test_custom_table(self):
        config = OptimizerConfig(volatility_table={'ZZZZ': 0.5}, default_return=0.07)
        assert asset_assumptions('ZZZZ', config) == (0.5, 0.07)


class TestSyntheticSeries:

    def test_flagged_and_sized(self, rng):
        series = synthetic_series('AAPL', rng)
        assert series.synthetic
        assert len(series.prices) == 252
        assert len(series.returns) == 251
        assert series.prices[-1] == pytest.approx(100.0)

    def test_uses_current_price(self, rng):
        series = synthetic_series('AAPL', rng, current_price=212.0)
        assert series.prices[-1] == pytest.approx(212.0)

    def test_history_days_from_config(self, rng):
        series = synthetic_series('AAPL', rng, config=OptimizerConfig(history_days=30))
        assert len(series.prices) == 30
