"""Shared pytest fixtures for the portfolio optimizer test suite.

Provides seeded synthetic price histories and in-memory price sources.
Nothing here touches the network.
"""

import threading

import numpy as np
import pytest

from portfolio_optimizer.core.errors import PriceSourceUnavailableError, SymbolNotFoundError
from portfolio_optimizer.core.models import AssetSeries


def gbm_prices(n=253, start=100.0, drift=0.0004, vol=0.015, seed=0):
    """Geometric Brownian motion price path with ``n`` points."""
    rng = np.random.default_rng(seed)
    log_returns = rng.normal(drift, vol, n - 1)
    return start * np.exp(np.concatenate(([0.0], np.cumsum(log_returns))))


class RecordingPriceSource:
    """Price source that records every call and can fail per symbol."""

    def __init__(self, prices=None, histories=None, missing=(), broken=()):
        self.prices = dict(prices or {})
        self.histories = dict(histories or {})
        self.missing = set(missing)
        self.broken = set(broken)
        self.calls = []
        self._lock = threading.Lock()

    def get_current_price(self, symbol):
        with self._lock:
            self.calls.append(('price', symbol))
        if symbol in self.broken:
            raise PriceSourceUnavailableError(symbol, "service down")
        if symbol in self.missing or symbol not in self.prices:
            raise SymbolNotFoundError(symbol)
        return self.prices[symbol]

    def get_price_history(self, symbol, days):
        with self._lock:
            self.calls.append(('history', symbol))
        history = self.histories.get(symbol)
        return None if history is None else list(history)[-days:]


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def price_histories():
    """Three 253-point histories with different drift and volatility."""
    return {
        'AAPL': gbm_prices(drift=0.0006, vol=0.016, seed=1).tolist(),
        'MSFT': gbm_prices(drift=0.0005, vol=0.014, seed=2).tolist(),
        'BND': gbm_prices(start=72.0, drift=0.0001, vol=0.003, seed=3).tolist(),
    }


@pytest.fixture
def asset_series(price_histories):
    return [AssetSeries(symbol, prices) for symbol, prices in price_histories.items()]


@pytest.fixture
def holdings():
    return [
        {'symbol': 'AAPL', 'quantity': 100, 'averageCost': 150.0},
        {'symbol': 'MSFT', 'quantity': 50, 'averageCost': 300.0},
        {'symbol': 'BND', 'quantity': 200, 'averageCost': 75.0},
    ]


@pytest.fixture
def recording_source(price_histories):
    return RecordingPriceSource(histories=price_histories)
