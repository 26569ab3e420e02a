"""Tests for portfolio_optimizer.core.market_data -- price sources and the history loader."""

import logging
import time

import numpy as np
import pytest

from portfolio_optimizer.core.config import OptimizerConfig
from portfolio_optimizer.core.errors import SymbolNotFoundError
from portfolio_optimizer.core.market_data import HistoryLoader, StaticPriceSource, load_histories

from .conftest import RecordingPriceSource


class SlowPriceSource:
    """Answers immediately except for symbols listed in ``slow``."""

    def __init__(self, prices, slow, delay=1.0):
        self.prices = prices
        self.slow = set(slow)
        self.delay = delay

    def get_current_price(self, symbol):
        if symbol in self.slow:
            time.sleep(self.delay)
        return self.prices[symbol]


class TestStaticPriceSource:

    def test_current_price(self):
        source = StaticPriceSource({'AAPL': 190.0})
        assert source.get_current_price('AAPL') == 190.0

    def test_unknown_symbol_raises(self):
        with pytest.raises(SymbolNotFoundError):
            StaticPriceSource({}).get_current_price('NOPE')

    def test_history_doubles_as_current_price(self):
        source = StaticPriceSource(histories={'SPY': [400.0, 401.0, 405.5]})
        assert source.get_current_price('SPY') == 405.5

    def test_history_window(self):
        source = StaticPriceSource(histories={'SPY': list(range(1, 11))})
        assert source.get_price_history('SPY', 3) == [8, 9, 10]
        assert source.get_price_history('QQQ', 3) is None


class TestHistoryLoader:

    def test_real_history_is_used(self, recording_source, price_histories, rng):
        series = HistoryLoader(recording_source).load(['AAPL', 'MSFT'], rng)
        assert [s.symbol for s in series] == ['AAPL', 'MSFT']
        assert not any(s.synthetic for s in series)
        np.testing.assert_allclose(series[0].prices, price_histories['AAPL'][-252:])

    def test_current_price_only_gives_synthetic_series(self, rng):
        source = RecordingPriceSource(prices={'NVDA': 480.0})
        series, = HistoryLoader(source).load(['NVDA'], rng)
        assert series.synthetic
        assert series.prices[-1] == pytest.approx(480.0)

    def test_unknown_symbol_falls_back(self, rng, caplog):
        source = RecordingPriceSource(prices={'AAPL': 190.0}, missing={'ZZZZ'})
        with caplog.at_level(logging.WARNING, logger='portfolio_optimizer'):
            series = HistoryLoader(source).load(['AAPL', 'ZZZZ'], rng)
        assert [s.symbol for s in series] == ['AAPL', 'ZZZZ']
        assert series[1].synthetic
        assert series[1].prices[-1] == pytest.approx(100.0)
        assert 'ZZZZ' in caplog.text

    def test_failing_source_never_raises(self, rng):
        source = RecordingPriceSource(broken={'AAPL', 'MSFT'})
        series = HistoryLoader(source).load(['AAPL', 'MSFT'], rng)
        assert all(s.synthetic for s in series)
        assert all(len(s.prices) == 252 for s in series)

    def test_invalid_price_falls_back(self, rng):
        source = RecordingPriceSource(prices={'AAPL': float('nan')})
        series, = HistoryLoader(source).load(['AAPL'], rng)
        assert series.synthetic
        assert series.prices[-1] == pytest.approx(100.0)

    def test_short_history_is_ignored(self, rng):
        source = RecordingPriceSource(prices={'AAPL': 190.0}, histories={'AAPL': [190.0]})
        series, = HistoryLoader(source).load(['AAPL'], rng)
        assert series.synthetic
        assert series.prices[-1] == pytest.approx(190.0)

    def test_timeout_falls_back(self, rng):
        source = SlowPriceSource({'AAPL': 190.0, 'SLOW': 50.0}, slow={'SLOW'}, delay=1.0)
        config = OptimizerConfig(fetch_timeout=0.1, max_workers=2)

        started = time.monotonic()
        series = HistoryLoader(source, config).load(['AAPL', 'SLOW'], rng)
        elapsed = time.monotonic() - started

        assert elapsed < 0.9
        assert series[0].prices[-1] == pytest.approx(190.0)
        assert series[1].synthetic
        assert series[1].prices[-1] == pytest.approx(100.0)

    def test_no_price_source(self, rng):
        series = HistoryLoader(None).load(['AAPL', 'BND'], rng)
        assert all(s.synthetic for s in series)

    def test_empty_symbols(self, rng):
        assert HistoryLoader(None).load([], rng) == []

    def test_same_seed_same_series(self):
        source = RecordingPriceSource(prices={'AAPL': 190.0, 'MSFT': 410.0}, missing={'X'})
        symbols = ['AAPL', 'MSFT', 'X']
        a = HistoryLoader(source).load(symbols, np.random.default_rng(5))
        b = HistoryLoader(source).load(symbols, np.random.default_rng(5))
        for left, right in zip(a, b):
            np.testing.assert_array_equal(left.prices, right.prices)

    def test_load_histories_keys(self, recording_source, rng):
        histories = load_histories(['MSFT', 'BND'], recording_source, rng)
        assert list(histories) == ['MSFT', 'BND']


class TestPerSymbolTimeout:

    def test_slow_symbol_does_not_starve_queue(self, rng):
        source = SlowPriceSource(
            {'SLOW': 50.0, 'AAPL': 190.0, 'MSFT': 410.0}, slow={'SLOW'}, delay=1.0
        )
        config = OptimizerConfig(fetch_timeout=0.2, max_workers=1)

        series = HistoryLoader(source, config).load(['SLOW', 'AAPL', 'MSFT'], rng)

        assert series[0].prices[-1] == pytest.approx(100.0)
        assert series[1].prices[-1] == pytest.approx(190.0)
        assert series[2].prices[-1] == pytest.approx(410.0)

    def test_overrun_is_rejected_even_with_spare_workers(self, rng):
        source = SlowPriceSource({'AAPL': 190.0, 'SLOW': 50.0}, slow={'SLOW'}, delay=0.35)
        config = OptimizerConfig(fetch_timeout=0.2, max_workers=2)

        series = HistoryLoader(source, config).load(['AAPL', 'SLOW'], rng)

        assert series[0].prices[-1] == pytest.approx(190.0)
        assert series[1].synthetic
        assert series[1].prices[-1] == pytest.approx(100.0)


class FlakyHistorySource:
    """History endpoint is down; current prices still work."""

    def __init__(self, prices):
        self.prices = prices

    def get_current_price(self, symbol):
        return self.prices[symbol]

    def get_price_history(self, symbol, days):
        raise ConnectionError("history service unreachable")


def test_history_error_falls_through_to_current_price(rng, caplog):
    source = FlakyHistorySource({'AAPL': 190.0})
    with caplog.at_level(logging.WARNING, logger='portfolio_optimizer'):
        series, = HistoryLoader(source).load(['AAPL'], rng)
    assert series.synthetic
    assert series.prices[-1] == pytest.approx(190.0)
    assert 'ConnectionError' in caplog.text
