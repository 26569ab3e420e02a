"""
Market Data Boundary
====================

The optimizer never talks to a market-data service directly. Callers
inject a ``PriceSource``; the ``HistoryLoader`` fans out per-symbol fetches
on a bounded thread pool and substitutes a synthetic history whenever a
symbol's data cannot be obtained in time.

A price source must provide ``get_current_price(symbol)``, raising
``SymbolNotFoundError`` or ``PriceSourceUnavailableError`` on failure.
It may also provide ``get_price_history(symbol, days)`` returning a
chronological list of prices.
"""

import logging
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

import numpy as np

from portfolio_optimizer.core.config import DEFAULT_CONFIG, OptimizerConfig
from portfolio_optimizer.core.errors import (
    DataUnavailableError,
    PriceSourceUnavailableError,
    SymbolNotFoundError,
)
from portfolio_optimizer.core.models import AssetSeries
from portfolio_optimizer.core.returns import synthetic_series

logger = logging.getLogger(__name__)


class PriceSource(Protocol):
    """Collaborator supplying current prices."""

    def get_current_price(self, symbol: str) -> float:
        ...


class StaticPriceSource:
    """
    In-memory price source.

    Args:
        prices: Mapping of symbol to current price
        histories: Optional mapping of symbol to chronological price history.
            When a history is present its last value doubles as the current
            price unless ``prices`` says otherwise.
    """

    def __init__(
        self,
        prices: Optional[Mapping[str, float]] = None,
        histories: Optional[Mapping[str, Sequence[float]]] = None
    ):
        self.histories = {s: list(h) for s, h in (histories or {}).items()}
        self.prices = {s: h[-1] for s, h in self.histories.items() if len(h)}
        self.prices.update(prices or {})

    def get_current_price(self, symbol: str) -> float:
        if symbol not in self.prices:
            raise SymbolNotFoundError(symbol, f"No price for {symbol}")
        return float(self.prices[symbol])

    def get_price_history(self, symbol: str, days: int) -> Optional[List[float]]:
        history = self.histories.get(symbol)
        if history is None:
            return None
        return history[-days:]


class HistoryLoader:
    """
    Load one ``AssetSeries`` per symbol, never failing.

    Per symbol, in order of preference:
    1. A real history from ``get_price_history`` (at least 2 prices)
    2. A synthetic history ending at the symbol's current price
    3. A synthetic history from a base price of 100 when the price fetch
       fails or exceeds the timeout

    Every symbol gets its own random sub-streams, spawned before any work is
    submitted, so the output does not depend on completion order.

    Timeouts: at most ``max_workers`` fetches run at once. Each symbol gets
    ``fetch_timeout`` seconds from the moment its fetch starts; a fetch that
    overruns is abandoned and its slot goes to the next queued symbol.
    """

    def __init__(
        self,
        price_source: Optional[PriceSource] = None,
        config: OptimizerConfig = DEFAULT_CONFIG
    ):
        self.price_source = price_source
        self.config = config

    def load(self, symbols: Sequence[str], rng: np.random.Generator) -> List[AssetSeries]:
        """
        Fetch or synthesize a history for every symbol.

        Args:
            symbols: Symbols in portfolio order
            rng: Parent random stream; sub-streams are spawned from it

        Returns:
            One series per symbol, in the order given
        """
        symbols = list(symbols)
        if not symbols:
            return []
        # Two streams per symbol: one for the worker, one for the fallback
        streams = rng.spawn(2 * len(symbols))
        worker_rngs = streams[0::2]
        fallback_rngs = streams[1::2]

        if self.price_source is None:
            logger.warning("No price source configured; using synthetic history for all symbols")
            return [
                synthetic_series(s, r, None, self.config)
                for s, r in zip(symbols, fallback_rngs)
            ]

        workers = min(self.config.max_workers, len(symbols))
        timeout = self.config.fetch_timeout
        pending = deque(range(len(symbols)))
        active: Dict[Future, int] = {}
        submitted_at: Dict[int, float] = {}
        started_at: Dict[int, float] = {}
        results: List[Optional[AssetSeries]] = [None] * len(symbols)

        def fetch(index: int) -> AssetSeries:
            started_at[index] = time.monotonic()
            return self._fetch_one(symbols[index], worker_rngs[index])

        def deadline(index: int) -> float:
            return started_at.get(index, submitted_at[index]) + timeout

        # A fetch abandoned after its timeout keeps its thread, so the pool
        # holds one thread per symbol and ``workers`` bounds the live fetches
        executor = ThreadPoolExecutor(max_workers=len(symbols), thread_name_prefix="price-fetch")
        try:
            while pending or active:
                while pending and len(active) < workers:
                    index = pending.popleft()
                    submitted_at[index] = time.monotonic()
                    active[executor.submit(fetch, index)] = index

                next_deadline = min(deadline(i) for i in active.values())
                wait(
                    list(active),
                    timeout=max(0.0, next_deadline - time.monotonic()),
                    return_when=FIRST_COMPLETED
                )

                now = time.monotonic()
                for future, index in list(active.items()):
                    if future.done():
                        del active[future]
                        results[index] = self._collect(symbols[index], future, fallback_rngs[index])
                    elif now >= deadline(index):
                        del active[future]
                        future.cancel()
                        logger.warning(
                            "%s: price fetch timed out after %.1fs, using synthetic history",
                            symbols[index], now - started_at.get(index, submitted_at[index])
                        )
                        results[index] = synthetic_series(
                            symbols[index], fallback_rngs[index], None, self.config
                        )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return results

    def _collect(
        self,
        symbol: str,
        future: Future,
        fallback_rng: np.random.Generator
    ) -> AssetSeries:
        try:
            return future.result()
        except Exception as e:
            logger.warning(
                "%s: could not fetch market data (%s: %s), using synthetic history",
                symbol, type(e).__name__, e
            )
            return synthetic_series(symbol, fallback_rng, None, self.config)

    def _fetch_one(self, symbol: str, rng: np.random.Generator) -> AssetSeries:
        history = self._fetch_history(symbol)
        if history is not None:
            return AssetSeries(symbol, history)

        price = self.price_source.get_current_price(symbol)
        if price is None or not np.isfinite(price) or price <= 0:
            raise PriceSourceUnavailableError(symbol, f"Invalid price for {symbol}: {price!r}")

        logger.info("%s: no price history, modelling from current price %.2f", symbol, price)
        return synthetic_series(symbol, rng, float(price), self.config)

    def _fetch_history(self, symbol: str) -> Optional[np.ndarray]:
        get_history = getattr(self.price_source, 'get_price_history', None)
        if not callable(get_history):
            return None

        try:
            history = get_history(symbol, self.config.history_days)
        except DataUnavailableError as e:
            logger.info("%s: price history unavailable (%s)", symbol, e)
            return None
        except Exception as e:
            logger.warning(
                "%s: price history request failed (%s: %s), trying current price",
                symbol, type(e).__name__, e
            )
            return None
        if history is None:
            return None

        prices = np.asarray(history, dtype=float)
        prices = prices[np.isfinite(prices) & (prices > 0)]
        if len(prices) < 2:
            logger.info("%s: history has %d usable prices, ignoring it", symbol, len(prices))
            return None
        return prices


def load_histories(
    symbols: Sequence[str],
    price_source: Optional[PriceSource],
    rng: np.random.Generator,
    config: OptimizerConfig = DEFAULT_CONFIG
) -> Dict[str, AssetSeries]:
    """Convenience wrapper returning ``{symbol: AssetSeries}``."""
    series = HistoryLoader(price_source, config).load(symbols, rng)
    return {s.symbol: s for s in series}
