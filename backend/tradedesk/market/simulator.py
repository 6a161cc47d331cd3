"""Offline quote feed driven by correlated geometric Brownian motion."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Iterable
from decimal import Decimal

import numpy as np

from .interface import QuoteFeed, QuoteSink
from .models import PriceQuote

logger = logging.getLogger(__name__)

# Starting prices for well-known symbols; anything else starts between 20 and 200
SEED_PRICES: dict[str, float] = {
    "AAPL": 190.00,
    "GOOGL": 175.00,
    "MSFT": 420.00,
    "AMZN": 185.00,
    "TSLA": 250.00,
    "NVDA": 800.00,
    "META": 500.00,
    "JPM": 195.00,
}

# One trading year of 1-second ticks: 252 days * 6.5 hours
TRADING_SECONDS_PER_YEAR = 252 * 6.5 * 3600


class PriceWalk:
    """Correlated GBM price paths for a set of symbols.

        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    Every pair of symbols shares the same correlation, applied through the
    Cholesky factor of the correlation matrix.
    """

    def __init__(
        self,
        symbols: Iterable[str],
        volatility: float = 0.25,
        drift: float = 0.05,
        correlation: float = 0.4,
        dt: float = 1.0 / TRADING_SECONDS_PER_YEAR,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._sigma = volatility
        self._mu = drift
        self._rho = correlation
        self._dt = dt
        self._rng = rng if rng is not None else np.random.default_rng()
        self._symbols: list[str] = []
        self._prices = np.empty(0)
        self._cholesky: np.ndarray | None = None
        for symbol in symbols:
            self._add_symbol(symbol)

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    def prices(self) -> dict[str, float]:
        return {s: round(float(p), 2) for s, p in zip(self._symbols, self._prices)}

    def step(self) -> dict[str, float]:
        """Advance every symbol by one tick. Returns {symbol: new_price}."""
        n = len(self._symbols)
        if n == 0:
            return {}
        z = self._rng.standard_normal(n)
        if self._cholesky is not None:
            z = self._cholesky @ z
        drift = (self._mu - 0.5 * self._sigma**2) * self._dt
        self._prices = self._prices * np.exp(drift + self._sigma * math.sqrt(self._dt) * z)
        return self.prices()

    def _add_symbol(self, symbol: str) -> None:
        if symbol in self._symbols:
            return
        seed = SEED_PRICES.get(symbol) or float(self._rng.uniform(20.0, 200.0))
        self._symbols.append(symbol)
        self._prices = np.append(self._prices, seed)
        self._cholesky = _correlation_factor(len(self._symbols), self._rho)


def _correlation_factor(n: int, rho: float) -> np.ndarray | None:
    if n <= 1:
        return None
    corr = np.full((n, n), rho)
    np.fill_diagonal(corr, 1.0)
    return np.linalg.cholesky(corr)


class SimulatorFeed(QuoteFeed):
    """QuoteFeed that needs no server: steps a PriceWalk on an interval.

    Used when no API URL is configured, so the dashboard can be run offline.
    """

    def __init__(
        self,
        sink: QuoteSink,
        symbols: Iterable[str],
        interval: float = 1.0,
        walk: PriceWalk | None = None,
    ) -> None:
        self._sink = sink
        self._walk = walk if walk is not None else PriceWalk(symbols)
        self._interval = interval
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        # Seed with starting prices so the view has data immediately
        self._emit(self._walk.prices())
        self._task = asyncio.create_task(self._run_loop(), name="simulator-feed")
        logger.info("Simulator started with %d symbols", len(self._walk.symbols))

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _emit(self, prices: dict[str, float]) -> None:
        now = time.time()
        for symbol, price in prices.items():
            self._sink(PriceQuote(symbol=symbol, price=Decimal(str(price)), timestamp=now))

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._emit(self._walk.step())
            except Exception:
                logger.exception("Simulator step failed")
