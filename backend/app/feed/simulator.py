"""GBM-based ticker simulator for running without exchange access."""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from collections.abc import Sequence

import numpy as np

from .interface import MarketDataSource
from .parsing import parse_frame, records_from_tickers
from .seed_assets import (
    CORRELATION_GROUPS,
    CROSS_GROUP_CORR,
    DEFAULT_PARAMS,
    DEFAULT_VOLUME,
    INTRA_MAJORS_CORR,
    INTRA_MEMES_CORR,
    PAIR_PARAMS,
    SEED_PRICES,
    SEED_VOLUMES,
)
from .store import IngestionStore
from .symbols import DEFAULT_SETTLEMENT

logger = logging.getLogger(__name__)


class GBMSimulator:
    """Geometric Brownian Motion simulator for correlated crypto pairs.

    Math:
        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    Crypto trades around the clock, so dt is the tick interval as a fraction
    of a 365-day year. The 24h window is approximated: the open is fixed at
    the seed price, high/low track the session extremes, and volume decays
    toward each pair's typical daily turnover.
    """

    SECONDS_PER_YEAR = 365 * 24 * 3600
    DEFAULT_DT = 0.5 / SECONDS_PER_YEAR  # ~1.6e-8

    def __init__(
        self,
        pairs: Sequence[str],
        dt: float = DEFAULT_DT,
        event_probability: float = 0.001,
    ) -> None:
        self._dt = dt
        self._event_prob = event_probability

        # Per-pair state
        self._pairs: list[str] = []
        self._prices: dict[str, float] = {}
        self._opens: dict[str, float] = {}
        self._highs: dict[str, float] = {}
        self._lows: dict[str, float] = {}
        self._volumes: dict[str, float] = {}
        self._params: dict[str, dict[str, float]] = {}

        self._cholesky: np.ndarray | None = None

        for pair in pairs:
            self._add_pair_internal(pair)
        self._rebuild_cholesky()

    # --- Public API ---

    def step(self) -> dict[str, float]:
        """Advance all pairs by one time step. Returns {pair: new_price}."""
        n = len(self._pairs)
        if n == 0:
            return {}

        z_independent = np.random.standard_normal(n)
        if self._cholesky is not None:
            z_correlated = self._cholesky @ z_independent
        else:
            z_correlated = z_independent

        # Share of a day covered by this step, for the rolling volume
        day_fraction = self._dt * self.SECONDS_PER_YEAR / 86400

        result: dict[str, float] = {}
        for i, pair in enumerate(self._pairs):
            params = self._params[pair]
            mu = params["mu"]
            sigma = params["sigma"]

            drift = (mu - 0.5 * sigma**2) * self._dt
            diffusion = sigma * math.sqrt(self._dt) * z_correlated[i]
            self._prices[pair] *= math.exp(drift + diffusion)

            if random.random() < self._event_prob:
                shock_magnitude = random.uniform(0.02, 0.08)
                shock_sign = random.choice([-1, 1])
                self._prices[pair] *= 1 + shock_magnitude * shock_sign
                logger.debug(
                    "Random event on %s: %.1f%% %s",
                    pair,
                    shock_magnitude * 100,
                    "up" if shock_sign > 0 else "down",
                )

            price = self._prices[pair]
            self._highs[pair] = max(self._highs[pair], price)
            self._lows[pair] = min(self._lows[pair], price)
            typical = SEED_VOLUMES.get(pair, DEFAULT_VOLUME)
            shock = 1 + abs(float(z_correlated[i]))
            traded = typical * day_fraction * random.uniform(0.5, 1.5) * shock
            self._volumes[pair] = self._volumes[pair] * (1 - day_fraction) + traded
            result[pair] = price

        return result

    def ticker_events(self, event_time: int | None = None) -> list[dict[str, object]]:
        """Current state as ``24hrTicker`` stream events (string-valued, like the wire)."""
        event_time = int(time.time() * 1000) if event_time is None else event_time
        events = []
        for pair in self._pairs:
            price = self._prices[pair]
            change = price - self._opens[pair]
            events.append(
                {
                    "e": "24hrTicker",
                    "E": event_time,
                    "s": pair,
                    "c": repr(price),
                    "o": repr(self._opens[pair]),
                    "p": repr(change),
                    "P": f"{change / self._opens[pair] * 100:.3f}",
                    "v": repr(self._volumes[pair]),
                    "h": repr(self._highs[pair]),
                    "l": repr(self._lows[pair]),
                }
            )
        return events

    def snapshot_entries(self) -> list[dict[str, str]]:
        """Current state as REST ``/ticker/24hr`` entries."""
        entries = []
        for event in self.ticker_events():
            price = float(event["c"])
            entries.append(
                {
                    "symbol": event["s"],
                    "lastPrice": event["c"],
                    "priceChange": event["p"],
                    "priceChangePercent": event["P"],
                    "volume": event["v"],
                    "quoteVolume": repr(float(event["v"]) * price),
                    "highPrice": event["h"],
                    "lowPrice": event["l"],
                }
            )
        return entries

    def add_pair(self, pair: str) -> None:
        """Add a pair to the simulation. Rebuilds the correlation matrix."""
        if pair in self._prices:
            return
        self._add_pair_internal(pair)
        self._rebuild_cholesky()

    def remove_pair(self, pair: str) -> None:
        if pair not in self._prices:
            return
        self._pairs.remove(pair)
        for table in (self._prices, self._opens, self._highs, self._lows, self._volumes, self._params):
            del table[pair]
        self._rebuild_cholesky()

    def get_price(self, pair: str) -> float | None:
        return self._prices.get(pair)

    @property
    def pairs(self) -> list[str]:
        return list(self._pairs)

    # --- Internals ---

    def _add_pair_internal(self, pair: str) -> None:
        if pair in self._prices:
            return
        price = SEED_PRICES.get(pair, random.uniform(0.5, 50.0))
        self._pairs.append(pair)
        self._prices[pair] = price
        self._opens[pair] = price
        self._highs[pair] = price
        self._lows[pair] = price
        self._volumes[pair] = SEED_VOLUMES.get(pair, DEFAULT_VOLUME)
        self._params[pair] = PAIR_PARAMS.get(pair, dict(DEFAULT_PARAMS))

    def _rebuild_cholesky(self) -> None:
        n = len(self._pairs)
        if n <= 1:
            self._cholesky = None
            return

        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                rho = self._pairwise_correlation(self._pairs[i], self._pairs[j])
                corr[i, j] = rho
                corr[j, i] = rho

        self._cholesky = np.linalg.cholesky(corr)

    @staticmethod
    def _pairwise_correlation(p1: str, p2: str) -> float:
        """Correlation between two pairs based on grouping.

        Correlation structure:
          - Both majors:  0.8
          - Both memes:   0.7
          - Otherwise:    0.5
        """
        majors = CORRELATION_GROUPS["majors"]
        memes = CORRELATION_GROUPS["memes"]

        if p1 in majors and p2 in majors:
            return INTRA_MAJORS_CORR
        if p1 in memes and p2 in memes:
            return INTRA_MEMES_CORR
        return CROSS_GROUP_CORR


class SimulatorDataSource(MarketDataSource):
    """MarketDataSource backed by the GBM simulator.

    Seeds the store from a synthetic snapshot, then runs a background task
    that steps the simulation every ``update_interval`` seconds and feeds the
    resulting ticker events through the same parsing path as live frames.
    """

    name = "simulator"

    def __init__(
        self,
        store: IngestionStore,
        update_interval: float = 0.5,
        event_probability: float = 0.001,
        pairs: Sequence[str] | None = None,
        settlement: str = DEFAULT_SETTLEMENT,
    ) -> None:
        self._store = store
        self._interval = update_interval
        self._event_prob = event_probability
        self._pairs = list(pairs) if pairs is not None else list(SEED_PRICES)
        self._settlement = settlement
        self._sim: GBMSimulator | None = None
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        self._sim = GBMSimulator(
            pairs=self._pairs,
            event_probability=self._event_prob,
        )
        # Seed the store so consumers have data before the first step
        self._store.seed(records_from_tickers(self._sim.snapshot_entries(), self._settlement))
        self._task = asyncio.create_task(self._run_loop(), name="simulator-loop")
        logger.info("Simulator started with %d pairs", len(self._pairs))

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Simulator stopped")

    @property
    def is_connected(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_pairs(self) -> list[str]:
        return self._sim.pairs if self._sim else []

    async def _run_loop(self) -> None:
        """Core loop: step the simulation, apply ticks to the store, sleep."""
        while True:
            try:
                if self._sim:
                    self._sim.step()
                    for tick in parse_frame(self._sim.ticker_events()):
                        self._store.apply_tick(tick)
            except Exception:
                logger.exception("Simulator step failed")
            await asyncio.sleep(self._interval)
