"""Abstract interface for ticker data sources."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import Kline, SnapshotResult


class MarketDataSource(ABC):
    """Contract for ticker providers.

    Implementations seed the shared IngestionStore with a snapshot and then
    push ticks into it on their own schedule. Downstream code never reads from
    the source directly; it reads the published state.

    Lifecycle:
        source = create_market_data_source(store, settings)
        await source.start()
        # ... ticks flow into the store ...
        await source.stop()
    """

    name: str = "source"

    @abstractmethod
    async def start(self) -> None:
        """Load the initial snapshot and begin producing ticks.

        Returns once the snapshot has been applied; tick delivery continues in
        the background.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Stop producing ticks and release resources.

        Safe to call multiple times. After stop(), the source will not write
        to the store again.
        """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True while ticks are being delivered."""

    @property
    def last_snapshot(self) -> SnapshotResult | None:
        """Outcome of the most recent snapshot load, if the source fetches one."""
        return None

    async def fetch_klines(self, symbol: str, interval: str = "1h", limit: int = 50) -> list[Kline]:
        """Recent candlesticks for a pair. Sources without history return []."""
        return []
