"""One feed session: wires the pipeline together and exposes the query surface."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .config import FeedSettings
from .factory import create_market_data_source
from .formatting import format_change, format_percent, format_price, format_volume
from .interface import MarketDataSource
from .models import AssetRecord, Kline, MarketStats
from .ranking import LockedOrders, RankingEngine
from .scheduler import Batch, PublishedState, PublishScheduler
from .stats import compute_market_stats
from .store import IngestionStore

logger = logging.getLogger(__name__)

SourceFactory = Callable[[IngestionStore, FeedSettings], MarketDataSource]


class MarketSession:
    """Composition root for the ticker pipeline.

    source -> IngestionStore -> PublishScheduler -> PublishedState -> RankingEngine

    Every collaborator is constructed here (or injected), so tests and
    multiple sessions never share state.
    """

    def __init__(
        self,
        settings: FeedSettings | None = None,
        source_factory: SourceFactory = create_market_data_source,
    ) -> None:
        self.settings = settings or FeedSettings()
        self.store = IngestionStore(
            settlement=self.settings.settlement,
            decay_window=self.settings.decay_window,
        )
        self.state = PublishedState()
        self.scheduler = PublishScheduler(
            self.store, self.state, frame_interval=self.settings.frame_interval
        )
        self.locked = LockedOrders(relock_when_empty=self.settings.relock_when_empty)
        self.ranking = RankingEngine(self.state, self.locked)
        self.source = source_factory(self.store, self.settings)
        self._loading = True
        self._generation = self.state.generation
        self.state.subscribe(self._on_publish)

    async def start(self) -> None:
        self._loading = True
        try:
            await self.source.start()
        finally:
            self._loading = False
        logger.info("Session started (%s, %d assets)", self.source.name, len(self.store))

    async def stop(self) -> None:
        await self.source.stop()
        self.scheduler.close()
        self.store.close()
        logger.info("Session stopped")

    # --- Query surface ---

    def records(self) -> list[AssetRecord]:
        return self.state.records()

    def direction(self, symbol: str) -> str:
        return self.state.direction(symbol)

    def search(self, query: str) -> list[AssetRecord]:
        return self.ranking.search(query)

    def view(self, category: str, n: int | None = 20, locked: bool = True) -> list[AssetRecord]:
        """Ranked view for ``category``; KeyError for unknown categories."""
        if locked:
            return self.ranking.locked_view(category, n)
        return self.ranking.category(category, n)

    def rankings(self, n: int | None = 20, locked: bool = True) -> dict[str, list[AssetRecord]]:
        return self.ranking.rankings(n, locked=locked)

    def stats(self) -> MarketStats:
        return compute_market_stats(self.state.records())

    async def klines(self, symbol: str, interval: str = "1h", limit: int = 50) -> list[Kline]:
        return await self.source.fetch_klines(symbol, interval, limit)

    def describe(self, record: AssetRecord) -> dict:
        """Record plus direction and display strings, ready for rendering."""
        change = self.state.change(record.symbol)
        return {
            **record.to_dict(),
            **change.to_dict(),
            "recently_updated": self.state.is_recently_updated(
                record.symbol, self.settings.decay_window
            ),
            "display": {
                "price": format_price(record.price),
                "change": format_change(record.change_24h),
                "percent": format_percent(record.change_24h_percent),
                "volume": format_volume(record.volume_24h),
            },
        }

    def status(self) -> dict:
        snapshot = self.source.last_snapshot
        return {
            "source": self.source.name,
            "connected": self.source.is_connected,
            "loading": self._loading,
            "partial": snapshot.partial if snapshot is not None else False,
            "assets": len(self.state),
            "version": self.state.version,
            "generation": self.state.generation,
        }

    @property
    def loading(self) -> bool:
        return self._loading

    # --- Internal ---

    def _on_publish(self, batch: Batch) -> None:
        # A new load boundary invalidates every locked order
        if self.state.generation != self._generation:
            self._generation = self.state.generation
            self.locked.reset()
            logger.debug("Load boundary %d: locked orders reset", self._generation)
