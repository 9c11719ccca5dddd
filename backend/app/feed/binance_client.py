"""Live Binance source: REST snapshot, then the all-market ticker stream."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from .cache import SnapshotCache
from .config import FeedSettings
from .connection import StreamConnection
from .endpoints import EndpointPool
from .interface import MarketDataSource
from .models import Kline, SnapshotResult
from .parsing import parse_frame
from .snapshot import SnapshotFetcher
from .store import IngestionStore

logger = logging.getLogger(__name__)


class BinanceDataSource(MarketDataSource):
    """MarketDataSource backed by the Binance REST and websocket APIs.

    start() fetches the 24h ticker snapshot (with endpoint failover), seeds
    the store, then subscribes to ``!ticker@arr``. Every stream frame is
    parsed and applied to the store synchronously; parsing is CPU-only so the
    receive loop is never blocked on I/O.
    """

    name = "binance"

    def __init__(
        self,
        store: IngestionStore,
        fetcher: SnapshotFetcher,
        connection: StreamConnection,
        topics: Sequence[str] = ("!ticker@arr",),
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._connection = connection
        self._topics = list(topics)
        self._last_snapshot: SnapshotResult | None = None
        self._unsubscribers: list[Callable[[], None]] = []

    @classmethod
    def from_settings(cls, store: IngestionStore, settings: FeedSettings) -> BinanceDataSource:
        fetcher = SnapshotFetcher(
            EndpointPool.from_pairs(settings.rest_endpoints),
            cache=SnapshotCache(ttl=settings.snapshot_ttl),
            settlement=settings.settlement,
            min_quote_volume=settings.min_quote_volume,
            timeout=settings.snapshot_timeout,
        )
        connection = StreamConnection(
            EndpointPool(list(settings.stream_endpoints)),
            connect_timeout=settings.connect_timeout,
            ping_interval=settings.ping_interval,
            base_delay=settings.reconnect_base_delay,
            max_delay=settings.reconnect_max_delay,
            max_attempts=settings.max_reconnect_attempts,
        )
        return cls(store, fetcher, connection, topics=settings.topics)

    async def start(self) -> None:
        await self.reload()

        # A restart after FAILED must not stack a second set of observers
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = [
            self._connection.on_message(self._handle_frame),
            self._connection.on_connect(lambda: logger.info("Binance stream live")),
            self._connection.on_disconnect(lambda: logger.warning("Binance stream dropped")),
            self._connection.on_failed(
                lambda: logger.error("Binance stream failed; call start() again to retry")
            ),
        ]
        self._connection.connect(self._topics)
        logger.info("Binance source started: %d assets, topics %s", len(self._store), self._topics)

    async def reload(self) -> SnapshotResult:
        """Fetch a fresh snapshot and reseed the store (a new load boundary).

        An empty result leaves the current store contents alone.
        """
        result = await self._fetcher.fetch_all()
        self._last_snapshot = result
        if result.records:
            self._store.seed(result.records)
        else:
            logger.error("Snapshot unavailable; stream ticks will be ignored until a reload succeeds")
        return result

    async def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        await self._connection.disconnect()
        await self._fetcher.aclose()
        logger.info("Binance source stopped")

    async def fetch_klines(self, symbol: str, interval: str = "1h", limit: int = 50) -> list[Kline]:
        return await self._fetcher.fetch_klines(symbol, interval, limit)

    @property
    def is_connected(self) -> bool:
        return self._connection.is_connected

    @property
    def last_snapshot(self) -> SnapshotResult | None:
        return self._last_snapshot

    @property
    def connection(self) -> StreamConnection:
        return self._connection

    # --- Internal ---

    def _handle_frame(self, payload: Any) -> None:
        applied = 0
        for tick in parse_frame(payload):
            if self._store.apply_tick(tick) is not None:
                applied += 1
        logger.debug("Frame applied %d ticks", applied)
