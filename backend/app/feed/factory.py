"""Factory for creating ticker data sources."""

from __future__ import annotations

import logging

from .config import FeedSettings
from .interface import MarketDataSource
from .store import IngestionStore

logger = logging.getLogger(__name__)


def create_market_data_source(store: IngestionStore, settings: FeedSettings) -> MarketDataSource:
    """Create the data source selected by ``settings.source``.

    - "simulator" → SimulatorDataSource (GBM simulation, no network)
    - anything else → BinanceDataSource (live exchange data)

    Returns an unstarted source. Caller must await source.start().
    """
    if settings.source == "simulator":
        from .simulator import SimulatorDataSource

        logger.info("Ticker source: GBM simulator")
        return SimulatorDataSource(
            store=store,
            update_interval=settings.simulator_interval,
            settlement=settings.settlement,
        )

    from .binance_client import BinanceDataSource

    logger.info("Ticker source: Binance (live data)")
    return BinanceDataSource.from_settings(store, settings)
