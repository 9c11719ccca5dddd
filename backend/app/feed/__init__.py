"""Live ticker feed subsystem.

Public API:
    AssetRecord         - Immutable per-asset 24h ticker record
    FeedSettings        - Environment-driven configuration
    EndpointPool        - Ordered endpoints with last-success memory
    SnapshotFetcher     - REST snapshot with failover and TTL cache
    StreamConnection    - Websocket lifecycle with fallback and backoff
    IngestionStore      - Live record set, written per tick
    PublishScheduler    - Frame-rate batching into PublishedState
    RankingEngine       - Gainers / losers / volume / trending / search views
    MarketSession       - Composition root and query surface
    create_market_data_source - Factory that selects Binance or the simulator
    create_stream_router - FastAPI router factory for SSE and JSON endpoints
"""

from .config import FeedSettings
from .connection import ConnectionState, StreamConnection
from .endpoints import Endpoint, EndpointPool
from .factory import create_market_data_source
from .interface import MarketDataSource
from .models import AssetRecord, PriceChange, SnapshotResult, Tick
from .ranking import LockedOrders, RankingEngine
from .scheduler import PublishedState, PublishScheduler
from .session import MarketSession
from .snapshot import SnapshotFetcher
from .store import IngestionStore
from .stream import create_stream_router

__all__ = [
    "AssetRecord",
    "ConnectionState",
    "Endpoint",
    "EndpointPool",
    "FeedSettings",
    "IngestionStore",
    "LockedOrders",
    "MarketDataSource",
    "MarketSession",
    "PriceChange",
    "PublishScheduler",
    "PublishedState",
    "RankingEngine",
    "SnapshotFetcher",
    "SnapshotResult",
    "StreamConnection",
    "Tick",
    "create_market_data_source",
    "create_stream_router",
]
