"""Data models for the ticker feed."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Literal

Direction = Literal["up", "down", "none"]


@dataclass(frozen=True, slots=True)
class AssetRecord:
    """Immutable snapshot of one asset's 24h ticker state.

    A new record replaces the previous one wholesale on every tick; symbol and
    name are carried over unchanged.
    """

    symbol: str
    name: str
    price: float
    change_24h: float
    change_24h_percent: float
    volume_24h: float  # Quote-currency notional
    high_24h: float
    low_24h: float
    last_update: float = field(default_factory=time.monotonic)
    rank: int = 0

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "change_24h": self.change_24h,
            "change_24h_percent": self.change_24h_percent,
            "volume_24h": self.volume_24h,
            "high_24h": self.high_24h,
            "low_24h": self.low_24h,
            "last_update": self.last_update,
            "rank": self.rank,
        }


@dataclass(frozen=True, slots=True)
class PriceChange:
    """Transient price direction marker for one symbol."""

    direction: Direction = "none"
    timestamp: float = 0.0
    intensity: float = 0.0

    def to_dict(self) -> dict:
        return {
            "direction": self.direction,
            "timestamp": self.timestamp,
            "intensity": self.intensity,
        }


NO_CHANGE = PriceChange()


@dataclass(frozen=True, slots=True)
class Tick:
    """One parsed 24h ticker event as received from the stream."""

    symbol: str  # Wire symbol, e.g. BTCUSDT
    price: float
    change: float
    change_percent: float
    volume: float  # Base-asset volume
    high: float
    low: float
    event_type: str = "24hrTicker"
    event_time: int = 0  # Exchange time, Unix milliseconds


@dataclass(frozen=True, slots=True)
class Kline:
    """One candlestick from the kline collaborator."""

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: int

    def to_dict(self) -> dict:
        return {
            "open_time": self.open_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "close_time": self.close_time,
        }


@dataclass(frozen=True, slots=True)
class SnapshotResult:
    """Outcome of a bulk snapshot fetch.

    ``ok`` is False only when every endpoint failed to produce usable data, in
    which case ``records`` is empty. ``partial`` means data was obtained but
    no endpoint's coverage target was reached.
    """

    records: list[AssetRecord]
    partial: bool = False
    ok: bool = True


@dataclass(frozen=True, slots=True)
class MarketStats:
    """Aggregate market figures derived from the current record set."""

    total_market_cap: float
    total_volume_24h: float
    btc_dominance: float
    market_change_24h: float
    active_coins: int

    def to_dict(self) -> dict:
        return {
            "total_market_cap": self.total_market_cap,
            "total_volume_24h": self.total_volume_24h,
            "btc_dominance": self.btc_dominance,
            "market_change_24h": self.market_change_24h,
            "active_coins": self.active_coins,
        }
