"""Conversion of exchange payloads into feed models.

REST snapshot entries use long field names (``lastPrice``) while stream
events use single letters (``c``); both spellings are accepted everywhere.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from .models import AssetRecord, Kline, Tick
from .symbols import DEFAULT_SETTLEMENT, base_symbol, display_name

logger = logging.getLogger(__name__)

TICKER_EVENTS = frozenset({"24hrTicker", "24hrMiniTicker"})


def _field(entry: dict[str, Any], long_name: str, short_name: str, default: str = "0") -> float:
    value = entry.get(long_name)
    if value is None or value == "":
        value = entry.get(short_name, default)
    return float(value)


def is_tradable(
    entry: Any,
    settlement: str = DEFAULT_SETTLEMENT,
    min_quote_volume: float = 0.0,
) -> bool:
    """True for pairs quoted in ``settlement`` with enough quote volume."""
    if not isinstance(entry, dict):
        return False
    symbol = entry.get("symbol")
    if not isinstance(symbol, str) or not symbol.endswith(settlement):
        return False
    try:
        return float(entry.get("quoteVolume", 0) or 0) > min_quote_volume
    except (TypeError, ValueError):
        return False


def record_from_ticker(
    entry: dict[str, Any],
    rank: int = 0,
    settlement: str = DEFAULT_SETTLEMENT,
    now: float | None = None,
) -> AssetRecord:
    """Build an AssetRecord from a REST ``/ticker/24hr`` entry.

    Raises KeyError, TypeError or ValueError on malformed entries; callers
    drop those individually.
    """
    pair = entry["symbol"]
    price = _field(entry, "lastPrice", "c")
    return AssetRecord(
        symbol=base_symbol(pair, settlement),
        name=display_name(pair, settlement),
        price=price,
        change_24h=_field(entry, "priceChange", "p"),
        change_24h_percent=_field(entry, "priceChangePercent", "P"),
        volume_24h=_field(entry, "volume", "v") * price,
        high_24h=_field(entry, "highPrice", "h"),
        low_24h=_field(entry, "lowPrice", "l"),
        last_update=time.monotonic() if now is None else now,
        rank=rank,
    )


def records_from_tickers(
    entries: list[dict[str, Any]],
    settlement: str = DEFAULT_SETTLEMENT,
) -> list[AssetRecord]:
    """Convert a merged snapshot payload, skipping entries that won't parse."""
    now = time.monotonic()
    records: list[AssetRecord] = []
    for entry in entries:
        try:
            records.append(
                record_from_ticker(entry, rank=len(records) + 1, settlement=settlement, now=now)
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping snapshot entry %s: %s", entry.get("symbol", "???"), e)
    return records


def tick_from_event(event: dict[str, Any]) -> Tick:
    """Build a Tick from one stream event.

    Mini tickers carry no change fields, so change is derived from the open.
    """
    price = float(event["c"])
    if "p" in event and "P" in event:
        change = float(event["p"])
        change_percent = float(event["P"])
    else:
        open_price = float(event["o"])
        change = price - open_price
        change_percent = change / open_price * 100 if open_price else 0.0
    return Tick(
        symbol=str(event["s"]).upper(),
        price=price,
        change=change,
        change_percent=change_percent,
        volume=float(event["v"]),
        high=float(event["h"]),
        low=float(event["l"]),
        event_type=event["e"],
        event_time=int(event.get("E", 0)),
    )


def parse_frame(payload: Any) -> list[Tick]:
    """Extract ticker ticks from a decoded stream frame.

    Accepts a single event or an array of events. Unrecognized event types are
    ignored; malformed events are logged and dropped.
    """
    events = payload if isinstance(payload, list) else [payload]
    ticks: list[Tick] = []
    for event in events:
        if not isinstance(event, dict) or event.get("e") not in TICKER_EVENTS:
            continue
        try:
            ticks.append(tick_from_event(event))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Dropping malformed ticker event for %s: %s", event.get("s", "???"), e)
    return ticks


def kline_from_row(row: list[Any]) -> Kline:
    """Build a Kline from one ``/klines`` array row."""
    return Kline(
        open_time=int(row[0]),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
        close_time=int(row[6]),
    )
