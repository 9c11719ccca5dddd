"""Aggregate market statistics.

The capitalisation figures are a placeholder approximation: there is no
circulating-supply data in the ticker feed, so "market cap" is derived from
traded volume and BTC supply is a fixed constant. Treat the numbers as
indicative only.
"""

from __future__ import annotations

from collections.abc import Sequence

from .models import AssetRecord, MarketStats

CAP_SAMPLE_SIZE = 20
CAP_VOLUME_MULTIPLIER = 1000
BTC_SUPPLY_ESTIMATE = 19_000_000


def approximate_market_cap(records: Sequence[AssetRecord]) -> float:
    return sum(r.volume_24h for r in records[:CAP_SAMPLE_SIZE]) * CAP_VOLUME_MULTIPLIER


def compute_market_stats(records: Sequence[AssetRecord]) -> MarketStats:
    total_cap = approximate_market_cap(records)
    btc = next((r for r in records if r.symbol == "BTC"), None)
    if btc is not None and total_cap > 0:
        dominance = btc.price * BTC_SUPPLY_ESTIMATE / total_cap * 100
    else:
        dominance = 0.0
    if records:
        mean_change = sum(r.change_24h_percent for r in records) / len(records)
    else:
        mean_change = 0.0
    return MarketStats(
        total_market_cap=total_cap,
        total_volume_24h=sum(r.volume_24h for r in records),
        btc_dominance=dominance,
        market_change_24h=mean_change,
        active_coins=len(records),
    )
