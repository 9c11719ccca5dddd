"""Bulk REST snapshot of the tradable asset universe, with endpoint failover."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .cache import SnapshotCache
from .endpoints import EndpointPool
from .models import Kline, SnapshotResult
from .parsing import is_tradable, kline_from_row, records_from_tickers
from .symbols import DEFAULT_SETTLEMENT

logger = logging.getLogger(__name__)

TICKERS_KEY = "tickers"


class SnapshotFetcher:
    """Fetches and merges 24h tickers from one or more REST endpoints.

    Every endpoint failure (network error, timeout, bad status, bad body) is
    absorbed and the next endpoint is tried. Only when the whole pool is
    exhausted without data does the caller see a failure, and then as an
    empty ``SnapshotResult(ok=False)`` rather than an exception.
    """

    def __init__(
        self,
        endpoints: EndpointPool,
        cache: SnapshotCache | None = None,
        client: httpx.AsyncClient | None = None,
        settlement: str = DEFAULT_SETTLEMENT,
        min_quote_volume: float = 100_000.0,
        timeout: float = 5.0,
    ) -> None:
        self._endpoints = endpoints
        self._cache = cache if cache is not None else SnapshotCache()
        self._client = client
        self._owns_client = client is None
        self._settlement = settlement
        self._min_quote_volume = min_quote_volume
        self._timeout = timeout

    async def fetch_all(self) -> SnapshotResult:
        """Return the current asset universe, from cache when fresh."""
        cached = self._cache.get(TICKERS_KEY)
        if cached:
            entries, partial = cached
            logger.debug("Snapshot served from cache (%d pairs)", len(entries))
            return SnapshotResult(records=records_from_tickers(entries, self._settlement), partial=partial)

        merged: dict[str, dict[str, Any]] = {}
        satisfied = False
        for index, endpoint in self._endpoints.next():
            payload = await self._get_json(endpoint.url, "/ticker/24hr")
            if not isinstance(payload, list):
                if payload is not None:
                    logger.warning("Unexpected snapshot body from %s, trying next...", endpoint.url)
                continue

            accepted = 0
            for entry in payload:
                if is_tradable(entry, self._settlement, self._min_quote_volume):
                    if entry["symbol"] not in merged:
                        merged[entry["symbol"]] = entry
                        accepted += 1
            self._endpoints.remember(index)
            logger.info(
                "Snapshot from %s: %d new pairs (%d total)", endpoint.url, accepted, len(merged)
            )

            if merged and len(merged) >= endpoint.coverage_target:
                satisfied = True
                break

        if not merged:
            logger.error("Snapshot failed: no usable data from %d endpoints", len(self._endpoints))
            return SnapshotResult(records=[], partial=False, ok=False)

        entries = list(merged.values())
        partial = not satisfied
        if partial:
            logger.warning("Snapshot is partial: %d pairs, no endpoint reached its target", len(entries))
        self._cache.set(TICKERS_KEY, (entries, partial))
        return SnapshotResult(records=records_from_tickers(entries, self._settlement), partial=partial)

    async def fetch_klines(self, symbol: str, interval: str = "1h", limit: int = 50) -> list[Kline]:
        """Candlesticks for one pair (e.g. ``BTCUSDT``); empty list on failure."""
        symbol = symbol.upper().strip()
        key = f"klines:{symbol}:{interval}:{limit}"
        cached = self._cache.get(key)
        if cached:
            return cached

        params = {"symbol": symbol, "interval": interval, "limit": limit}
        for index, endpoint in self._endpoints.next():
            payload = await self._get_json(endpoint.url, "/klines", params)
            if not isinstance(payload, list):
                continue
            klines: list[Kline] = []
            for row in payload:
                try:
                    klines.append(kline_from_row(row))
                except (IndexError, TypeError, ValueError) as e:
                    logger.warning("Skipping kline row for %s: %s", symbol, e)
            self._endpoints.remember(index)
            self._cache.set(key, klines)
            return klines

        logger.error("Kline fetch for %s failed on all endpoints", symbol)
        return []

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    # --- Internal ---

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    async def _get_json(self, base: str, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``base + path``; None on any transport or decoding failure."""
        url = f"{base}{path}"
        try:
            response = await self._http().get(url, params=params, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("HTTP %d from %s, trying next...", e.response.status_code, base)
        except httpx.HTTPError as e:
            logger.warning("Error fetching from %s: %s", base, e)
        except ValueError as e:
            logger.warning("Undecodable response from %s: %s", base, e)
        return None
