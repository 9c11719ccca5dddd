"""Tests for SnapshotFetcher (mocked HTTP transport)."""

import httpx
import pytest
from builders import make_ticker_entry

from app.feed.cache import SnapshotCache
from app.feed.endpoints import Endpoint, EndpointPool
from app.feed.snapshot import SnapshotFetcher


class FakeExchange:
    """Routes requests by host to canned responses and records the calls."""

    def __init__(self, routes: dict) -> None:
        self.routes = routes
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.calls.append(host)
        route = self.routes[host]
        if isinstance(route, Exception):
            raise route
        if isinstance(route, int):
            return httpx.Response(route)
        return httpx.Response(200, json=route)


def make_fetcher(routes: dict, targets: dict | None = None, cache: SnapshotCache | None = None):
    targets = targets or {}
    pool = EndpointPool(
        [Endpoint(f"https://{host}/api/v3", targets.get(host, 1)) for host in routes]
    )
    exchange = FakeExchange(routes)
    client = httpx.AsyncClient(transport=httpx.MockTransport(exchange))
    cache = cache if cache is not None else SnapshotCache(ttl=60)
    fetcher = SnapshotFetcher(pool, cache=cache, client=client)
    return fetcher, pool, exchange


BTC = make_ticker_entry("BTCUSDT", 65000.0)
ETH = make_ticker_entry("ETHUSDT", 3400.0)
SOL = make_ticker_entry("SOLUSDT", 150.0)


@pytest.mark.asyncio
class TestSnapshotFetcher:
    """Failover, merging and caching of the bulk ticker snapshot."""

    async def test_primary_success(self):
        """Test a healthy primary is the only endpoint queried."""
        fetcher, _, exchange = make_fetcher({"a.test": [BTC, ETH], "b.test": [SOL]})
        result = await fetcher.fetch_all()
        assert result.ok
        assert not result.partial
        assert [r.symbol for r in result.records] == ["BTC", "ETH"]
        assert [r.rank for r in result.records] == [1, 2]
        assert exchange.calls == ["a.test"]

    async def test_failover_and_remember(self):
        """Test a failing primary falls over and the winner is tried first next time."""
        cache = SnapshotCache(ttl=60)
        fetcher, pool, exchange = make_fetcher({"a.test": 500, "b.test": [BTC]}, cache=cache)
        result = await fetcher.fetch_all()
        assert [r.symbol for r in result.records] == ["BTC"]
        assert pool.current == 1

        cache.invalidate()
        exchange.calls.clear()
        await fetcher.fetch_all()
        assert exchange.calls == ["b.test"]

    async def test_transport_errors_are_absorbed(self):
        """Test timeouts and bad bodies move on to the next endpoint."""
        fetcher, _, exchange = make_fetcher(
            {
                "a.test": httpx.ConnectTimeout("slow"),
                "b.test": {"code": -1121, "msg": "Invalid symbol."},
                "c.test": [ETH],
            }
        )
        result = await fetcher.fetch_all()
        assert [r.symbol for r in result.records] == ["ETH"]
        assert exchange.calls == ["a.test", "b.test", "c.test"]

    async def test_merge_until_coverage(self):
        """Test results merge across endpoints, first-seen wins, until a target is met."""
        btc_elsewhere = make_ticker_entry("BTCUSDT", 1.0)
        fetcher, _, exchange = make_fetcher(
            {"a.test": [BTC, ETH], "b.test": [btc_elsewhere, SOL], "c.test": [SOL]},
            targets={"a.test": 3, "b.test": 3},
        )
        result = await fetcher.fetch_all()
        assert not result.partial
        assert [r.symbol for r in result.records] == ["BTC", "ETH", "SOL"]
        assert result.records[0].price == 65000.0
        assert exchange.calls == ["a.test", "b.test"]

    async def test_partial_when_no_target_met(self):
        """Test data below every target is returned and flagged partial."""
        fetcher, _, _ = make_fetcher(
            {"a.test": [BTC], "b.test": 503},
            targets={"a.test": 200, "b.test": 50},
        )
        result = await fetcher.fetch_all()
        assert result.ok
        assert result.partial
        assert [r.symbol for r in result.records] == ["BTC"]

    async def test_exhaustion(self):
        """Test total failure yields an empty, not-ok result and caches nothing."""
        cache = SnapshotCache(ttl=60)
        fetcher, _, exchange = make_fetcher(
            {"a.test": 500, "b.test": httpx.ConnectError("down")}, cache=cache
        )
        result = await fetcher.fetch_all()
        assert not result.ok
        assert result.records == []
        assert len(cache) == 0

        exchange.calls.clear()
        await fetcher.fetch_all()
        assert exchange.calls == ["a.test", "b.test"]

    async def test_cache_hit_skips_network(self):
        """Test a fresh cached snapshot is served without a request."""
        fetcher, _, exchange = make_fetcher({"a.test": [BTC]})
        await fetcher.fetch_all()
        result = await fetcher.fetch_all()
        assert [r.symbol for r in result.records] == ["BTC"]
        assert exchange.calls == ["a.test"]

    async def test_filters_settlement_and_volume(self):
        """Test only liquid pairs in the settlement currency survive."""
        fetcher, _, _ = make_fetcher(
            {
                "a.test": [
                    BTC,
                    make_ticker_entry("ETHBTC", 0.05, quote_volume=1e9),
                    make_ticker_entry("DUSTUSDT", 0.01, quote_volume=10),
                ]
            }
        )
        result = await fetcher.fetch_all()
        assert [r.symbol for r in result.records] == ["BTC"]

    async def test_klines(self):
        """Test klines are decoded and cached."""
        row = [1700000000000, "100", "110", "90", "105", "12.5", 1700003599999]
        fetcher, _, exchange = make_fetcher({"a.test": [row, row]})
        klines = await fetcher.fetch_klines("btcusdt", "1h", 2)
        assert len(klines) == 2
        assert klines[0].close == 105.0
        await fetcher.fetch_klines("BTCUSDT", "1h", 2)
        assert exchange.calls == ["a.test"]

    async def test_klines_failure_is_empty(self):
        """Test klines degrade to an empty list."""
        fetcher, _, _ = make_fetcher({"a.test": 500})
        assert await fetcher.fetch_klines("BTCUSDT") == []

    async def test_aclose_leaves_injected_client_open(self):
        """Test aclose() only closes a client the fetcher created itself."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=[])))
        fetcher = SnapshotFetcher(EndpointPool(["https://a.test"]), client=client)
        await fetcher.aclose()
        assert not client.is_closed
        await client.aclose()
