"""Tests for MarketSession wiring and query surface."""

import asyncio

import pytest
from builders import StaticSource, make_record, make_tick

from app.feed.config import FeedSettings
from app.feed.session import MarketSession


def make_session(records, **settings) -> MarketSession:
    settings.setdefault("frame_interval", 0.01)
    return MarketSession(
        FeedSettings(**settings),
        source_factory=lambda store, _: StaticSource(store, records),
    )


@pytest.mark.asyncio
class TestMarketSession:
    """End-to-end pipeline through a static source."""

    async def test_start_publishes_snapshot(self, records):
        """Test the seeded snapshot becomes visible after a frame."""
        session = make_session(records)
        assert session.loading
        await session.start()
        assert not session.loading
        await asyncio.sleep(0.05)
        assert [r.symbol for r in session.records()] == ["BTC", "ETH", "SOL", "DOGE", "XRP"]
        await session.stop()

    async def test_tick_flows_to_views(self, records):
        """Test a tick reaches the published state with a direction."""
        session = make_session(records)
        await session.start()
        session.store.apply_tick(make_tick("SOLUSDT", 160.0, change_percent=20.0))
        await asyncio.sleep(0.05)
        assert session.direction("SOL") == "up"
        assert session.view("gainers", 1, locked=False)[0].symbol == "SOL"
        await session.stop()

    async def test_locked_view_resets_on_reload(self, records):
        """Test a new load boundary drops captured orders."""
        session = make_session(records)
        await session.start()
        await asyncio.sleep(0.05)
        session.view("gainers", 3)
        assert "gainers" in session.locked

        session.store.seed([make_record("ADA", 0.45)])
        await asyncio.sleep(0.05)
        assert "gainers" not in session.locked
        assert [r.symbol for r in session.view("all")] == ["ADA"]
        await session.stop()

    async def test_unknown_category(self, records):
        """Test unknown categories raise KeyError."""
        session = make_session(records)
        with pytest.raises(KeyError):
            session.view("hot")

    async def test_describe(self, records):
        """Test describe() merges direction and display strings."""
        session = make_session(records)
        await session.start()
        await asyncio.sleep(0.05)
        described = session.describe(session.records()[0])
        assert described["symbol"] == "BTC"
        assert described["direction"] == "none"
        assert described["display"]["price"] == "65000.00"
        assert described["display"]["percent"] == "+2.00%"
        assert described["recently_updated"] is False
        await session.stop()

    async def test_status_and_stats(self, records):
        """Test status and aggregate stats."""
        session = make_session(records)
        await session.start()
        await asyncio.sleep(0.05)
        status = session.status()
        assert status["source"] == "static"
        assert status["connected"] is True
        assert status["assets"] == 5
        assert status["partial"] is False
        assert session.stats().active_coins == 5
        await session.stop()
        assert session.status()["connected"] is False

    async def test_klines_delegate_to_source(self, records):
        """Test klines come from the source."""
        session = make_session(records)
        klines = await session.klines("BTCUSDT")
        assert klines[0].close == 1.5

    async def test_simulator_session(self):
        """Test a full session on the simulator source."""
        session = MarketSession(FeedSettings(source="simulator", simulator_interval=0.02, frame_interval=0.01))
        await session.start()
        await asyncio.sleep(0.1)
        assert len(session.records()) > 0
        assert session.status()["source"] == "simulator"
        await session.stop()
