"""Tests for IngestionStore."""

import asyncio

import pytest
from builders import make_record, make_tick

from app.feed.store import IngestionStore


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def seeded_store(**kwargs) -> IngestionStore:
    store = IngestionStore(**kwargs)
    store.seed([make_record("BTC", 100.0, name="Bitcoin", rank=1), make_record("ETH", 50.0, rank=2)])
    return store


class TestIngestionStore:
    """Unit tests for the ingestion store (no event loop)."""

    def test_seed(self):
        """Test seeding installs records in order with no direction."""
        store = seeded_store()
        assert list(store.get_all()) == ["BTC", "ETH"]
        assert store.direction("BTC") == "none"
        assert store.generation == 1

    def test_reseed_replaces_everything(self):
        """Test a reseed drops old symbols and clears directions."""
        store = seeded_store()
        store.apply_tick(make_tick("BTCUSDT", 110.0))
        store.seed([make_record("SOL", 150.0)])
        assert "BTC" not in store
        assert len(store) == 1
        assert store.generation == 2

    def test_price_up(self):
        """Test a 5% rise marks the symbol up at full intensity."""
        store = seeded_store()
        record = store.apply_tick(make_tick("BTCUSDT", 105.0))
        assert record.price == 105.0
        change = store.change("BTC")
        assert change.direction == "up"
        assert change.intensity == 1.0

    def test_price_down_with_partial_intensity(self):
        """Test intensity scales with the move below 1%."""
        store = seeded_store()
        store.apply_tick(make_tick("BTCUSDT", 99.5))
        change = store.change("BTC")
        assert change.direction == "down"
        assert change.intensity == pytest.approx(0.5)

    def test_unchanged_price_keeps_direction(self):
        """Test a tick at the same price leaves the marker alone."""
        store = seeded_store()
        store.apply_tick(make_tick("BTCUSDT", 105.0))
        stamp = store.change("BTC").timestamp
        store.apply_tick(make_tick("BTCUSDT", 105.0, volume=20.0))
        assert store.change("BTC").direction == "up"
        assert store.change("BTC").timestamp == stamp

    def test_tick_replaces_fields(self):
        """Test every mutable field comes from the tick; name and rank are kept."""
        store = seeded_store()
        tick = make_tick("BTCUSDT", 110.0, change=10.0, change_percent=10.0, volume=3.0, high=111.0, low=95.0)
        record = store.apply_tick(tick)
        assert record.name == "Bitcoin"
        assert record.rank == 1
        assert record.change_24h == 10.0
        assert record.change_24h_percent == 10.0
        assert record.volume_24h == 330.0
        assert record.high_24h == 111.0
        assert record.low_24h == 95.0

    def test_unknown_symbol_ignored(self):
        """Test ticks for symbols outside the snapshot are dropped."""
        store = seeded_store()
        assert store.apply_tick(make_tick("PEPEUSDT", 1.0)) is None
        assert "PEPE" not in store
        assert len(store) == 2

    def test_lazy_decay_without_loop(self):
        """Test the marker reads as 'none' once the window has passed."""
        clock = FakeClock()
        store = seeded_store(decay_window=3.0, clock=clock)
        store.apply_tick(make_tick("BTCUSDT", 105.0))
        clock.now += 2.9
        assert store.direction("BTC") == "up"
        clock.now += 0.2
        assert store.direction("BTC") == "none"

    def test_stamps_strictly_increase(self):
        """Test consecutive transitions get distinct stamps on a frozen clock."""
        store = seeded_store(clock=FakeClock())
        store.apply_tick(make_tick("BTCUSDT", 105.0))
        first = store.change("BTC").timestamp
        store.apply_tick(make_tick("BTCUSDT", 101.0))
        assert store.change("BTC").timestamp > first

    def test_stale_decay_does_not_clear_newer_transition(self):
        """Test a decay for a superseded stamp is a no-op."""
        store = seeded_store(clock=FakeClock())
        store.apply_tick(make_tick("BTCUSDT", 105.0))
        stale = store.change("BTC").timestamp
        store.apply_tick(make_tick("BTCUSDT", 101.0))
        store._decay("BTC", stale)
        assert store.direction("BTC") == "down"

    def test_on_dirty_called_per_write(self):
        """Test seed and ticks report dirty symbols."""
        store = IngestionStore()
        seen = []
        store.on_dirty = seen.append
        store.seed([make_record("BTC"), make_record("ETH")])
        store.apply_tick(make_tick("ETHUSDT", 101.0))
        assert seen == ["BTC", "ETH", "ETH"]

    def test_snapshot_skips_unknown(self):
        """Test snapshot() returns only known symbols."""
        store = seeded_store()
        snap = store.snapshot(["BTC", "NOPE"])
        assert list(snap) == ["BTC"]
        record, change = snap["BTC"]
        assert record.price == 100.0
        assert change.direction == "none"


@pytest.mark.asyncio
class TestIngestionStoreDecay:
    """Timer-driven decay inside an event loop."""

    async def test_direction_decays(self):
        """Test the marker reverts to 'none' after the window."""
        store = seeded_store(decay_window=0.05)
        store.apply_tick(make_tick("BTCUSDT", 105.0))
        assert store.direction("BTC") == "up"
        await asyncio.sleep(0.15)
        assert store._changes["BTC"].direction == "none"
        store.close()

    async def test_new_transition_restarts_window(self):
        """Test a newer transition is not cleared by the older timer."""
        store = seeded_store(decay_window=0.2)
        store.apply_tick(make_tick("BTCUSDT", 105.0))
        await asyncio.sleep(0.12)
        store.apply_tick(make_tick("BTCUSDT", 101.0))
        await asyncio.sleep(0.12)
        # The first window would have ended by now
        assert store.direction("BTC") == "down"
        await asyncio.sleep(0.2)
        assert store._changes["BTC"].direction == "none"
        store.close()

    async def test_decay_marks_dirty(self):
        """Test the decay itself is reported so it gets published."""
        store = seeded_store(decay_window=0.05)
        seen = []
        store.on_dirty = seen.append
        store.apply_tick(make_tick("BTCUSDT", 105.0))
        await asyncio.sleep(0.15)
        assert seen == ["BTC", "BTC"]
        store.close()
