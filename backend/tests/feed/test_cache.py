"""Tests for SnapshotCache."""

from app.feed.cache import SnapshotCache


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestSnapshotCache:
    """Unit tests for the snapshot TTL cache."""

    def test_set_and_get(self):
        """Test storing and reading a payload."""
        cache = SnapshotCache(ttl=60)
        assert cache.set("tickers", [1, 2, 3])
        assert cache.get("tickers") == [1, 2, 3]

    def test_missing_key(self):
        """Test an unknown key returns None."""
        assert SnapshotCache().get("nope") is None

    def test_fresh_within_ttl(self):
        """Test an entry is served until the TTL elapses."""
        clock = FakeClock()
        cache = SnapshotCache(ttl=60, clock=clock)
        cache.set("tickers", ["x"])
        clock.now += 59.9
        assert cache.get("tickers") == ["x"]

    def test_expired_after_ttl(self):
        """Test an entry older than the TTL is never returned."""
        clock = FakeClock()
        cache = SnapshotCache(ttl=60, clock=clock)
        cache.set("tickers", ["x"])
        clock.now += 60
        assert cache.get("tickers") is None
        assert len(cache) == 0

    def test_empty_payload_refused(self):
        """Test empty payloads are not cached."""
        cache = SnapshotCache()
        assert cache.set("tickers", []) is False
        assert "tickers" not in cache

    def test_empty_payload_does_not_replace_good_entry(self):
        """Test a failed (empty) fetch leaves the previous entry intact."""
        cache = SnapshotCache()
        cache.set("tickers", ["good"])
        cache.set("tickers", [])
        assert cache.get("tickers") == ["good"]

    def test_invalidate_one(self):
        """Test dropping a single key."""
        cache = SnapshotCache()
        cache.set("a", [1])
        cache.set("b", [2])
        cache.invalidate("a")
        assert "a" not in cache
        assert "b" in cache

    def test_invalidate_all(self):
        """Test dropping everything."""
        cache = SnapshotCache()
        cache.set("a", [1])
        cache.set("b", [2])
        cache.invalidate()
        assert len(cache) == 0
