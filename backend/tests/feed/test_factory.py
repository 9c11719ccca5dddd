"""Tests for the ticker data source factory."""

import os
from unittest.mock import patch

from app.feed.binance_client import BinanceDataSource
from app.feed.config import FeedSettings
from app.feed.factory import create_market_data_source
from app.feed.simulator import SimulatorDataSource
from app.feed.store import IngestionStore


class TestFactory:
    """Tests for create_market_data_source."""

    def test_creates_binance_by_default(self):
        """Test that the live source is the default."""
        with patch.dict(os.environ, {}, clear=True):
            source = create_market_data_source(IngestionStore(), FeedSettings.from_env())
        assert isinstance(source, BinanceDataSource)

    def test_creates_simulator_when_selected(self):
        """Test FEED_SOURCE=simulator selects the simulator."""
        with patch.dict(os.environ, {"FEED_SOURCE": "simulator"}, clear=True):
            source = create_market_data_source(IngestionStore(), FeedSettings.from_env())
        assert isinstance(source, SimulatorDataSource)

    def test_simulator_receives_store_and_interval(self):
        """Test the simulator is wired to the given store and settings."""
        store = IngestionStore()
        source = create_market_data_source(store, FeedSettings(source="simulator", simulator_interval=0.2))
        assert source._store is store
        assert source._interval == 0.2

    def test_binance_receives_store(self):
        """Test the live source is wired to the given store."""
        store = IngestionStore()
        source = create_market_data_source(store, FeedSettings())
        assert source._store is store
