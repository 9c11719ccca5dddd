"""Fixtures for ticker feed tests."""

import pytest
from builders import make_record

from app.feed.models import AssetRecord


@pytest.fixture
def records() -> list[AssetRecord]:
    """Five records with distinct changes and volumes, in snapshot order."""
    return [
        make_record("BTC", 65000.0, change_24h_percent=2.0, volume_24h=5e9, rank=1),
        make_record("ETH", 3400.0, change_24h_percent=-1.0, volume_24h=3e9, rank=2),
        make_record("SOL", 150.0, change_24h_percent=8.0, volume_24h=1e9, rank=3),
        make_record("DOGE", 0.15, change_24h_percent=-6.0, volume_24h=8e8, rank=4),
        make_record("XRP", 0.52, change_24h_percent=0.5, volume_24h=2e9, rank=5),
    ]
