"""Derived ranking views over the published record set.

The module-level functions are pure: they never mutate their input and
always use stable sorts, so equal keys keep their original relative order.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .models import AssetRecord
from .scheduler import PublishedState

logger = logging.getLogger(__name__)

CATEGORIES = ("all", "gainers", "losers", "volume", "trending")


def top_gainers(records: Sequence[AssetRecord], n: int | None = None) -> list[AssetRecord]:
    """Highest 24h percent change first."""
    return sorted(records, key=lambda r: r.change_24h_percent, reverse=True)[:n]


def top_losers(records: Sequence[AssetRecord], n: int | None = None) -> list[AssetRecord]:
    """Lowest 24h percent change first."""
    return sorted(records, key=lambda r: r.change_24h_percent)[:n]


def top_volume(records: Sequence[AssetRecord], n: int | None = None) -> list[AssetRecord]:
    return sorted(records, key=lambda r: r.volume_24h, reverse=True)[:n]


def trending_score(record: AssetRecord) -> float:
    return record.volume_24h * (1 + record.change_24h_percent / 100)


def trending(records: Sequence[AssetRecord], n: int | None = None) -> list[AssetRecord]:
    """Rising assets ranked by volume weighted by their gain."""
    rising = [r for r in records if r.change_24h_percent > 0]
    return sorted(rising, key=trending_score, reverse=True)[:n]


def top_assets(records: Sequence[AssetRecord], n: int | None = None) -> list[AssetRecord]:
    """The first ``n`` records in snapshot order."""
    return list(records[:n])


def search(records: Sequence[AssetRecord], query: str) -> list[AssetRecord]:
    """Case-insensitive match on symbol or name.

    Exact symbol matches come first, then partial matches; input order is
    kept within each group. A blank query returns everything unchanged.
    """
    q = query.strip().lower()
    if not q:
        return list(records)
    exact: list[AssetRecord] = []
    partial: list[AssetRecord] = []
    for record in records:
        symbol = record.symbol.lower()
        if symbol == q:
            exact.append(record)
        elif q in symbol or q in record.name.lower():
            partial.append(record)
    return exact + partial


def project_locked(order: Sequence[str], current: Sequence[AssetRecord]) -> list[AssetRecord]:
    """Lay ``current`` out in the captured symbol ``order``.

    Symbols missing from ``current`` are dropped; survivors keep their
    captured relative positions.
    """
    by_symbol = {r.symbol: r for r in current}
    return [by_symbol[s] for s in order if s in by_symbol]


class LockedOrders:
    """Per-category symbol orders captured once and then held fixed.

    Values keep updating through the projection, positions don't. A lock is
    captured the first time a category has data and lives until reset().
    With ``relock_when_empty`` a lock whose projection comes back empty is
    dropped and re-captured from the next non-empty data.
    """

    def __init__(self, relock_when_empty: bool = False) -> None:
        self._orders: dict[str, list[str]] = {}
        self._relock_when_empty = relock_when_empty

    def capture(self, category: str, records: Sequence[AssetRecord]) -> bool:
        """Lock ``category`` to the order of ``records`` unless already locked."""
        if category in self._orders or not records:
            return False
        self._orders[category] = [r.symbol for r in records]
        logger.debug("Locked %s order with %d symbols", category, len(records))
        return True

    def view(
        self,
        category: str,
        ranked: Sequence[AssetRecord],
        current: Sequence[AssetRecord] | None = None,
    ) -> list[AssetRecord]:
        """Latest values laid out in the locked order.

        ``ranked`` is what gets captured when no lock exists yet. ``current``
        (default ``ranked``) supplies the values, so a locked symbol that has
        since dropped out of the ranking keeps its slot.
        """
        current = ranked if current is None else current
        self.capture(category, ranked)
        order = self._orders.get(category)
        if order is None:
            return list(ranked)
        projected = project_locked(order, current)
        if not projected and self._relock_when_empty:
            del self._orders[category]
            if self.capture(category, ranked):
                return list(ranked)
        return projected

    def order(self, category: str) -> list[str] | None:
        order = self._orders.get(category)
        return list(order) if order is not None else None

    def reset(self, category: str | None = None) -> None:
        if category is None:
            self._orders.clear()
        else:
            self._orders.pop(category, None)

    def __contains__(self, category: str) -> bool:
        return category in self._orders


class RankingEngine:
    """Ranking views bound to a PublishedState."""

    def __init__(self, state: PublishedState, locked: LockedOrders | None = None) -> None:
        self._state = state
        self._locked = locked if locked is not None else LockedOrders()

    def top_gainers(self, n: int | None = 20) -> list[AssetRecord]:
        return top_gainers(self._state.records(), n)

    def top_losers(self, n: int | None = 20) -> list[AssetRecord]:
        return top_losers(self._state.records(), n)

    def top_volume(self, n: int | None = 20) -> list[AssetRecord]:
        return top_volume(self._state.records(), n)

    def trending(self, n: int | None = 20) -> list[AssetRecord]:
        return trending(self._state.records(), n)

    def top_assets(self, n: int | None = 50) -> list[AssetRecord]:
        return top_assets(self._state.records(), n)

    def search(self, query: str) -> list[AssetRecord]:
        return search(self._state.records(), query)

    def category(self, name: str, n: int | None = 20) -> list[AssetRecord]:
        """Unlocked view by category name. Raises KeyError for unknown names."""
        views = {
            "all": self.top_assets,
            "gainers": self.top_gainers,
            "losers": self.top_losers,
            "volume": self.top_volume,
            "trending": self.trending,
        }
        return views[name](n)

    def locked_view(self, name: str, n: int | None = 20) -> list[AssetRecord]:
        return self._locked.view(name, self.category(name, n), self._state.records())

    def rankings(self, n: int | None = 20, locked: bool = False) -> dict[str, list[AssetRecord]]:
        view = self.locked_view if locked else self.category
        return {name: view(name, n) for name in CATEGORIES}

    @property
    def locked(self) -> LockedOrders:
        return self._locked
