"""Authoritative live record set, written as ticks arrive."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable, Iterable
from threading import Lock

from .models import NO_CHANGE, AssetRecord, PriceChange, Tick
from .symbols import DEFAULT_SETTLEMENT, base_symbol

logger = logging.getLogger(__name__)


class IngestionStore:
    """Thread-safe map of symbol -> latest AssetRecord plus price direction.

    Writers: the active data source (snapshot seed, then stream ticks).
    Readers: PublishScheduler, which copies dirty symbols out once per frame.

    Ticks are applied synchronously and independently of any publish cadence.
    Every write reports the symbol to ``on_dirty``.
    """

    def __init__(
        self,
        settlement: str = DEFAULT_SETTLEMENT,
        decay_window: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settlement = settlement
        self._decay_window = decay_window
        self._clock = clock
        self._records: dict[str, AssetRecord] = {}
        self._changes: dict[str, PriceChange] = {}
        self._decays: dict[str, asyncio.TimerHandle] = {}
        self._lock = Lock()
        self._version = 0  # Bumped on every write
        self._generation = 0  # Bumped on every seed (load boundary)
        self.on_dirty: Callable[[str], None] | None = None

    def seed(self, records: Iterable[AssetRecord]) -> None:
        """Replace the whole record set and clear every price direction."""
        with self._lock:
            self._cancel_decays()
            self._records = {r.symbol.upper(): r for r in records}
            self._changes = {symbol: NO_CHANGE for symbol in self._records}
            self._generation += 1
            self._version += 1
            symbols = list(self._records)
        logger.info("Store seeded with %d assets (generation %d)", len(symbols), self._generation)
        for symbol in symbols:
            self._mark_dirty(symbol)

    def apply_tick(self, tick: Tick) -> AssetRecord | None:
        """Merge one tick. Returns the new record, or None for unseeded symbols.

        All mutable fields are replaced from the tick; nothing is carried over
        from the previous record except symbol, name and rank.
        """
        symbol = base_symbol(tick.symbol, self._settlement)
        change: PriceChange | None = None
        with self._lock:
            old = self._records.get(symbol)
            if old is None:
                logger.debug("Ignoring tick for unseeded symbol %s", tick.symbol)
                return None

            now = self._clock()
            record = AssetRecord(
                symbol=old.symbol,
                name=old.name,
                price=tick.price,
                change_24h=tick.change,
                change_24h_percent=tick.change_percent,
                volume_24h=tick.volume * tick.price,
                high_24h=tick.high,
                low_24h=tick.low,
                last_update=now,
                rank=old.rank,
            )
            self._records[symbol] = record

            if tick.price != old.price:
                previous = self._changes.get(symbol, NO_CHANGE)
                # Decay matching relies on each transition having a distinct stamp
                stamp = now if now > previous.timestamp else math.nextafter(previous.timestamp, math.inf)
                if old.price:
                    intensity = min(abs((tick.price - old.price) / old.price) * 100, 1.0)
                else:
                    intensity = 1.0
                change = PriceChange(
                    direction="up" if tick.price > old.price else "down",
                    timestamp=stamp,
                    intensity=intensity,
                )
                self._changes[symbol] = change
            self._version += 1

        if change is not None:
            self._schedule_decay(symbol, change.timestamp)
        self._mark_dirty(symbol)
        return record

    def get(self, symbol: str) -> AssetRecord | None:
        with self._lock:
            return self._records.get(symbol.upper())

    def get_all(self) -> dict[str, AssetRecord]:
        """Snapshot of all records, in seed order. Returns a shallow copy."""
        with self._lock:
            return dict(self._records)

    def change(self, symbol: str) -> PriceChange:
        """Current direction marker, already decayed if its window has passed."""
        with self._lock:
            return self._effective(self._changes.get(symbol.upper(), NO_CHANGE))

    def direction(self, symbol: str) -> str:
        return self.change(symbol).direction

    def snapshot(self, symbols: Iterable[str]) -> dict[str, tuple[AssetRecord, PriceChange]]:
        """Consistent copy of record + direction for the given symbols."""
        with self._lock:
            return {
                s: (self._records[s], self._effective(self._changes.get(s, NO_CHANGE)))
                for s in symbols
                if s in self._records
            }

    def close(self) -> None:
        """Cancel pending decay timers."""
        with self._lock:
            self._cancel_decays()

    @property
    def version(self) -> int:
        return self._version

    @property
    def generation(self) -> int:
        return self._generation

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, symbol: str) -> bool:
        with self._lock:
            return symbol.upper() in self._records

    # --- Internals ---

    def _effective(self, change: PriceChange) -> PriceChange:
        """Apply the decay window lazily (covers callers with no event loop)."""
        if change.direction != "none" and self._clock() - change.timestamp >= self._decay_window:
            return NO_CHANGE
        return change

    def _schedule_decay(self, symbol: str, stamp: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        with self._lock:
            previous = self._decays.pop(symbol, None)
            if previous is not None:
                previous.cancel()
            self._decays[symbol] = loop.call_later(self._decay_window, self._decay, symbol, stamp)

    def _decay(self, symbol: str, stamp: float) -> None:
        """Revert ``symbol`` to 'none' unless a newer transition owns the slot."""
        with self._lock:
            current = self._changes.get(symbol)
            if current is None or current.timestamp != stamp:
                return
            self._decays.pop(symbol, None)
            self._changes[symbol] = PriceChange(direction="none", timestamp=self._clock())
            self._version += 1
        self._mark_dirty(symbol)

    def _cancel_decays(self) -> None:
        for handle in self._decays.values():
            handle.cancel()
        self._decays.clear()

    def _mark_dirty(self, symbol: str) -> None:
        if self.on_dirty is not None:
            self.on_dirty(symbol)
