"""Frame-rate publishing of store changes to the consumer-visible state."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from threading import Lock

from .models import NO_CHANGE, AssetRecord, PriceChange
from .store import IngestionStore

logger = logging.getLogger(__name__)

Batch = dict[str, tuple[AssetRecord, PriceChange]]


class PublishedState:
    """The externally observable record set.

    Only PublishScheduler writes here, one whole batch at a time, so readers
    never see a half-applied frame. Record order is the snapshot order.
    """

    def __init__(self) -> None:
        self._records: dict[str, AssetRecord] = {}
        self._changes: dict[str, PriceChange] = {}
        self._lock = Lock()
        self._version = 0
        self._generation = 0
        self._listeners: list[Callable[[Batch], None]] = []

    def publish(self, batch: Batch, generation: int | None = None) -> None:
        """Apply a batch atomically.

        Passing a ``generation`` marks a load boundary: existing records are
        dropped and ``batch`` becomes the full set.
        """
        with self._lock:
            if generation is not None:
                self._records = {}
                self._changes = {}
                self._generation = generation
            for symbol, (record, change) in batch.items():
                self._records[symbol] = record
                self._changes[symbol] = change
            self._version += 1
        for listener in list(self._listeners):
            try:
                listener(batch)
            except Exception:
                logger.exception("Publish listener failed")

    def subscribe(self, listener: Callable[[Batch], None]) -> Callable[[], None]:
        """Call ``listener(batch)`` after every publish. Returns an unsubscribe handle."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get(self, symbol: str) -> AssetRecord | None:
        with self._lock:
            return self._records.get(symbol.upper())

    def get_all(self) -> dict[str, AssetRecord]:
        with self._lock:
            return dict(self._records)

    def records(self) -> list[AssetRecord]:
        with self._lock:
            return list(self._records.values())

    def change(self, symbol: str) -> PriceChange:
        with self._lock:
            return self._changes.get(symbol.upper(), NO_CHANGE)

    def direction(self, symbol: str) -> str:
        return self.change(symbol).direction

    def is_recently_updated(self, symbol: str, window: float = 3.0) -> bool:
        record = self.get(symbol)
        if record is None:
            return False
        return time.monotonic() - record.last_update < window

    def to_dict(self) -> dict[str, dict]:
        """Serialize for JSON / SSE transmission."""
        with self._lock:
            return {
                symbol: {**record.to_dict(), **self._changes.get(symbol, NO_CHANGE).to_dict()}
                for symbol, record in self._records.items()
            }

    async def wait_for_change(self, version: int, timeout: float, poll: float = 0.05) -> int:
        """Wait until the version moves past ``version`` or ``timeout`` elapses."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self._version == version:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(poll, remaining))
        return self._version

    @property
    def version(self) -> int:
        """Current version counter. Useful for SSE change detection."""
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


class PublishScheduler:
    """Batches dirty symbols and flushes them at most once per frame.

    Any number of ticks for a symbol between two flushes collapse into one
    published value, the latest. Intermediate states are dropped on purpose:
    this is the backpressure between the tick rate and the render rate.
    """

    def __init__(
        self,
        store: IngestionStore,
        state: PublishedState,
        frame_interval: float = 1 / 60,
    ) -> None:
        self._store = store
        self._state = state
        self._interval = frame_interval
        self._dirty: dict[str, None] = {}  # Insertion-ordered set
        self._scheduled = False
        self._handle: asyncio.TimerHandle | asyncio.Handle | None = None
        store.on_dirty = self.mark_dirty

    def mark_dirty(self, symbol: str) -> None:
        """Queue ``symbol`` for the next flush, scheduling one if none is pending.

        Outside an event loop the flush runs immediately.
        """
        self._dirty[symbol] = None
        if self._scheduled:
            return
        self._scheduled = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        if self._interval > 0:
            self._handle = loop.call_later(self._interval, self.flush)
        else:
            self._handle = loop.call_soon(self.flush)

    def flush(self) -> int:
        """Publish every dirty symbol's current record. Returns how many."""
        self._handle = None
        dirty = list(self._dirty)
        self._dirty.clear()
        self._scheduled = False

        generation = self._store.generation
        reset = generation != self._state.generation
        if reset:
            # Load boundary: republish the whole store in seed order
            dirty = list(self._store.get_all())
        batch = self._store.snapshot(dirty)
        if not batch and not reset:
            return 0
        self._state.publish(batch, generation=generation if reset else None)
        logger.debug("Published %d symbols (version %d)", len(batch), self._state.version)
        return len(batch)

    def close(self) -> None:
        """Cancel a pending flush and forget queued symbols."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._dirty.clear()
        self._scheduled = False

    @property
    def pending(self) -> bool:
        return self._scheduled

    @property
    def dirty(self) -> list[str]:
        return list(self._dirty)
