"""Streaming connection lifecycle: connect, keepalive, fallback, backoff."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .endpoints import EndpointPool

logger = logging.getLogger(__name__)

PING_FRAME = json.dumps({"method": "ping"})

# Frames for !ticker@arr can run to several hundred KB
MAX_FRAME_BYTES = 8 * 1024 * 1024


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"  # Closed, reconnect pending
    FAILED = "failed"  # Gave up; needs an explicit connect()


def build_stream_uri(base: str, topics: Sequence[str]) -> str:
    """``{base}/ws/{topic}`` for one topic, combined-stream URI for several."""
    base = base.rstrip("/")
    if len(topics) == 1:
        return f"{base}/ws/{topics[0]}"
    return f"{base}/stream?streams={'/'.join(topics)}"


def backoff_delay(attempts: int, base: float = 1.0, maximum: float = 30.0) -> float:
    """Exponential backoff: base * 2^attempts, capped at ``maximum``."""
    return min(base * (2**attempts), maximum)


def _default_connector(uri: str) -> Awaitable[Any]:
    # Keepalive is the application-level ping below, not protocol pings
    return websockets.connect(uri, ping_interval=None, max_size=MAX_FRAME_BYTES)


class HandlerSet:
    """Observer list whose registrations return a de-registration handle.

    A failing handler is logged and skipped. Coroutine handlers are scheduled
    as tasks so no handler can stall the caller.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._handlers: list[Callable[..., Any]] = []
        self._pending: set[asyncio.Task] = set()

    def add(self, handler: Callable[..., Any]) -> Callable[[], None]:
        self._handlers.append(handler)

        def remove() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return remove

    def emit(self, *args: Any) -> None:
        for handler in list(self._handlers):
            try:
                result = handler(*args)
            except Exception:
                logger.exception("%s handler failed", self._name)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._reap)

    def clear(self) -> None:
        self._handlers.clear()

    def _reap(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("%s handler failed: %s", self._name, task.exception())

    def __len__(self) -> int:
        return len(self._handlers)


class StreamConnection:
    """One physical streaming connection with automatic recovery.

    Lifecycle:
        conn = StreamConnection(pool)
        conn.on_message(handle_frame)
        conn.connect(["!ticker@arr"])
        # ... frames flow to handle_frame ...
        await conn.disconnect()

    Recovery policy on close or connect failure:
      - First failure since the last successful open: try the next endpoint
        immediately, until every endpoint has been tried once.
      - Then exponential backoff (base * 2^attempts, capped), restarting from
        the primary endpoint, for at most ``max_attempts`` retries. After
        that the connection is FAILED and waits for an explicit connect().
    """

    def __init__(
        self,
        endpoints: EndpointPool,
        *,
        connector: Callable[[str], Awaitable[Any]] | None = None,
        connect_timeout: float = 10.0,
        ping_interval: float = 30.0,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_attempts: int = 5,
    ) -> None:
        self._endpoints = endpoints
        self._connector = connector or _default_connector
        self._connect_timeout = connect_timeout
        self._ping_interval = ping_interval
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._max_attempts = max_attempts

        self._state = ConnectionState.IDLE
        self._topics: list[str] = []
        self._transport: Any = None
        self._task: asyncio.Task | None = None
        self._keepalive: asyncio.Task | None = None
        self._reconnect: asyncio.TimerHandle | None = None
        self._attempts = 0  # Backoff retries since the last successful open
        self._fallbacks = 0  # Endpoints skipped since the last successful open

        self._message_handlers = HandlerSet("message")
        self._connect_handlers = HandlerSet("connect")
        self._disconnect_handlers = HandlerSet("disconnect")
        self._error_handlers = HandlerSet("error")
        self._failed_handlers = HandlerSet("failed")
        self._state_handlers = HandlerSet("state")

    # --- Public API ---

    def connect(self, topics: Sequence[str]) -> None:
        """Start connecting to ``topics``. Returns immediately.

        No-op while already connecting or open. Resets all retry counters, so
        this also resumes a FAILED connection.
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            logger.info("Stream already connected or connecting")
            return
        if not topics:
            raise ValueError("connect() needs at least one topic")

        self._topics = list(topics)
        self._cancel_reconnect()
        self._attempts = 0
        self._fallbacks = 0
        self._open()

    async def disconnect(self) -> None:
        """Tear everything down. Safe to call in any state, any number of times.

        Cancels timers, closes the transport, clears every observer and resets
        counters so a later connect() starts clean.
        """
        self._cancel_reconnect()
        self._stop_keepalive()
        transport, self._transport = self._transport, None
        task, self._task = self._task, None
        self._set_state(ConnectionState.IDLE)

        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if transport is not None:
            await self._close_quietly(transport)

        for handlers in (
            self._message_handlers,
            self._connect_handlers,
            self._disconnect_handlers,
            self._error_handlers,
            self._failed_handlers,
            self._state_handlers,
        ):
            handlers.clear()
        self._attempts = 0
        self._fallbacks = 0
        logger.info("Stream disconnected")

    async def subscribe(self, topic: str) -> bool:
        """Add a topic on the live connection (kept across reconnects)."""
        if topic not in self._topics:
            self._topics.append(topic)
        return await self._send_control("SUBSCRIBE", topic)

    async def unsubscribe(self, topic: str) -> bool:
        if topic in self._topics and len(self._topics) > 1:
            self._topics.remove(topic)
        return await self._send_control("UNSUBSCRIBE", topic)

    def on_message(self, handler: Callable[[Any], Any]) -> Callable[[], None]:
        return self._message_handlers.add(handler)

    def on_connect(self, handler: Callable[[], Any]) -> Callable[[], None]:
        return self._connect_handlers.add(handler)

    def on_disconnect(self, handler: Callable[[], Any]) -> Callable[[], None]:
        return self._disconnect_handlers.add(handler)

    def on_error(self, handler: Callable[[BaseException], Any]) -> Callable[[], None]:
        return self._error_handlers.add(handler)

    def on_failed(self, handler: Callable[[], Any]) -> Callable[[], None]:
        return self._failed_handlers.add(handler)

    def on_state_change(self, handler: Callable[[ConnectionState], Any]) -> Callable[[], None]:
        return self._state_handlers.add(handler)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.OPEN

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def topics(self) -> list[str]:
        return list(self._topics)

    # --- Internal ---

    def _open(self) -> None:
        """Open a transport to the current endpoint, replacing any stale one."""
        self._cancel_reconnect()
        self._stop_keepalive()
        if self._transport is not None:
            logger.warning("Closing stale stream transport before reconnecting")
            stale, self._transport = self._transport, None
            asyncio.ensure_future(self._close_quietly(stale))
        if (
            self._task is not None
            and not self._task.done()
            and self._task is not asyncio.current_task()
        ):
            self._task.cancel()

        index = self._endpoints.current
        uri = build_stream_uri(self._endpoints[index].url, self._topics)
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(
            self._run(uri, index), name="stream-connection"
        )

    async def _run(self, uri: str, index: int) -> None:
        logger.info("Connecting to %s", uri)
        try:
            ws = await asyncio.wait_for(self._connector(uri), timeout=self._connect_timeout)
        except TimeoutError as e:
            logger.warning("Connection to %s timed out after %.1fs", uri, self._connect_timeout)
            self._error_handlers.emit(e)
            self._handle_close()
            return
        except (OSError, WebSocketException) as e:
            logger.warning("Connection to %s failed: %s", uri, e)
            self._error_handlers.emit(e)
            self._handle_close()
            return

        self._transport = ws
        self._attempts = 0
        self._fallbacks = 0
        self._endpoints.remember(index)
        self._set_state(ConnectionState.OPEN)
        self._keepalive = asyncio.create_task(self._keepalive_loop(ws), name="stream-keepalive")
        logger.info("Stream connected to %s", uri)
        self._connect_handlers.emit()

        try:
            async for raw in ws:
                self._dispatch(raw)
            logger.info("Stream closed by server: %s", uri)
        except (ConnectionClosed, OSError) as e:
            logger.warning("Stream connection lost: %s", e)
            self._error_handlers.emit(e)
        finally:
            self._stop_keepalive()
            if self._transport is ws:
                self._transport = None

        if self._state is not ConnectionState.OPEN:
            return  # Torn down while the receive loop was finishing
        self._set_state(ConnectionState.CLOSED)
        self._disconnect_handlers.emit()
        self._handle_close()

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Dropping malformed frame: %s", e)
            return
        # Combined streams wrap each event as {"stream": ..., "data": ...}
        if isinstance(payload, dict) and "stream" in payload and "data" in payload:
            payload = payload["data"]
        self._message_handlers.emit(payload)

    def _handle_close(self) -> None:
        """Decide between endpoint fallback, backoff, or giving up."""
        if self._state is ConnectionState.IDLE:
            return
        self._set_state(ConnectionState.CLOSED)

        if self._attempts == 0 and self._fallbacks < len(self._endpoints) - 1:
            self._fallbacks += 1
            self._endpoints.advance()
            logger.info("Falling back to stream endpoint %s", self._endpoints.current_endpoint.url)
            self._open()
            return

        if self._attempts >= self._max_attempts:
            self._set_state(ConnectionState.FAILED)
            logger.error("Max reconnection attempts reached (%d); not retrying", self._max_attempts)
            self._failed_handlers.emit()
            return

        delay = backoff_delay(self._attempts, self._base_delay, self._max_delay)
        self._attempts += 1
        if self._attempts == 1:
            self._endpoints.reset()
        logger.info(
            "Reconnecting in %.1fs (attempt %d/%d)", delay, self._attempts, self._max_attempts
        )
        self._reconnect = self._call_later(delay, self._fire_reconnect)

    def _fire_reconnect(self) -> None:
        self._reconnect = None
        if self._state is ConnectionState.CLOSED:
            self._open()

    def _call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)

    async def _keepalive_loop(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self._ping_interval)
            if self._state is not ConnectionState.OPEN or self._transport is not ws:
                return
            try:
                await ws.send(PING_FRAME)
            except (ConnectionClosed, OSError) as e:
                logger.debug("Keepalive ping failed: %s", e)
                return

    async def _send_control(self, method: str, topic: str) -> bool:
        if self._transport is None or self._state is not ConnectionState.OPEN:
            logger.error("Stream not connected; cannot %s %s", method, topic)
            return False
        message = {"method": method, "params": [topic], "id": int(time.time() * 1000)}
        try:
            await self._transport.send(json.dumps(message))
        except (ConnectionClosed, OSError) as e:
            logger.warning("%s %s failed: %s", method, topic, e)
            return False
        return True

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        self._state_handlers.emit(state)

    def _cancel_reconnect(self) -> None:
        if self._reconnect is not None:
            self._reconnect.cancel()
            self._reconnect = None

    def _stop_keepalive(self) -> None:
        if self._keepalive is not None and not self._keepalive.done():
            if self._keepalive is not asyncio.current_task():
                self._keepalive.cancel()
        self._keepalive = None

    @staticmethod
    async def _close_quietly(transport: Any) -> None:
        try:
            await transport.close()
        except (ConnectionClosed, OSError) as e:
            logger.debug("Error closing stream transport: %s", e)
