"""Runtime configuration for the ticker feed, read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .symbols import DEFAULT_SETTLEMENT

logger = logging.getLogger(__name__)

# Base URL and the record count considered "good enough" from that endpoint.
# The global API lists every pair; binance.us only carries a subset.
DEFAULT_REST_ENDPOINTS: tuple[tuple[str, int], ...] = (
    ("https://api.binance.com/api/v3", 200),
    ("https://api.binance.us/api/v3", 50),
    ("https://api1.binance.com/api/v3", 200),
    ("https://api2.binance.com/api/v3", 200),
)

DEFAULT_STREAM_ENDPOINTS: tuple[str, ...] = (
    "wss://stream.binance.com:9443",
    "wss://stream.binance.com:443",
    "wss://stream.binance.us:9443",
)

DEFAULT_TOPICS: tuple[str, ...] = ("!ticker@arr",)


@dataclass(frozen=True)
class FeedSettings:
    """All tunables for one feed session.

    Times are in seconds. ``from_env()`` overrides any field whose
    environment variable is set to a non-blank value.
    """

    source: str = "binance"
    settlement: str = DEFAULT_SETTLEMENT
    min_quote_volume: float = 100_000.0
    snapshot_ttl: float = 60.0
    snapshot_timeout: float = 5.0
    frame_interval: float = 1 / 60
    decay_window: float = 3.0
    connect_timeout: float = 10.0
    ping_interval: float = 30.0
    reconnect_base_delay: float = 1.0
    reconnect_max_delay: float = 30.0
    max_reconnect_attempts: int = 5
    simulator_interval: float = 0.5
    rest_endpoints: tuple[tuple[str, int], ...] = DEFAULT_REST_ENDPOINTS
    stream_endpoints: tuple[str, ...] = DEFAULT_STREAM_ENDPOINTS
    topics: tuple[str, ...] = DEFAULT_TOPICS
    log_level: str = "INFO"
    relock_when_empty: bool = False

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> FeedSettings:
        env = os.environ if environ is None else environ
        defaults = cls()

        def text(name: str, default: str) -> str:
            value = env.get(name, "").strip()
            return value or default

        def number(name: str, default: float) -> float:
            raw = env.get(name, "").strip()
            if not raw:
                return default
            try:
                return float(raw)
            except ValueError:
                raise ValueError(f"{name} must be numeric, got {raw!r}") from None

        def integer(name: str, default: int) -> int:
            value = number(name, default)
            if value != int(value):
                raise ValueError(f"{name} must be a whole number, got {value!r}")
            return int(value)

        def flag(name: str, default: bool) -> bool:
            raw = env.get(name, "").strip().lower()
            if not raw:
                return default
            if raw in ("1", "true", "yes", "on"):
                return True
            if raw in ("0", "false", "no", "off"):
                return False
            raise ValueError(f"{name} must be a boolean, got {raw!r}")

        rest = defaults.rest_endpoints
        raw_rest = env.get("REST_ENDPOINTS", "").strip()
        if raw_rest:
            # First operator-supplied endpoint is treated as the complete primary
            urls = [u.strip().rstrip("/") for u in raw_rest.split(",") if u.strip()]
            rest = tuple((url, 200 if i == 0 else 50) for i, url in enumerate(urls)) or rest

        stream = defaults.stream_endpoints
        raw_stream = env.get("STREAM_ENDPOINTS", "").strip()
        if raw_stream:
            stream = tuple(u.strip().rstrip("/") for u in raw_stream.split(",") if u.strip()) or stream

        topics = defaults.topics
        raw_topics = env.get("STREAM_TOPICS", "").strip()
        if raw_topics:
            # A value made only of separators keeps the defaults
            topics = tuple(t.strip() for t in raw_topics.split(",") if t.strip()) or topics

        settings = cls(
            source=text("FEED_SOURCE", defaults.source).lower(),
            settlement=text("SETTLEMENT_CURRENCY", defaults.settlement).upper(),
            min_quote_volume=number("MIN_QUOTE_VOLUME", defaults.min_quote_volume),
            snapshot_ttl=number("SNAPSHOT_TTL", defaults.snapshot_ttl),
            snapshot_timeout=number("SNAPSHOT_TIMEOUT", defaults.snapshot_timeout),
            frame_interval=number("FRAME_INTERVAL", defaults.frame_interval),
            decay_window=number("DECAY_WINDOW", defaults.decay_window),
            connect_timeout=number("CONNECT_TIMEOUT", defaults.connect_timeout),
            ping_interval=number("PING_INTERVAL", defaults.ping_interval),
            reconnect_base_delay=number("RECONNECT_BASE_DELAY", defaults.reconnect_base_delay),
            reconnect_max_delay=number("RECONNECT_MAX_DELAY", defaults.reconnect_max_delay),
            max_reconnect_attempts=integer(
                "MAX_RECONNECT_ATTEMPTS", defaults.max_reconnect_attempts
            ),
            simulator_interval=number("SIMULATOR_INTERVAL", defaults.simulator_interval),
            rest_endpoints=rest,
            stream_endpoints=stream,
            topics=topics,
            log_level=text("LOG_LEVEL", defaults.log_level).upper(),
            relock_when_empty=flag("RELOCK_WHEN_EMPTY", defaults.relock_when_empty),
        )
        logger.debug("Loaded feed settings: source=%s settlement=%s", settings.source, settings.settlement)
        return settings
