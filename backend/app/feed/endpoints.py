"""Ordered endpoint pools with last-success memory."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Endpoint:
    """A candidate base URL.

    ``coverage_target`` is the number of records after which a snapshot sweep
    stops querying further endpoints. Streaming pools ignore it.
    """

    url: str
    coverage_target: int = 0


class EndpointPool:
    """Round-robin pool of endpoints for one transport kind.

    Pure bookkeeping: knows nothing about how endpoints are used, only which
    one to try first.
    """

    def __init__(self, endpoints: Sequence[Endpoint | str]) -> None:
        if not endpoints:
            raise ValueError("EndpointPool needs at least one endpoint")
        self._endpoints: list[Endpoint] = [
            ep if isinstance(ep, Endpoint) else Endpoint(url=ep) for ep in endpoints
        ]
        self._current = 0

    @classmethod
    def from_pairs(cls, pairs: Sequence[tuple[str, int]]) -> EndpointPool:
        return cls([Endpoint(url=url, coverage_target=target) for url, target in pairs])

    def next(self, start: int | None = None) -> Iterator[tuple[int, Endpoint]]:
        """Yield every endpoint once, in order, beginning at ``start``.

        Defaults to the remembered endpoint.
        """
        n = len(self._endpoints)
        first = self._current if start is None else start % n
        for offset in range(n):
            index = (first + offset) % n
            yield index, self._endpoints[index]

    def remember(self, index: int) -> None:
        """Record the endpoint that last succeeded."""
        self._current = index % len(self._endpoints)

    def advance(self) -> int:
        """Move to the following endpoint and return its index."""
        self._current = (self._current + 1) % len(self._endpoints)
        return self._current

    def reset(self) -> None:
        """Go back to the primary endpoint."""
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    @property
    def current_endpoint(self) -> Endpoint:
        return self._endpoints[self._current]

    def __getitem__(self, index: int) -> Endpoint:
        return self._endpoints[index]

    def __len__(self) -> int:
        return len(self._endpoints)
