from __future__ import annotations

import time
from collections import defaultdict, deque
from contextlib import contextmanager
from typing import Callable, Deque, Dict, Iterator

from ..domain.errors import RateLimitError


class SlidingWindowRateLimiter:
    """Per-key request counter over a sliding time window. Process local."""

    def __init__(
        self,
        *,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._last_sweep = clock()

    def _prune(self, key: str, now: float) -> Deque[float]:
        hits = self._hits[key]
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        return hits

    def allow(self, key: str) -> bool:
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds * 5:
            self.sweep()
        hits = self._prune(key, now)
        if len(hits) >= self.max_requests:
            return False
        hits.append(now)
        return True

    def hit(self, key: str) -> None:
        if not self.allow(key):
            raise RateLimitError("Too many requests. Please wait a minute and try again.")

    def sweep(self) -> None:
        now = self._clock()
        self._last_sweep = now
        for key in list(self._hits):
            if not self._prune(key, now):
                del self._hits[key]


class ConcurrencyGuard:
    """Caps the number of in-flight operations per key."""

    def __init__(self, *, max_in_flight: int) -> None:
        self.max_in_flight = max_in_flight
        self._in_flight: Dict[str, int] = {}

    def count(self, key: str) -> int:
        return self._in_flight.get(key, 0)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        if self.count(key) >= self.max_in_flight:
            raise RateLimitError("Too many concurrent requests.")
        self._in_flight[key] = self.count(key) + 1
        try:
            yield
        finally:
            remaining = self.count(key) - 1
            if remaining > 0:
                self._in_flight[key] = remaining
            else:
                self._in_flight.pop(key, None)
