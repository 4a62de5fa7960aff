"""Per-client request limiting for the portal's API routes."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int


class RateLimitStore(ABC):
    """Counts requests per client key; injected into the server."""

    @abstractmethod
    def hit(self, key: str, now: Optional[float] = None) -> RateLimitDecision:
        """Record one request for ``key`` and decide whether it may proceed."""

    def reset(self) -> None:
        """Forget all tracked clients."""


@dataclass
class InMemoryRateLimitStore(RateLimitStore):
    """
    Sliding-window limiter kept in process memory.

    Each key keeps the timestamps of its accepted requests within the last
    ``window_seconds``. Once more than ``max_keys`` clients are tracked,
    keys with no request inside the window are dropped.
    """

    limit: int = 30
    window_seconds: int = 60
    max_keys: int = 10_000
    clock: Callable[[], float] = time.monotonic
    _hits: dict[str, list[float]] = field(default_factory=dict, init=False, repr=False)

    def __len__(self) -> int:
        return len(self._hits)

    def hit(self, key: str, now: Optional[float] = None) -> RateLimitDecision:
        now = self.clock() if now is None else now
        window_start = now - float(self.window_seconds)
        entries = [t for t in self._hits.get(key, []) if t > window_start]

        if len(entries) >= self.limit:
            self._hits[key] = entries
            return RateLimitDecision(allowed=False, remaining=0, retry_after=int(self.window_seconds))

        entries.append(now)
        self._hits[key] = entries
        if len(self._hits) > self.max_keys:
            self._cleanup(window_start)
        return RateLimitDecision(
            allowed=True,
            remaining=max(0, self.limit - len(entries)),
            retry_after=0,
        )

    def _cleanup(self, window_start: float) -> None:
        stale = [k for k, stamps in self._hits.items() if not stamps or stamps[-1] <= window_start]
        for key in stale:
            del self._hits[key]

    def reset(self) -> None:
        self._hits.clear()
