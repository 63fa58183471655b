"""Rate limiting for calls against an external, globally limited provider."""

from __future__ import annotations

import threading
import time
from typing import Callable, Protocol

from geo_registry.common.errors import ConfigError


class RateLimiter(Protocol):
    def acquire(self, tokens: float = 1.0) -> None: ...


class NoopRateLimiter:
    """Never waits. Used by tests and by providers without a limit."""

    def __init__(self) -> None:
        self.acquired = 0

    def acquire(self, tokens: float = 1.0) -> None:
        self.acquired += 1


class TokenBucket:
    def __init__(
        self,
        rate_per_sec: float,
        capacity: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate_per_sec <= 0:
            raise ConfigError("rate_per_sec must be positive")
        self.rate_per_sec = rate_per_sec
        self.capacity = capacity if capacity is not None else max(rate_per_sec, 1.0)
        self.tokens = self.capacity
        self.clock = clock
        self.sleep = sleep
        self.updated_at = clock()
        self.lock = threading.Lock()

    @classmethod
    def from_min_interval(cls, seconds: float, **kwargs) -> "TokenBucket":
        """One call immediately, then at most one call every ``seconds``."""
        if seconds <= 0:
            raise ConfigError("min_interval_seconds must be positive")
        return cls(rate_per_sec=1.0 / seconds, capacity=1.0, **kwargs)

    def acquire(self, tokens: float = 1.0) -> None:
        while True:
            with self.lock:
                now = self.clock()
                elapsed = now - self.updated_at
                self.tokens = min(self.capacity, self.tokens + elapsed * self.rate_per_sec)
                self.updated_at = now
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                deficit = tokens - self.tokens
                wait_for = max(deficit / self.rate_per_sec, 0.01)
            self.sleep(wait_for)


def build_rate_limiter(min_interval_seconds: float | None) -> RateLimiter:
    if not min_interval_seconds:
        return NoopRateLimiter()
    return TokenBucket.from_min_interval(float(min_interval_seconds))
