"""Per-source token-bucket rate limiter with concurrent connection caps."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int = 60      # per window
    window_secs: float = 60
    max_connections: int = 5    # concurrent, per source address


@dataclass
class RateLimitState:
    tokens: int
    last_refill: float
    active_connections: int = 0


@dataclass(frozen=True)
class RateLimitStats:
    tracked_sources: int
    total_active_connections: int


class RateLimiter:
    """
    Token bucket per source address, refilled in full once a window has
    passed since the last refill. State is created lazily and evicted by
    cleanup(). Every operation holds one lock.
    """

    def __init__(self, config: RateLimitConfig = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._states: Dict[str, RateLimitState] = {}
        self._lock = threading.Lock()

    def _state(self, source: str) -> RateLimitState:
        state = self._states.get(source)
        if state is None:
            state = RateLimitState(tokens=self.config.max_requests, last_refill=self._clock())
            self._states[source] = state
        return state

    def check_request(self, source: str) -> bool:
        """Consume one token; False when the bucket is empty"""
        with self._lock:
            state = self._state(source)
            now = self._clock()
            if now - state.last_refill >= self.config.window_secs:
                state.tokens = self.config.max_requests
                state.last_refill = now

            if state.tokens > 0:
                state.tokens -= 1
                return True
        logger.warning(f"Rate limit exceeded for {source}")
        return False

    def check_connection(self, source: str) -> bool:
        """Reserve a connection slot; False when the source is at its cap"""
        with self._lock:
            state = self._state(source)
            if state.active_connections < self.config.max_connections:
                state.active_connections += 1
                logger.debug(f"Connection allowed for {source}: "
                             f"{state.active_connections}/{self.config.max_connections}")
                return True
            active = state.active_connections
        logger.warning(f"Connection limit exceeded for {source} ({active} active)")
        return False

    def release_connection(self, source: str):
        with self._lock:
            state = self._states.get(source)
            if state is not None and state.active_connections > 0:
                state.active_connections -= 1
                logger.debug(f"Connection released for {source}: "
                             f"{state.active_connections}/{self.config.max_connections}")

    def cleanup(self, threshold_secs: float):
        """Forget idle sources with no open connections"""
        with self._lock:
            now = self._clock()
            stale = [
                source for source, state in self._states.items()
                if state.active_connections == 0 and now - state.last_refill >= threshold_secs
            ]
            for source in stale:
                del self._states[source]
        for source in stale:
            logger.debug(f"Cleaned up rate limit state for {source}")

    def get_stats(self) -> RateLimitStats:
        with self._lock:
            return RateLimitStats(
                tracked_sources=len(self._states),
                total_active_connections=sum(s.active_connections for s in self._states.values()),
            )
