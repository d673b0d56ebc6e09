"""Sliding-window admission control for token-costly backend calls.

Each :meth:`RateLimiter.admit` call sums the tokens admitted within the
trailing window.  If the new request would push the average rate over the
budget, the caller sleeps for ``excess / tokens_per_second`` seconds and is
then admitted.  The limiter never rejects; callers that need a deadline wrap
``admit`` in :func:`asyncio.wait_for`.

The state lock only covers the prune/sum/decide/append bookkeeping, never the
sleep, so one throttled caller does not hold up the others.  While a caller
sleeps its tokens count as pending so concurrent callers queue up behind it;
if the sleep is cancelled the pending tokens are withdrawn and nothing is
recorded.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from toolgate.config import RateLimitConfig
from toolgate.utils.telemetry import (
    ATTR_TOKENS,
    ATTR_WAIT_SECONDS,
    ATTR_WINDOW_TOKENS,
    get_tracer,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

DEFAULT_TOKENS_PER_SECOND = 630.0
DEFAULT_WINDOW_SECONDS = 10.0


@dataclass(frozen=True)
class RequestRecord:
    """Tokens admitted at a point in time (clock seconds)."""

    timestamp: float
    token_count: int


class RateLimiter:
    """Bound token throughput to *tokens_per_second* averaged over a window.

    *clock* and *sleep* are injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        tokens_per_second: float = DEFAULT_TOKENS_PER_SECOND,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if tokens_per_second <= 0:
            msg = "tokens_per_second must be positive"
            raise ValueError(msg)
        if window_seconds <= 0:
            msg = "window_seconds must be positive"
            raise ValueError(msg)

        self._rate = float(tokens_per_second)
        self._window_seconds = float(window_seconds)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._window: deque[RequestRecord] = deque()
        self._pending_tokens = 0

    @classmethod
    def from_config(
        cls,
        config: RateLimitConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> RateLimiter:
        return cls(
            config.tokens_per_second,
            config.window_seconds,
            clock=clock,
            sleep=sleep,
        )

    @property
    def tokens_per_second(self) -> float:
        return self._rate

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def capacity(self) -> float:
        """Tokens the window can hold before callers are delayed."""
        return self._rate * self._window_seconds

    def window_total(self) -> int:
        """Tokens committed within the current window."""
        with self._lock:
            self._prune(self._clock())
            return sum(record.token_count for record in self._window)

    async def admit(self, token_cost: int) -> float:
        """Wait until *token_cost* tokens fit the budget, then record them.

        Returns the number of seconds the caller was delayed.
        """
        if isinstance(token_cost, bool) or not isinstance(token_cost, int):
            msg = f"token_cost must be an integer, got {token_cost!r}"
            raise ValueError(msg)
        if token_cost < 0:
            msg = f"token_cost must be non-negative, got {token_cost}"
            raise ValueError(msg)

        with _tracer.start_as_current_span("toolgate.throttle.admit") as span:
            span.set_attribute(ATTR_TOKENS, token_cost)

            with self._lock:
                now = self._clock()
                self._prune(now)
                in_window = sum(record.token_count for record in self._window)
                wait = self._required_wait(in_window + self._pending_tokens, token_cost)
                span.set_attribute(ATTR_WINDOW_TOKENS, in_window)
                span.set_attribute(ATTR_WAIT_SECONDS, wait)
                if wait <= 0:
                    self._window.append(RequestRecord(now, token_count=token_cost))
                    return 0.0
                self._pending_tokens += token_cost

            logger.debug(
                "Rate limit reached (%d tokens in window, %d requested); waiting %.3fs",
                in_window,
                token_cost,
                wait,
            )
            admitted = False
            try:
                await self._sleep(wait)
                admitted = True
            finally:
                # Move pending tokens into the window under one lock hold.
                with self._lock:
                    if admitted:
                        self._window.append(RequestRecord(self._clock(), token_count=token_cost))
                    self._pending_tokens -= token_cost
            return wait

    def _required_wait(self, current_total: float, token_cost: int) -> float:
        if (current_total + token_cost) / self._window_seconds <= self._rate:
            return 0.0
        excess = current_total + token_cost - self.capacity
        return excess / self._rate

    def _prune(self, now: float) -> None:
        while self._window and now - self._window[0].timestamp >= self._window_seconds:
            self._window.popleft()
