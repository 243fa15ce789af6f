"""Token bucket gating every outbound remote call.

One bucket is created per run and injected into each stage that talks to the
remote shop, so the shared per-second quota is enforced in a single place.
The clock and sleep functions are injectable; tests drive the bucket with a
fake clock instead of real waits.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
import time

from entrant_sync.exceptions import AcquireTimeoutError, LimiterError
from entrant_sync.telemetry import TelemetryContext, TelemetryContextProtocol

logger = logging.getLogger(__name__)

# Float slack when comparing accrued tokens against a request.
_EPSILON = 1e-9


class TokenBucket:
    """Async token bucket with continuous refill.

    Invariant: ``0 <= available <= capacity``. All reads and writes of the
    counters happen while holding one ``asyncio.Lock``; waiters queue on that
    lock, so requests are served in roughly arrival order and never overdraw.
    """

    def __init__(
        self,
        capacity: float,
        refill_rate_per_second: float,
        *,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[object]] | None = None,
        max_wait_attempts: int = 64,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        """Create a full bucket.

        Args:
            capacity: Maximum tokens held (burst size). Must be > 0.
            refill_rate_per_second: Tokens accrued per second. Must be > 0.
            clock: Monotonic clock in seconds. Defaults to ``time.monotonic``.
            sleep: Awaitable sleep. Defaults to ``asyncio.sleep``.
            max_wait_attempts: Bound on refill-and-wait cycles per acquire.
            telemetry: Optional telemetry context.

        Raises:
            LimiterError: If any bound is not positive.
        """
        if not capacity > 0:
            raise LimiterError(f"capacity must be > 0, got {capacity!r}")
        if not refill_rate_per_second > 0:
            raise LimiterError(
                f"refill_rate_per_second must be > 0, got {refill_rate_per_second!r}"
            )
        if max_wait_attempts < 1:
            raise LimiterError("max_wait_attempts must be >= 1")

        self._capacity = float(capacity)
        self._rate = float(refill_rate_per_second)
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._max_wait_attempts = max_wait_attempts
        self._telemetry = telemetry or TelemetryContext()
        self._available = self._capacity
        self._last_refill = self._clock()
        self._lock = asyncio.Lock()

    @property
    def capacity(self) -> float:
        return self._capacity

    @property
    def refill_rate_per_second(self) -> float:
        return self._rate

    @property
    def available(self) -> float:
        """Tokens that would be available right now (read-only view)."""
        elapsed = max(0.0, self._clock() - self._last_refill)
        return min(self._capacity, self._available + elapsed * self._rate)

    async def acquire(self, tokens: int = 1, *, timeout: float | None = None) -> None:
        """Wait until `tokens` have been debited from the bucket.

        Args:
            tokens: Number of tokens to debit. Zero returns immediately.
            timeout: Optional budget in seconds. When the wait would exceed
                it, the call fails instead of sleeping past the deadline.

        Raises:
            LimiterError: If `tokens` is negative, exceeds capacity, or the
                wait loop runs out of attempts.
            AcquireTimeoutError: If `timeout` expires first.
        """
        if tokens == 0:
            return
        if tokens < 0:
            raise LimiterError(f"Cannot acquire a negative number of tokens: {tokens}")
        if tokens > self._capacity:
            raise LimiterError(
                f"Requested {tokens} tokens but bucket capacity is {self._capacity:g}"
            )

        deadline = None if timeout is None else self._clock() + timeout
        await self._lock_acquire(tokens, timeout)
        try:
            await self._debit(tokens, deadline, timeout)
        finally:
            self._lock.release()

    async def _lock_acquire(self, tokens: int, timeout: float | None) -> None:
        if timeout is None:
            await self._lock.acquire()
            return
        try:
            async with asyncio.timeout(timeout):
                await self._lock.acquire()
        except TimeoutError as e:
            raise AcquireTimeoutError(tokens, timeout) from e

    async def _debit(
        self, tokens: int, deadline: float | None, timeout: float | None
    ) -> None:
        for _ in range(self._max_wait_attempts):
            self._refill()
            if self._available + _EPSILON >= tokens:
                self._available = max(0.0, self._available - tokens)
                return

            wait = (tokens - self._available) / self._rate
            if deadline is not None and self._clock() + wait > deadline:
                raise AcquireTimeoutError(tokens, timeout or 0.0)

            self._telemetry.count("limiter.wait")
            self._telemetry.gauge("limiter.wait_seconds", wait)
            logger.debug("Rate limit reached, waiting %.3fs for %d token(s)", wait, tokens)
            await self._sleep(wait)

        raise LimiterError(
            f"Could not acquire {tokens} token(s) after {self._max_wait_attempts} attempts"
        )

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._available = min(self._capacity, self._available + elapsed * self._rate)
        self._last_refill = now

    def __repr__(self) -> str:
        return (
            f"TokenBucket(capacity={self._capacity:g}, "
            f"refill_rate_per_second={self._rate:g})"
        )
