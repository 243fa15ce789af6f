"""Base protocol and shared plumbing for per-record pipeline stages."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Protocol, TypeVar

from entrant_sync.core.types import Outcome, Stage
from entrant_sync.telemetry import TelemetryContext, TelemetryContextProtocol

if TYPE_CHECKING:
    from entrant_sync.pipeline.rate_limiter import TokenBucket

# Contravariant input (stages can accept supertypes), invariant output
T_In = TypeVar("T_In", contravariant=True)
T_Out = TypeVar("T_Out")
R = TypeVar("R")


class RecordStage(Protocol[T_In, T_Out]):
    """Protocol for a stage that handles one record at a time.

    A stage turns one item into an `Outcome`. Per-record problems are
    returned as `Failure`, not raised; the batch runner still guards against
    stages that raise anyway.
    """

    stage: Stage

    async def handle(self, item: T_In) -> Outcome[T_Out]:
        """Process one record.

        Args:
            item: The record to process.

        Returns:
            `Success` with the produced value, or a `Failure` describing why
            the record could not be processed.
        """
        ...


class PacedStage:
    """Shared helpers for stages whose remote calls go through the limiter.

    Every remote call costs one token and is bounded by ``call_timeout``.
    """

    stage: Stage

    def __init__(
        self,
        limiter: TokenBucket,
        *,
        call_timeout: float | None = None,
        acquire_timeout: float | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self._limiter = limiter
        self._call_timeout = call_timeout
        self._acquire_timeout = acquire_timeout
        self._telemetry = telemetry or TelemetryContext()

    @property
    def limiter(self) -> TokenBucket:
        return self._limiter

    async def _paced(self, call: Awaitable[R], scope: str) -> R:
        """Take one token, then await `call` under the call timeout.

        `call` must not have started yet (a fresh coroutine), so nothing
        reaches the remote side before the token is granted.
        """
        try:
            await self._limiter.acquire(1, timeout=self._acquire_timeout)
        except BaseException:
            # The call never ran; close it so no "never awaited" warning leaks.
            if asyncio.iscoroutine(call):
                call.close()
            raise
        with self._telemetry(scope):
            if self._call_timeout is None:
                return await call
            async with asyncio.timeout(self._call_timeout):
                return await call
