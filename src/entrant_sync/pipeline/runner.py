"""Sequential batch driver shared by every pipeline configuration.

The runner knows nothing about customers, orders or invoices: it feeds each
item of a batch, in input order, to a `RecordStage` and files the outcome into
the success or failure bucket. Reconciliation, order creation and invoice
sending are all runs of this same driver with a different stage.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
import contextlib
import logging
from typing import Any

from entrant_sync.core.types import (
    BatchResult,
    Failure,
    OutcomeKind,
    ProgressEvent,
    Success,
)
from entrant_sync.exceptions import BatchAborted, LimiterError
from entrant_sync.pipeline.base import RecordStage
from entrant_sync.telemetry import TelemetryContext, TelemetryContextProtocol

logger = logging.getLogger(__name__)

type ProgressObserver = Callable[[ProgressEvent], object]


class _Interrupted(Exception):  # noqa: N818
    """Internal signal: the cancel event fired while a record was in flight."""


class BatchRunner:
    """Drives a batch through one stage, one record at a time.

    Guarantees for a run that is not aborted:

    - every item ends up in exactly one bucket;
    - both buckets keep input order;
    - a failing record never stops the batch.

    Only `LimiterError` (misconfiguration) propagates as-is. A set
    ``cancel_event`` ends the run with `BatchAborted`, which carries the
    partial result. Task cancellation propagates unchanged.
    """

    def __init__(
        self,
        *,
        observer: ProgressObserver | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            observer: Default progress observer for runs that do not pass one.
            telemetry: Optional telemetry context.
        """
        self._observer = observer
        self._telemetry = telemetry or TelemetryContext()

    async def run[TIn, TOut](
        self,
        items: Sequence[TIn],
        stage: RecordStage[TIn, TOut],
        *,
        observer: ProgressObserver | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchResult[TOut]:
        """Process `items` through `stage`.

        Args:
            items: Records in the order they must be processed.
            stage: The per-record stage to apply.
            observer: Progress observer for this run (overrides the default).
            cancel_event: When set, no further record is started and any
                record in flight is interrupted.

        Returns:
            The run's `BatchResult`.

        Raises:
            BatchAborted: If `cancel_event` fires before the batch completes.
            LimiterError: If the shared limiter cannot serve requests.
        """
        notify = observer or self._observer
        total = len(items)
        stage_name = stage.stage.value
        successes: list[TOut] = []
        failures: list[Failure] = []

        def partial() -> BatchResult[TOut]:
            return BatchResult(tuple(successes), tuple(failures), total, aborted=True)

        logger.info("Starting %s for %d record(s)", stage_name, total)
        for index, item in enumerate(items, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("%s cancelled before record %d/%d", stage_name, index, total)
                raise BatchAborted(f"{stage_name} cancelled", partial())

            try:
                with self._telemetry("batch.record", stage=stage_name):
                    outcome: Any = await self._handle(stage, item, cancel_event)
            except LimiterError:
                raise
            except _Interrupted:
                logger.warning("%s cancelled during record %d/%d", stage_name, index, total)
                raise BatchAborted(f"{stage_name} cancelled", partial()) from None
            except Exception as e:
                logger.warning(
                    "Record %d/%d raised during %s: %s", index, total, stage_name, e
                )
                outcome = Failure(
                    source=item,
                    stage=stage.stage,
                    reason=str(e) or type(e).__name__,
                    error=e,
                )

            if isinstance(outcome, Success):
                successes.append(outcome.value)
                kind = OutcomeKind.SUCCESS
            elif isinstance(outcome, Failure):
                failures.append(outcome)
                kind = OutcomeKind.FAILURE
            else:
                failures.append(
                    Failure(
                        source=item,
                        stage=stage.stage,
                        reason=f"Stage returned {type(outcome).__name__}, expected an outcome",
                    )
                )
                kind = OutcomeKind.FAILURE

            self._telemetry.count(f"batch.{kind.value}", stage=stage_name)
            self._notify(notify, ProgressEvent(index, total, kind, stage_name))

        logger.info(
            "Finished %s: %d succeeded, %d failed",
            stage_name,
            len(successes),
            len(failures),
        )
        return BatchResult(tuple(successes), tuple(failures), total)

    @staticmethod
    async def _handle(
        stage: RecordStage[Any, Any], item: Any, cancel_event: asyncio.Event | None
    ) -> Any:
        if cancel_event is None:
            return await stage.handle(item)

        work = asyncio.ensure_future(stage.handle(item))
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            work.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await work
            raise
        finally:
            waiter.cancel()

        if work in done:
            return work.result()
        work.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await work
        raise _Interrupted

    @staticmethod
    def _notify(observer: ProgressObserver | None, event: ProgressEvent) -> None:
        if observer is None:
            return
        try:
            observer(event)
        except Exception:
            logger.exception("Progress observer failed; continuing")
