"""The primary user-facing entry point for the sync.

`SyncExecutor` wires the three pipeline configurations out of the same
pieces: one `BatchRunner`, one shared `TokenBucket`, and a stage per phase.

- `reconcile()`: reconciliation only.
- `sweep()`: reconciliation, then draft order creation. The second phase
  never starts before the first has finished for the whole batch.
- `send_invoices()`: invoice sending for previously created draft orders.

Every phase is preceded by a confirmation gate. Results, including the
partial results of an aborted run, go to the configured `ResultSink`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
import dataclasses
import logging
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self

from entrant_sync.adapters.memory import InMemoryShop
from entrant_sync.adapters.shopify import ShopifyClient
from entrant_sync.config import FrozenConfig, resolve_config
from entrant_sync.core.types import (
    BatchResult,
    DraftOrderRef,
    InputRecord,
    InvoiceReceipt,
    ReconciledRecord,
    Transaction,
)
from entrant_sync.exceptions import BatchAborted, ConfigurationError
from entrant_sync.gates import AutoApproveGate, ConfirmationGate
from entrant_sync.pipeline.invoice_sender import InvoiceSender
from entrant_sync.pipeline.order_creator import OrderCreator, normalize_variant_map
from entrant_sync.pipeline.rate_limiter import TokenBucket
from entrant_sync.pipeline.reconciler import Reconciler
from entrant_sync.pipeline.runner import BatchRunner, ProgressObserver
from entrant_sync.telemetry import TelemetryContext, TelemetryContextProtocol

if TYPE_CHECKING:
    from entrant_sync.adapters.base import DirectoryClient, OrderService
    from entrant_sync.pipeline.base import RecordStage
    from entrant_sync.sinks import ResultSink

logger = logging.getLogger(__name__)


def _plural(n: int, one: str, many: str) -> str:
    return f"{n} {one if n == 1 else many}"


@dataclasses.dataclass(frozen=True)
class SweepReport:
    """Outcome of a completed sweep."""

    reconciliation: BatchResult[ReconciledRecord]
    orders: BatchResult[Transaction]
    files: tuple[Path, ...] = ()

    @property
    def ok(self) -> bool:
        return self.reconciliation.ok and self.orders.ok


class SyncExecutor:
    """Runs the sync phases against a directory and an order service.

    One `TokenBucket` is built per executor (unless one is injected) and
    shared by every stage, so the combined call rate of all phases stays
    within the configured limit.
    """

    def __init__(
        self,
        config: FrozenConfig,
        directory: DirectoryClient,
        orders: OrderService,
        *,
        limiter: TokenBucket | None = None,
        gate: ConfirmationGate | None = None,
        observer: ProgressObserver | None = None,
        sink: ResultSink | None = None,
        telemetry: TelemetryContextProtocol | None = None,
        halt_on_reconcile_failures: bool = True,
    ) -> None:
        """Initialize the executor.

        Args:
            config: Frozen configuration.
            directory: Customer directory used for reconciliation.
            orders: Service that creates draft orders and sends invoices.
            limiter: Shared token bucket; built from ``config`` when omitted.
            gate: Confirmation gate; approves everything when omitted.
            observer: Progress observer for every run.
            sink: Where results are persisted; nothing is written when omitted.
            telemetry: Optional telemetry context.
            halt_on_reconcile_failures: Stop a sweep before order creation if
                any entry failed reconciliation.
        """
        self.config = config
        self._directory = directory
        self._orders = orders
        self._telemetry = telemetry or TelemetryContext()
        self.limiter = limiter or TokenBucket(
            config.burst_capacity,
            config.rate_limit_per_second,
            telemetry=self._telemetry,
        )
        self._gate = gate or AutoApproveGate()
        self._sink = sink
        self._runner = BatchRunner(observer=observer, telemetry=self._telemetry)
        self.halt_on_reconcile_failures = halt_on_reconcile_failures
        self.cancel_event = asyncio.Event()
        self._owned: list[Any] = []

        self.reconciler = Reconciler(
            directory,
            self.limiter,
            customer_tags=config.customer_tags,
            **self._stage_timeouts(),
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close collaborators created by `create_executor`."""
        for resource in self._owned:
            await resource.aclose()
        self._owned.clear()

    def cancel(self) -> None:
        """Stop the current run, or the next one if none is in progress.

        The request is used up by the run it stops; later runs proceed.
        """
        self.cancel_event.set()

    # --- Pipeline configurations ---

    async def reconcile(self, records: Sequence[InputRecord]) -> BatchResult[ReconciledRecord]:
        """Reconcile every record, without creating orders."""
        await self._confirm(f"{_plural(len(records), 'entry', 'entries')} found. Continue?")
        return await self._run_phase(
            records, self.reconciler, self._persist_reconciliation, []
        )

    async def sweep(
        self,
        records: Sequence[InputRecord],
        variant_map: Mapping[str, object] | None = None,
        *,
        selector: str | None = None,
    ) -> SweepReport:
        """Reconcile every record, then create one draft order per customer.

        Args:
            records: Ingested entries, in processing order.
            variant_map: Selector to variant id map; the configured map when
                omitted.
            selector: Only process entries for this selector (a single size).

        Raises:
            ConfigurationError: If ``selector`` has no variant mapping.
            BatchAborted: If a gate is declined, the run is cancelled, or
                reconciliation failures halt the sweep. Results gathered so
                far are persisted before raising.
        """
        mapping = normalize_variant_map(
            self.config.variant_map if variant_map is None else variant_map
        )
        label = ""
        if selector is not None:
            wanted = selector.strip()
            if wanted not in mapping:
                raise ConfigurationError(f"No variant mapped for selector {wanted!r}")
            records = [r for r in records if r.variant_selector.strip() == wanted]
            label = f"size{wanted}"
            logger.info("Restricted to selector %r: %d record(s)", wanted, len(records))

        files: list[Path] = []
        await self._confirm(f"{_plural(len(records), 'entry', 'entries')} found. Continue?")
        reconciled = await self._run_phase(
            records, self.reconciler, self._persist_reconciliation, files
        )

        if reconciled.failures and self.halt_on_reconcile_failures:
            raise BatchAborted(
                f"{_plural(len(reconciled.failures), 'entry', 'entries')} failed reconciliation",
                reconciled,
            )

        customers = reconciled.successes
        await self._confirm(
            f"About to create draft orders for {_plural(len(customers), 'customer', 'customers')}. "
            "Continue?",
            partial=reconciled,
        )
        creator = OrderCreator(self._orders, self.limiter, mapping, **self._stage_timeouts())
        created = await self._run_phase(
            customers,
            creator,
            lambda result: self._persist_orders(result, label),
            files,
        )
        return SweepReport(reconciled, created, tuple(files))

    async def send_invoices(
        self,
        refs: Sequence[DraftOrderRef],
        message: str | None = None,
        *,
        dry_run: bool = False,
        label: str = "",
    ) -> BatchResult[InvoiceReceipt]:
        """Send the invoice of each draft order.

        With ``dry_run`` nothing is sent and an empty result is returned.
        """
        text = self.config.invoice_message if message is None else message
        if dry_run:
            logger.info("Dry run: would send %s", _plural(len(refs), "invoice", "invoices"))
            return BatchResult((), (), 0)

        await self._confirm(
            f"About to send {_plural(len(refs), 'invoice', 'invoices')}. Continue?"
        )
        sender = InvoiceSender(self._orders, self.limiter, text, **self._stage_timeouts())
        return await self._run_phase(
            refs,
            sender,
            lambda result: self._persist_invoices(result, label),
            [],
        )

    # --- Internals ---

    def _stage_timeouts(self) -> dict[str, Any]:
        return {
            "call_timeout": self.config.call_timeout_seconds,
            "acquire_timeout": self.config.acquire_timeout_seconds,
            "telemetry": self._telemetry,
        }

    async def _confirm(
        self, message: str, *, partial: BatchResult[Any] | None = None
    ) -> None:
        # Gates may block on the terminal; keep that off the event loop
        if not await asyncio.to_thread(self._gate.confirm, message):
            logger.warning("Declined: %s", message)
            raise BatchAborted(f"Declined: {message}", partial)

    async def _run_phase[TIn, TOut](
        self,
        items: Sequence[TIn],
        stage: RecordStage[TIn, TOut],
        persist: Callable[[BatchResult[TOut]], list[Path]],
        files: list[Path],
    ) -> BatchResult[TOut]:
        try:
            result = await self._runner.run(items, stage, cancel_event=self.cancel_event)
        except BatchAborted as e:
            self.cancel_event.clear()
            if e.partial is not None:
                files.extend(persist(e.partial))
            raise
        files.extend(persist(result))
        return result

    def _persist_reconciliation(self, result: BatchResult[ReconciledRecord]) -> list[Path]:
        if self._sink is None:
            return []
        return self._sink.persist_reconciliation(result)

    def _persist_orders(self, result: BatchResult[Transaction], label: str) -> list[Path]:
        if self._sink is None:
            return []
        return self._sink.persist_orders(result, label)

    def _persist_invoices(self, result: BatchResult[InvoiceReceipt], label: str) -> list[Path]:
        if self._sink is None:
            return []
        return self._sink.persist_invoices(result, label)


def create_executor(
    config: FrozenConfig | None = None,
    *,
    directory: DirectoryClient | None = None,
    orders: OrderService | None = None,
    **kwargs: Any,
) -> SyncExecutor:
    """Create an executor with optional configuration and collaborators.

    If no configuration is provided, it is resolved from the environment.
    Missing collaborators are built from the configuration: a `ShopifyClient`
    when ``use_real_api`` is set, otherwise an `InMemoryShop`. Clients built
    here are closed by `SyncExecutor.aclose`.

    Args:
        config: Optional frozen configuration.
        directory: Customer directory override.
        orders: Order service override.
        **kwargs: Forwarded to `SyncExecutor`.

    Returns:
        An instance of SyncExecutor.
    """
    # This is the only place where ambient configuration is resolved.
    final_config = config if config is not None else resolve_config().to_frozen()

    owned: list[Any] = []
    if directory is None or orders is None:
        if final_config.use_real_api:
            client: Any = ShopifyClient.from_config(final_config)
            owned.append(client)
        else:
            logger.info("use_real_api is off; running against an in-memory shop")
            client = InMemoryShop()
        directory = directory or client
        orders = orders or client

    executor = SyncExecutor(final_config, directory, orders, **kwargs)
    executor._owned.extend(owned)
    return executor
