"""Result sinks: persist each run's successes and failures for audit and replay.

`CsvResultSink` writes one CSV per bucket, all sharing the run's timestamp so
the files of one run sort together. Empty buckets produce no file.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import csv
from datetime import UTC, datetime
import logging
from pathlib import Path
from typing import Any, Protocol

from entrant_sync.core.types import (
    BatchResult,
    DraftOrderRef,
    Failure,
    InvoiceReceipt,
    ReconciledRecord,
    Transaction,
)

logger = logging.getLogger(__name__)

DRAFT_ORDER_HEADER = ("ID", "Name", "Email", "Created At", "Status")


class ResultSink(Protocol):
    """Receives the final buckets of each phase."""

    def persist_reconciliation(self, result: BatchResult[ReconciledRecord]) -> list[Path]: ...
    def persist_orders(self, result: BatchResult[Transaction], label: str = "") -> list[Path]: ...
    def persist_invoices(self, result: BatchResult[InvoiceReceipt], label: str = "") -> list[Path]: ...


def run_stamp() -> str:
    """Timestamp shared by every file of one run."""
    return datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")


def _suffix(label: str) -> str:
    return f"-{label}" if label else ""


def _source_field(failure: Failure, name: str) -> str:
    source = failure.source
    value = getattr(source, name, None)
    if value is None and isinstance(source, ReconciledRecord):
        value = getattr(source.source, name, None)
    return str(value or "")


class CsvResultSink:
    """Writes result buckets as CSV files under one output directory."""

    def __init__(self, output_dir: str | Path, stamp: str | None = None) -> None:
        self.output_dir = Path(output_dir)
        self.stamp = stamp or run_stamp()

    def persist_reconciliation(self, result: BatchResult[ReconciledRecord]) -> list[Path]:
        written = [
            self._write(
                f"customers-{self.stamp}.csv",
                ("Customer ID", "Email", "Size"),
                (
                    (r.remote_id, r.identifier, r.variant_selector)
                    for r in result.successes
                ),
            ),
            self._write(
                f"entries-failed-{self.stamp}.csv",
                ("Email", "First Name", "Last Name", "Size", "Stage", "Error Type", "Reason"),
                (
                    (
                        f.identifier or "",
                        _source_field(f, "first_name"),
                        _source_field(f, "last_name"),
                        _source_field(f, "variant_selector"),
                        f.stage.value,
                        f.error_type,
                        f.reason,
                    )
                    for f in result.failures
                ),
            ),
        ]
        return [p for p in written if p is not None]

    def persist_orders(self, result: BatchResult[Transaction], label: str = "") -> list[Path]:
        written = [
            self._write(
                f"draft-orders{_suffix(label)}-{self.stamp}.csv",
                DRAFT_ORDER_HEADER,
                (
                    (t.id, t.display_name, t.recipient, t.created_at, t.status)
                    for t in result.successes
                ),
            ),
            self._write(
                f"draft-orders-failed{_suffix(label)}-{self.stamp}.csv",
                ("Customer ID", "Email", "Size", "Error Type", "Reason"),
                (
                    (
                        f.remote_id or "",
                        f.identifier or "",
                        _source_field(f, "variant_selector"),
                        f.error_type,
                        f.reason,
                    )
                    for f in result.failures
                ),
            ),
        ]
        return [p for p in written if p is not None]

    def persist_invoices(self, result: BatchResult[InvoiceReceipt], label: str = "") -> list[Path]:
        written = [
            self._write(
                f"invoices-sent{_suffix(label)}-{self.stamp}.csv",
                ("Draft Order ID", "Draft Order Name", "Sent To"),
                ((r.draft_order_id, r.draft_order_name, r.to) for r in result.successes),
            ),
            self._write(
                f"invoices-failed{_suffix(label)}-{self.stamp}.csv",
                ("Draft Order ID", "Draft Order Name", "Email", "Error Type", "Error"),
                (
                    (
                        f.source.id if isinstance(f.source, DraftOrderRef) else f.remote_id or "",
                        _source_field(f, "name"),
                        f.identifier or "",
                        f.error_type,
                        f.reason,
                    )
                    for f in result.failures
                ),
            ),
        ]
        return [p for p in written if p is not None]

    def _write(
        self, filename: str, header: Sequence[str], rows: Iterable[Sequence[Any]]
    ) -> Path | None:
        materialized = list(rows)
        if not materialized:
            return None
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / filename
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(header)
            writer.writerows(materialized)
        logger.info("Wrote %d row(s) to %s", len(materialized), path)
        return path
