"""Rate-limited sync of raffle entrants into a shop's customers and draft orders."""

import importlib.metadata
import logging

from entrant_sync.core.types import (
    BatchResult,
    DirectoryEntry,
    DraftOrderRef,
    Failure,
    Found,
    InputRecord,
    InvoiceReceipt,
    NotFound,
    Outcome,
    ProgressEvent,
    ReconciledRecord,
    Stage,
    Success,
    Transaction,
)
from entrant_sync.exceptions import (
    AcquireTimeoutError,
    BatchAborted,
    ConfigurationError,
    DirectoryCreateError,
    DirectoryLookupError,
    EntrantSyncError,
    InvoiceSendError,
    LimiterError,
    MissingVariantMapping,
    OrderCreateError,
    RemoteCallError,
)
from entrant_sync.executor import SweepReport, SyncExecutor, create_executor
from entrant_sync.gates import AutoApproveGate, ConfirmationGate, ConsoleGate
from entrant_sync.ingest import read_draft_orders, read_entries
from entrant_sync.pipeline import (
    BatchRunner,
    InvoiceSender,
    OrderCreator,
    Reconciler,
    TokenBucket,
)
from entrant_sync.progress import LoggingProgressObserver
from entrant_sync.sinks import CsvResultSink, ResultSink
from entrant_sync.telemetry import TelemetryContext, TelemetryReporter

# Version handling
try:
    __version__ = importlib.metadata.version("entrant-sync")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Set up a null handler for the library's root logger.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [  # noqa: RUF022
    # Executor
    "SyncExecutor",
    "SweepReport",
    "create_executor",
    # Pipeline
    "BatchRunner",
    "TokenBucket",
    "Reconciler",
    "OrderCreator",
    "InvoiceSender",
    # Edges
    "read_entries",
    "read_draft_orders",
    "ResultSink",
    "CsvResultSink",
    "ConfirmationGate",
    "ConsoleGate",
    "AutoApproveGate",
    "LoggingProgressObserver",
    # Telemetry (extension points)
    "TelemetryContext",
    "TelemetryReporter",
    # Core types
    "InputRecord",
    "DirectoryEntry",
    "Found",
    "NotFound",
    "ReconciledRecord",
    "Transaction",
    "DraftOrderRef",
    "InvoiceReceipt",
    "Stage",
    "Success",
    "Failure",
    "Outcome",
    "ProgressEvent",
    "BatchResult",
    # Exceptions
    "EntrantSyncError",
    "ConfigurationError",
    "LimiterError",
    "AcquireTimeoutError",
    "RemoteCallError",
    "DirectoryLookupError",
    "DirectoryCreateError",
    "MissingVariantMapping",
    "OrderCreateError",
    "InvoiceSendError",
    "BatchAborted",
]
