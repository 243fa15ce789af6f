"""Core data types shared by every pipeline stage."""

from .types import (
    BatchResult,
    DirectoryEntry,
    DraftOrderRef,
    Failure,
    Found,
    InputRecord,
    InvoiceReceipt,
    Lookup,
    NotFound,
    Outcome,
    OutcomeKind,
    ProgressEvent,
    ReconciledRecord,
    Stage,
    Success,
    Transaction,
    normalize_identifier,
)

__all__ = [
    "BatchResult",
    "DirectoryEntry",
    "DraftOrderRef",
    "Failure",
    "Found",
    "InputRecord",
    "InvoiceReceipt",
    "Lookup",
    "NotFound",
    "Outcome",
    "OutcomeKind",
    "ProgressEvent",
    "ReconciledRecord",
    "Stage",
    "Success",
    "Transaction",
    "normalize_identifier",
]
