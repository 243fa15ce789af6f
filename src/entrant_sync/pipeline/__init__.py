"""Rate-limited, per-record pipeline stages and the batch runner."""

from .base import PacedStage, RecordStage
from .invoice_sender import InvoiceSender
from .order_creator import OrderCreator, normalize_variant_map
from .rate_limiter import TokenBucket
from .reconciler import Reconciler
from .runner import BatchRunner, ProgressObserver

__all__ = [
    "BatchRunner",
    "InvoiceSender",
    "OrderCreator",
    "PacedStage",
    "ProgressObserver",
    "RecordStage",
    "Reconciler",
    "TokenBucket",
    "normalize_variant_map",
]
