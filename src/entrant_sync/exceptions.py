"""Exception hierarchy for entrant synchronisation.

Per-record errors (lookups, creations, orders, invoices, acquire timeouts) are
captured by the batch runner and turned into `Failure` data. Only
`LimiterError` and `BatchAborted` are meant to escape a run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from entrant_sync.core.types import BatchResult


class EntrantSyncError(Exception):
    """Base exception for entrant synchronisation errors."""


class ConfigurationError(EntrantSyncError):
    """Raised when settings or run arguments are unusable."""


class LimiterError(EntrantSyncError):
    """Raised when the rate limiter is misconfigured or cannot serve a request."""


class AcquireTimeoutError(EntrantSyncError):
    """Raised when a bounded token acquisition runs out of time."""

    def __init__(self, tokens: int, timeout: float) -> None:  # noqa: D107
        self.tokens = tokens
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:.2f}s waiting for {tokens} token(s)")


class RemoteCallError(EntrantSyncError):
    """Raised by adapters when a remote call fails at the transport level."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:  # noqa: D107
        self.status_code = status_code
        super().__init__(message)


class DirectoryLookupError(EntrantSyncError):
    """Directory search failed or matched more than one entry."""


class DirectoryCreateError(EntrantSyncError):
    """Directory entry creation failed."""


class MissingVariantMapping(EntrantSyncError):  # noqa: N818
    """A reconciled record's selector has no remote variant."""

    def __init__(self, selector: str) -> None:  # noqa: D107
        self.selector = selector
        super().__init__(f"No variant mapped for selector {selector!r}")


class OrderCreateError(EntrantSyncError):
    """Remote draft order creation failed."""


class InvoiceSendError(EntrantSyncError):
    """Remote invoice dispatch failed."""


class BatchAborted(EntrantSyncError):  # noqa: N818
    """Raised when a run is cancelled or a confirmation gate is declined.

    The partial result collected before the abort travels with the exception
    so callers can still persist it.
    """

    def __init__(self, reason: str, partial: BatchResult | None = None) -> None:  # noqa: D107
        self.reason = reason
        self.partial = partial
        super().__init__(reason)
