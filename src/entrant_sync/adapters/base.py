"""Capability protocols for the remote shop.

The pipeline depends only on these shapes. Concrete adapters (the Shopify
REST client, the in-memory shop used by tests and dry runs) raise
`RemoteCallError` for transport failures and return neutral core types.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

from entrant_sync.core.types import DirectoryEntry, InvoiceReceipt, Transaction


@runtime_checkable
class DirectoryClient(Protocol):
    """Search and create customer identities."""

    async def search(self, identifier: str) -> Sequence[DirectoryEntry]:
        """Return zero or more entries that may match `identifier`.

        Results can include near matches; callers pick exact ones.
        """
        ...

    async def create(self, identity: Mapping[str, str]) -> DirectoryEntry:
        """Create an entry from minimal identity fields."""
        ...


@runtime_checkable
class OrderService(Protocol):
    """Create draft orders and send their invoices."""

    async def create_order(
        self, remote_id: str, variant_id: str, shipping: Mapping[str, str]
    ) -> Transaction:
        """Create a one-line draft order for customer `remote_id`."""
        ...

    async def send_invoice(self, order_id: str, message: str) -> InvoiceReceipt:
        """Email the invoice of draft order `order_id`."""
        ...
