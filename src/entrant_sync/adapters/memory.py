"""Deterministic in-memory shop.

Implements both `DirectoryClient` and `OrderService` without I/O. Used for
dry runs (``use_real_api = false``) and as the default collaborator in tests.
Every call is recorded so tests can assert on what reached the "remote" side.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
import itertools
import re

from entrant_sync.core.types import (
    DirectoryEntry,
    InvoiceReceipt,
    Transaction,
    normalize_identifier,
)
from entrant_sync.exceptions import RemoteCallError

_PLUS_TAG = re.compile(r"\+[^@]*@")


def _untagged(email: str) -> str:
    return _PLUS_TAG.sub("@", normalize_identifier(email))


class InMemoryShop:
    """A fake shop with customers, draft orders and invoices."""

    def __init__(
        self,
        customers: Iterable[tuple[str, str]] = (),
        *,
        fail_search: Iterable[str] = (),
        fail_create: Iterable[str] = (),
        fail_orders: Iterable[str] = (),
        fail_invoices: Iterable[str] = (),
    ) -> None:
        """Seed the shop.

        Args:
            customers: ``(remote_id, email)`` pairs that already exist.
            fail_search: Emails whose search raises `RemoteCallError`.
            fail_create: Emails whose creation raises `RemoteCallError`.
            fail_orders: Customer ids whose order creation fails.
            fail_invoices: Draft order ids whose invoice send fails.
        """
        self._ids = itertools.count(1000)
        self.customers: dict[str, str] = {str(rid): email for rid, email in customers}
        self.orders: dict[str, dict[str, object]] = {}
        self._fail_search = {normalize_identifier(e) for e in fail_search}
        self._fail_create = {normalize_identifier(e) for e in fail_create}
        self._fail_orders = {str(i) for i in fail_orders}
        self._fail_invoices = {str(i) for i in fail_invoices}

        self.search_calls: list[str] = []
        self.create_calls: list[dict[str, str]] = []
        self.order_calls: list[tuple[str, str]] = []
        self.invoice_calls: list[tuple[str, str]] = []

    # --- DirectoryClient ---

    async def search(self, identifier: str) -> list[DirectoryEntry]:
        self.search_calls.append(identifier)
        query = normalize_identifier(identifier)
        if query in self._fail_search:
            raise RemoteCallError(f"search failed for {identifier}", status_code=503)
        # Like the real search, tagged variants of an address also come back.
        return [
            DirectoryEntry(remote_id=rid, identifier=email)
            for rid, email in self.customers.items()
            if _untagged(email) == _untagged(query)
        ]

    async def create(self, identity: Mapping[str, str]) -> DirectoryEntry:
        self.create_calls.append(dict(identity))
        email = identity.get("email", "")
        if normalize_identifier(email) in self._fail_create:
            raise RemoteCallError(f"email {email} is invalid", status_code=422)
        remote_id = str(next(self._ids))
        self.customers[remote_id] = email
        return DirectoryEntry(remote_id=remote_id, identifier=email)

    # --- OrderService ---

    async def create_order(
        self, remote_id: str, variant_id: str, shipping: Mapping[str, str]
    ) -> Transaction:
        self.order_calls.append((str(remote_id), str(variant_id)))
        if str(remote_id) in self._fail_orders or str(remote_id) not in self.customers:
            raise RemoteCallError(f"cannot create order for {remote_id}", status_code=422)
        order_id = str(next(self._ids))
        self.orders[order_id] = {
            "customer": str(remote_id),
            "variant": str(variant_id),
            "shipping": dict(shipping),
        }
        return Transaction(
            id=order_id,
            display_name=f"#D{len(self.orders)}",
            recipient=self.customers[str(remote_id)],
            created_at=datetime.now(UTC).isoformat(timespec="seconds"),
            status="open",
        )

    async def send_invoice(self, order_id: str, message: str) -> InvoiceReceipt:
        self.invoice_calls.append((str(order_id), message))
        if str(order_id) in self._fail_invoices or str(order_id) not in self.orders:
            raise RemoteCallError(f"draft order {order_id} not found", status_code=404)
        customer = str(self.orders[str(order_id)]["customer"])
        return InvoiceReceipt(
            draft_order_id=str(order_id),
            draft_order_name="",
            to=self.customers.get(customer, ""),
            subject="Complete your purchase",
            custom_message=message,
        )
