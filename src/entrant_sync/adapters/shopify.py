"""Shopify Admin REST adapter.

Implements `DirectoryClient` and `OrderService` over ``httpx.AsyncClient``.
All HTTP and decoding errors are normalized to `RemoteCallError`; the pipeline
decides what a failure means for the record.
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import TYPE_CHECKING, Any, Self

import httpx

from entrant_sync.core.types import DirectoryEntry, InvoiceReceipt, Transaction
from entrant_sync.exceptions import ConfigurationError, RemoteCallError

if TYPE_CHECKING:
    from types import TracebackType

    from entrant_sync.config import FrozenConfig

log = logging.getLogger(__name__)


def _api_id(value: str) -> int | str:
    """Shopify ids are numeric; keep anything else as given."""
    return int(value) if str(value).isdigit() else value


class ShopifyClient:
    """Thin async client for the handful of Admin endpoints the sync uses."""

    def __init__(
        self,
        shop_name: str,
        api_key: str,
        password: str,
        *,
        api_version: str = "2024-01",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create the client; no request is made until the first call.

        Args:
            shop_name: Store handle, as in ``<shop_name>.myshopify.com``.
            api_key: Private app API key.
            password: Private app password.
            api_version: Admin API version segment.
            timeout: Per-request timeout in seconds.
            transport: Optional transport override (tests use ``MockTransport``).
        """
        if not shop_name or not api_key or not password:
            raise ConfigurationError("Shopify credentials are required")
        self.shop_name = shop_name
        self._client = httpx.AsyncClient(
            base_url=f"https://{shop_name}.myshopify.com/admin/api/{api_version}/",
            auth=httpx.BasicAuth(api_key, password),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls, config: FrozenConfig, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> ShopifyClient:
        """Build a client from resolved configuration."""
        return cls(
            config.shop_name or "",
            config.api_key or "",
            config.password or "",
            api_version=config.api_version,
            timeout=config.call_timeout_seconds,
            transport=transport,
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
        await self._client.aclose()

    # --- DirectoryClient ---

    async def search(self, identifier: str) -> list[DirectoryEntry]:
        data = await self._request(
            "GET",
            "customers/search.json",
            params={"query": f"email:{identifier.strip()}"},
        )
        return [
            DirectoryEntry(remote_id=str(c["id"]), identifier=c.get("email") or "")
            for c in data.get("customers", [])
        ]

    async def create(self, identity: Mapping[str, str]) -> DirectoryEntry:
        data = await self._request(
            "POST", "customers.json", json={"customer": dict(identity)}
        )
        customer = self._field(data, "customer")
        return DirectoryEntry(
            remote_id=str(customer["id"]), identifier=customer.get("email") or ""
        )

    # --- OrderService ---

    async def create_order(
        self, remote_id: str, variant_id: str, shipping: Mapping[str, str]
    ) -> Transaction:
        payload = {
            "draft_order": {
                "line_items": [{"variant_id": _api_id(variant_id), "quantity": 1}],
                "customer": {"id": _api_id(remote_id)},
                "shipping_address": dict(shipping),
            }
        }
        data = await self._request("POST", "draft_orders.json", json=payload)
        order = self._field(data, "draft_order")
        return Transaction(
            id=str(order["id"]),
            display_name=order.get("name") or "",
            recipient=order.get("email") or "",
            created_at=order.get("created_at") or "",
            status=order.get("status") or "",
        )

    async def send_invoice(self, order_id: str, message: str) -> InvoiceReceipt:
        data = await self._request(
            "POST",
            f"draft_orders/{order_id}/send_invoice.json",
            json={"draft_order_invoice": {"custom_message": message}},
        )
        invoice = self._field(data, "draft_order_invoice", require_id=False)
        return InvoiceReceipt(
            draft_order_id=str(order_id),
            draft_order_name="",
            to=invoice.get("to") or "",
            subject=invoice.get("subject") or "",
            custom_message=invoice.get("custom_message") or "",
        )

    # --- Internal helpers ---

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request with centralized error handling."""
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise RemoteCallError(f"Request timeout: {method} {url}") from e
        except httpx.HTTPStatusError as e:
            raise RemoteCallError(
                f"HTTP error {e.response.status_code} on {method} {url}: "
                f"{self._error_detail(e.response)}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise RemoteCallError(f"Request failed: {method} {url}: {e}") from e
        except ValueError as e:
            raise RemoteCallError(f"Invalid JSON from {method} {url}") from e

        if not isinstance(data, dict):
            raise RemoteCallError(f"Unexpected response shape from {method} {url}")
        log.debug("%s %s -> %s", method, url, response.status_code)
        return data

    @staticmethod
    def _field(
        data: Mapping[str, Any], key: str, *, require_id: bool = True
    ) -> Mapping[str, Any]:
        value = data.get(key)
        if not isinstance(value, Mapping):
            raise RemoteCallError(f"Response is missing '{key}'")
        if require_id and "id" not in value:
            raise RemoteCallError(f"Response '{key}' has no id")
        return value

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict) and "errors" in body:
            return str(body["errors"])
        return str(body)[:200]
