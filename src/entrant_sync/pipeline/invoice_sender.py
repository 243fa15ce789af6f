"""Invoice dispatch stage: send the invoice of each draft order."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from entrant_sync.core.types import (
    DraftOrderRef,
    Failure,
    InvoiceReceipt,
    Outcome,
    Stage,
    Success,
)
from entrant_sync.exceptions import AcquireTimeoutError, InvoiceSendError, LimiterError
from entrant_sync.pipeline.base import PacedStage

if TYPE_CHECKING:
    from entrant_sync.adapters.base import OrderService
    from entrant_sync.pipeline.rate_limiter import TokenBucket
    from entrant_sync.telemetry import TelemetryContextProtocol

logger = logging.getLogger(__name__)


class InvoiceSender(PacedStage):
    """Sends one invoice per `DraftOrderRef` with a fixed custom message."""

    stage = Stage.INVOICE_SEND

    def __init__(
        self,
        orders: OrderService,
        limiter: TokenBucket,
        message: str,
        *,
        call_timeout: float | None = None,
        acquire_timeout: float | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        super().__init__(
            limiter,
            call_timeout=call_timeout,
            acquire_timeout=acquire_timeout,
            telemetry=telemetry,
        )
        self._orders = orders
        self._message = message

    async def handle(self, item: DraftOrderRef) -> Outcome[InvoiceReceipt]:
        try:
            receipt = await self._paced(
                self._orders.send_invoice(item.id, self._message), "orders.send_invoice"
            )
        except LimiterError:
            raise
        except AcquireTimeoutError as e:
            error: Exception = e
        except TimeoutError:
            error = InvoiceSendError(f"Invoice send timed out for draft order {item.id}")
        except Exception as e:
            error = InvoiceSendError(f"Invoice send failed for draft order {item.id}: {e}")
        else:
            # The remote receipt does not echo the order name; keep ours.
            return Success(
                InvoiceReceipt(
                    draft_order_id=receipt.draft_order_id or item.id,
                    draft_order_name=receipt.draft_order_name or item.name,
                    to=receipt.to or item.email,
                    subject=receipt.subject,
                    custom_message=receipt.custom_message,
                )
            )

        logger.info("Invoice send failed for %s: %s", item.id, error)
        return Failure(
            source=item,
            stage=self.stage,
            reason=str(error),
            error=error,
            remote_id=item.id,
        )
