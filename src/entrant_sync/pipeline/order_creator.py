"""Order creation stage: one draft order per reconciled record."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from typing import TYPE_CHECKING

from entrant_sync.core.types import (
    Failure,
    Outcome,
    ReconciledRecord,
    Stage,
    Success,
    Transaction,
)
from entrant_sync.exceptions import (
    AcquireTimeoutError,
    LimiterError,
    MissingVariantMapping,
    OrderCreateError,
)
from entrant_sync.pipeline.base import PacedStage

if TYPE_CHECKING:
    from entrant_sync.adapters.base import OrderService
    from entrant_sync.pipeline.rate_limiter import TokenBucket
    from entrant_sync.telemetry import TelemetryContextProtocol

logger = logging.getLogger(__name__)


def normalize_variant_map(variant_map: Mapping[str, object]) -> dict[str, str]:
    """Return a selector -> variant id map with stripped string keys and values."""
    return {str(k).strip(): str(v).strip() for k, v in variant_map.items()}


class OrderCreator(PacedStage):
    """Creates a draft order for each `ReconciledRecord`."""

    stage = Stage.ORDER_CREATION

    def __init__(
        self,
        orders: OrderService,
        limiter: TokenBucket,
        variant_map: Mapping[str, object],
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
        self._variant_map = normalize_variant_map(variant_map)

    def resolve_variant(self, selector: str) -> str:
        """Map a selector to its remote variant id.

        Raises:
            MissingVariantMapping: If the selector is not mapped.
        """
        variant_id = self._variant_map.get(str(selector).strip())
        if not variant_id:
            raise MissingVariantMapping(selector)
        return variant_id

    async def handle(self, item: ReconciledRecord) -> Outcome[Transaction]:
        """Create the order for one record; failures come back as data."""
        try:
            variant_id = self.resolve_variant(item.variant_selector)
        except MissingVariantMapping as e:
            # No token is spent and nothing is sent for an unmapped selector.
            self._telemetry.count("orders.missing_variant")
            return Failure(
                source=item,
                stage=self.stage,
                reason=str(e),
                error=e,
                remote_id=item.remote_id,
            )

        try:
            transaction = await self._paced(
                self._orders.create_order(
                    item.remote_id, variant_id, item.shipping_payload
                ),
                "orders.create",
            )
        except LimiterError:
            raise
        except AcquireTimeoutError as e:
            return self._failure(item, e)
        except TimeoutError:
            return self._failure(
                item, OrderCreateError(f"Order creation timed out for {item.remote_id}")
            )
        except Exception as e:
            return self._failure(
                item,
                OrderCreateError(f"Order creation failed for {item.remote_id}: {e}"),
            )
        logger.debug("Created draft order %s for %s", transaction.id, item.identifier)
        return Success(transaction)

    async def create_orders(
        self, records: Sequence[ReconciledRecord]
    ) -> list[Transaction | Failure]:
        """Create orders for `records` in order, one outcome per record."""
        results: list[Transaction | Failure] = []
        for record in records:
            outcome = await self.handle(record)
            results.append(outcome.value if isinstance(outcome, Success) else outcome)
        return results

    def _failure(self, item: ReconciledRecord, error: Exception) -> Failure:
        logger.info("Order creation failed for %s: %s", item.identifier, error)
        return Failure(
            source=item,
            stage=self.stage,
            reason=str(error) or type(error).__name__,
            error=error,
            remote_id=item.remote_id,
        )
