import asyncio
from unittest.mock import AsyncMock

import pytest

from entrant_sync.adapters.memory import InMemoryShop
from entrant_sync.core.types import (
    Failure,
    ReconciledRecord,
    Stage,
    Success,
    Transaction,
)
from entrant_sync.exceptions import MissingVariantMapping, OrderCreateError
from entrant_sync.pipeline.order_creator import OrderCreator, normalize_variant_map
from entrant_sync.pipeline.rate_limiter import TokenBucket
from tests.helpers import make_record


def _reconciled(remote_id: str, size: str = "9") -> ReconciledRecord:
    record = make_record(f"{remote_id}@example.com", size=size)
    return ReconciledRecord(
        remote_id=remote_id,
        identifier=record.identifier,
        shipping_payload=record.shipping_payload(),
        variant_selector=size,
        source=record,
    )


@pytest.fixture
def bucket(fake_clock) -> TokenBucket:
    return TokenBucket(5, 5.0, clock=fake_clock, sleep=fake_clock.sleep)


@pytest.mark.unit
def test_variant_map_keys_and_values_are_stripped():
    assert normalize_variant_map({" 9 ": 123, "10": " v-10 "}) == {
        "9": "123",
        "10": "v-10",
    }


@pytest.mark.unit
@pytest.mark.asyncio
async def test_creates_order_with_mapped_variant_and_shipping(bucket):
    shop = InMemoryShop(customers=[("100", "100@example.com")])
    creator = OrderCreator(shop, bucket, {"9": "v-9"})

    outcome = await creator.handle(_reconciled("100"))

    assert isinstance(outcome, Success)
    assert isinstance(outcome.value, Transaction)
    assert outcome.value.recipient == "100@example.com"
    assert shop.order_calls == [("100", "v-9")]
    order = shop.orders[outcome.value.id]
    assert order["shipping"]["city"] == "Phoenix"
    assert order["shipping"]["country_code"] == "US"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_selector_whitespace_is_ignored(bucket):
    shop = InMemoryShop(customers=[("100", "100@example.com")])
    creator = OrderCreator(shop, bucket, {"9": "v-9"})

    outcome = await creator.handle(_reconciled("100", size=" 9 "))

    assert isinstance(outcome, Success)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_mapping_fails_without_call_or_token(bucket):
    orders = AsyncMock()
    creator = OrderCreator(orders, bucket, {"9": "v-9"})

    outcome = await creator.handle(_reconciled("100", size="13"))

    assert isinstance(outcome, Failure)
    assert outcome.stage is Stage.ORDER_CREATION
    assert isinstance(outcome.error, MissingVariantMapping)
    assert outcome.remote_id == "100"
    orders.create_order.assert_not_called()
    assert bucket.available == pytest.approx(5.0)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_remote_error_becomes_failure_with_remote_id(bucket):
    shop = InMemoryShop(customers=[("100", "100@example.com")], fail_orders=["100"])
    creator = OrderCreator(shop, bucket, {"9": "v-9"})

    outcome = await creator.handle(_reconciled("100"))

    assert isinstance(outcome, Failure)
    assert isinstance(outcome.error, OrderCreateError)
    assert outcome.remote_id == "100"
    assert outcome.identifier == "100@example.com"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_slow_order_times_out_as_failure(bucket):
    async def hang(*_args):
        await asyncio.sleep(10)

    orders = AsyncMock()
    orders.create_order.side_effect = hang
    creator = OrderCreator(orders, bucket, {"9": "v-9"}, call_timeout=0.01)

    outcome = await creator.handle(_reconciled("100"))

    assert isinstance(outcome, Failure)
    assert "timed out" in outcome.reason


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_orders_keeps_input_order(bucket):
    shop = InMemoryShop(customers=[("1", "1@example.com"), ("2", "2@example.com")])
    creator = OrderCreator(shop, bucket, {"9": "v-9"})

    results = await creator.create_orders(
        [_reconciled("1"), _reconciled("2", size="13"), _reconciled("2")]
    )

    assert [type(r) for r in results] == [Transaction, Failure, Transaction]
    assert results[0].recipient == "1@example.com"
    assert results[2].recipient == "2@example.com"
