"""Sweep, then send invoices from the written draft order file."""

import pytest

from entrant_sync.adapters.memory import InMemoryShop
from entrant_sync.core.types import DraftOrderRef, Stage
from entrant_sync.executor import SyncExecutor
from entrant_sync.ingest import read_draft_orders
from entrant_sync.sinks import CsvResultSink
from tests.helpers import ScriptedGate, make_record


@pytest.mark.integration
@pytest.mark.asyncio
async def test_invoices_for_swept_orders(config, tmp_path):
    shop = InMemoryShop()
    executor = SyncExecutor(config, shop, shop, sink=CsvResultSink(tmp_path, stamp="T"))
    await executor.sweep([make_record("a@example.com"), make_record("b@example.com")])
    refs = read_draft_orders(tmp_path / "draft-orders-T.csv")

    result = await executor.send_invoices(refs, label="SKU1")

    assert result.ok
    assert [r.to for r in result.successes] == ["a@example.com", "b@example.com"]
    assert [r.draft_order_name for r in result.successes] == ["#D1", "#D2"]
    assert {message for _, message in shop.invoice_calls} == {"Complete your purchase"}
    assert (tmp_path / "invoices-sent-SKU1-T.csv").exists()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_failed_invoice_is_recorded_and_batch_continues(config, tmp_path):
    # Ids are handed out from 1000, so the first order is "1000"
    shop = InMemoryShop(
        customers=[("1", "a@example.com"), ("2", "b@example.com")],
        fail_invoices=["1000"],
    )
    first = await shop.create_order("1", "v-9", {})
    second = await shop.create_order("2", "v-9", {})
    executor = SyncExecutor(config, shop, shop, sink=CsvResultSink(tmp_path, stamp="T"))
    refs = [
        DraftOrderRef(first.id, first.display_name, first.recipient),
        DraftOrderRef(second.id, second.display_name, second.recipient),
    ]

    result = await executor.send_invoices(refs, "custom")

    (failure,) = result.failures
    assert failure.stage is Stage.INVOICE_SEND
    assert failure.remote_id == first.id
    assert [r.draft_order_id for r in result.successes] == [second.id]
    assert shop.invoice_calls == [(first.id, "custom"), (second.id, "custom")]
    assert (tmp_path / "invoices-failed-T.csv").exists()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_dry_run_sends_nothing(config):
    shop = InMemoryShop()
    gate = ScriptedGate()
    executor = SyncExecutor(config, shop, shop, gate=gate)
    refs = [DraftOrderRef("1000", "#D1", "a@example.com")]

    result = await executor.send_invoices(refs, dry_run=True)

    assert result.total == 0
    assert shop.invoice_calls == []
    assert gate.questions == []
