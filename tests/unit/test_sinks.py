import csv

import pytest

from entrant_sync.core.types import (
    BatchResult,
    DraftOrderRef,
    Failure,
    InvoiceReceipt,
    ReconciledRecord,
    Stage,
    Transaction,
)
from entrant_sync.exceptions import DirectoryCreateError, MissingVariantMapping
from entrant_sync.ingest import read_draft_orders
from entrant_sync.sinks import CsvResultSink
from tests.helpers import make_record


def _rows(path):
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


@pytest.mark.unit
def test_reconciliation_files(tmp_path):
    good = make_record("good@example.com", size="8")
    bad = make_record("bad@example.com", first_name="Bad", last_name="Actor")
    result = BatchResult(
        successes=(
            ReconciledRecord(
                remote_id="11",
                identifier=good.identifier,
                shipping_payload=good.shipping_payload(),
                variant_selector="8",
                source=good,
            ),
        ),
        failures=(
            Failure(
                source=bad,
                stage=Stage.RECONCILIATION,
                reason="email is invalid",
                error=DirectoryCreateError("email is invalid"),
            ),
        ),
        total=2,
    )
    sink = CsvResultSink(tmp_path / "out", stamp="STAMP")

    written = sink.persist_reconciliation(result)

    assert [p.name for p in written] == ["customers-STAMP.csv", "entries-failed-STAMP.csv"]
    assert _rows(written[0]) == [
        ["Customer ID", "Email", "Size"],
        ["11", "good@example.com", "8"],
    ]
    assert _rows(written[1])[1] == [
        "bad@example.com",
        "Bad",
        "Actor",
        "9",
        "reconciliation",
        "DirectoryCreateError",
        "email is invalid",
    ]


@pytest.mark.unit
def test_empty_buckets_write_nothing(tmp_path):
    sink = CsvResultSink(tmp_path / "out", stamp="S")

    assert sink.persist_orders(BatchResult((), (), 0)) == []
    assert not (tmp_path / "out").exists()


@pytest.mark.unit
def test_draft_order_file_reads_back_for_invoicing(tmp_path):
    record = make_record("a@example.com", size="9")
    reconciled = ReconciledRecord(
        remote_id="5",
        identifier=record.identifier,
        shipping_payload=record.shipping_payload(),
        variant_selector="13",
        source=record,
    )
    result = BatchResult(
        successes=(Transaction("1001", "#D1", "a@example.com", "2024-01-01", "open"),),
        failures=(
            Failure(
                source=reconciled,
                stage=Stage.ORDER_CREATION,
                reason="No variant mapped for selector '13'",
                error=MissingVariantMapping("13"),
                remote_id="5",
            ),
        ),
        total=2,
    )
    sink = CsvResultSink(tmp_path, stamp="S")

    orders_file, failed_file = sink.persist_orders(result, "size9")

    assert orders_file.name == "draft-orders-size9-S.csv"
    assert failed_file.name == "draft-orders-failed-size9-S.csv"
    (ref,) = read_draft_orders(orders_file)
    assert ref == DraftOrderRef("1001", "#D1", "a@example.com", "2024-01-01", "open")
    assert _rows(failed_file)[1][:4] == [
        "5",
        "a@example.com",
        "13",
        "MissingVariantMapping",
    ]


@pytest.mark.unit
def test_invoice_files_carry_label(tmp_path):
    ref = DraftOrderRef("2002", "#D2", "b@example.com")
    result = BatchResult(
        successes=(InvoiceReceipt("1001", "#D1", "a@example.com"),),
        failures=(Failure(source=ref, stage=Stage.INVOICE_SEND, reason="404"),),
        total=2,
    )
    sink = CsvResultSink(tmp_path, stamp="S")

    sent, failed = sink.persist_invoices(result, "SKU1")

    assert sent.name == "invoices-sent-SKU1-S.csv"
    assert _rows(sent)[1] == ["1001", "#D1", "a@example.com"]
    assert failed.name == "invoices-failed-SKU1-S.csv"
    assert _rows(failed)[1] == ["2002", "#D2", "b@example.com", "", "404"]
