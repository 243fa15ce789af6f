"""CSV ingestion of raffle entries and previously created draft orders.

Headers are matched loosely (case, underscores and repeated spaces are
ignored) so exports from the entry platform can be used as downloaded.
Rows without an email never reach the pipeline; they are dropped with a
warning.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
import csv
import io
import logging
from pathlib import Path
import re

from entrant_sync.core.types import DraftOrderRef, InputRecord
from entrant_sync.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_ENTRY_COLUMNS = {
    "email": "identifier",
    "first name": "first_name",
    "last name": "last_name",
    "address": "address1",
    "city": "city",
    "state": "province",
    "zip": "zip",
    "style": "style",
    "size": "variant_selector",
}

_DRAFT_ORDER_COLUMNS = {
    "id": "id",
    "name": "name",
    "email": "email",
    "created at": "created_at",
    "status": "status",
}


def normalize_header(header: str) -> str:
    """``"FIRST_NAME"`` and ``" First  name "`` both become ``"first name"``."""
    return re.sub(r"\s+", " ", header.replace("_", " ")).strip().lower()


def _project(row: Mapping[str, str | None], columns: Mapping[str, str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for header, value in row.items():
        if header is None:  # surplus cells in a ragged row
            continue
        field = columns.get(normalize_header(header))
        if field is not None:
            out[field] = (value or "").strip()
    return out


def _read_rows(path: str | Path) -> Iterator[dict[str, str | None]]:
    """Decode the whole file first so a bad byte can be reported by line."""
    data = Path(path).read_bytes()
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        line = data.count(b"\n", 0, e.start) + 1
        raise ConfigurationError(
            f"Cannot read {path}: line {line} is not valid UTF-8 ({e.reason})"
        ) from e

    reader = csv.DictReader(io.StringIO(text, newline=""))
    try:
        yield from reader
    except csv.Error as e:
        raise ConfigurationError(f"Cannot read {path}: line {reader.line_num}: {e}") from e


def parse_entries(rows: Iterable[Mapping[str, str | None]]) -> list[InputRecord]:
    """Turn raw CSV rows into `InputRecord`s, dropping rows with no email.

    Row numbers count the header as line 1, matching what a spreadsheet shows.
    """
    records: list[InputRecord] = []
    dropped = 0
    for line_no, row in enumerate(rows, start=2):
        fields = _project(row, _ENTRY_COLUMNS)
        if not fields.get("identifier"):
            dropped += 1
            logger.warning("Skipping row %d: no email address", line_no)
            continue
        records.append(InputRecord(row_number=line_no, **fields))
    if dropped:
        logger.warning("Dropped %d row(s) without an email address", dropped)
    return records


def read_entries(path: str | Path) -> list[InputRecord]:
    """Read a raffle entry export.

    Raises:
        ConfigurationError: If the file is not UTF-8 or not parseable as CSV.
    """
    records = parse_entries(_read_rows(path))
    logger.info("Read %d entr%s from %s", len(records), "y" if len(records) == 1 else "ies", path)
    return records


def read_draft_orders(path: str | Path) -> list[DraftOrderRef]:
    """Read a draft order listing (as written by the order phase).

    Raises:
        ConfigurationError: If the file is not UTF-8 or not parseable as CSV.
    """
    refs: list[DraftOrderRef] = []
    for line_no, row in enumerate(_read_rows(path), start=2):
        fields = _project(row, _DRAFT_ORDER_COLUMNS)
        if not fields.get("id"):
            logger.warning("Skipping row %d: no draft order id", line_no)
            continue
        refs.append(DraftOrderRef(**fields))
    logger.info("Read %d draft order(s) from %s", len(refs), path)
    return refs
