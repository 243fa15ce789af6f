"""Core data types that flow through the pipeline.

Records are immutable once read. Each pipeline stage turns one record into an
`Outcome`: either `Success` wrapping the next value, or a `Failure` carrying
the source record, the stage it failed in and a human-readable reason. Errors
are data here, not thrown faults, so one bad record never ends a batch.
"""

from __future__ import annotations

from collections.abc import Mapping
import dataclasses
from enum import Enum
from types import MappingProxyType
import typing

# --- Minimal guard helpers ---

T = typing.TypeVar("T")


def _freeze_mapping(m: Mapping[str, T] | None) -> Mapping[str, T]:
    """Return an immutable mapping view (empty when None)."""
    if isinstance(m, MappingProxyType):
        return m
    return MappingProxyType(dict(m or {}))


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


def normalize_identifier(value: str) -> str:
    """Canonical form used to compare identifiers (emails)."""
    return value.strip().casefold()


# --- Enumerations ---


class Stage(str, Enum):
    """Pipeline stage a record failed in."""

    RECONCILIATION = "reconciliation"
    ORDER_CREATION = "order-creation"
    INVOICE_SEND = "invoice-send"


class OutcomeKind(str, Enum):
    """Kind of outcome reported to progress observers."""

    SUCCESS = "success"
    FAILURE = "failure"


# --- Outcome types ---


@dataclasses.dataclass(frozen=True, slots=True)
class Success[TValue]:
    """A record that made it through a stage."""

    value: TValue


@dataclasses.dataclass(frozen=True, slots=True)
class Failure:
    """A record that did not make it through a stage.

    `source` is the record handed to the stage (an `InputRecord`,
    `ReconciledRecord` or `DraftOrderRef`). It is kept whole so the failure
    can be replayed later.
    """

    source: typing.Any
    stage: Stage
    reason: str
    error: Exception | None = None
    remote_id: str | None = None

    @property
    def identifier(self) -> str | None:
        """Identifier of the failed record, when it has one."""
        return getattr(self.source, "identifier", None)

    @property
    def error_type(self) -> str:
        """Class name of the underlying error, or an empty string."""
        return type(self.error).__name__ if self.error is not None else ""


type Outcome[TValue] = Success[TValue] | Failure


# --- Records ---


@dataclasses.dataclass(frozen=True, slots=True)
class InputRecord:
    """One ingested entrant row."""

    identifier: str
    first_name: str = ""
    last_name: str = ""
    address1: str = ""
    city: str = ""
    province: str = ""
    zip: str = ""
    style: str = ""
    variant_selector: str = ""
    country: str = "United States"
    country_code: str = "US"
    row_number: int | None = None

    def __post_init__(self) -> None:
        """Validate the identifier so the directory is never searched with junk."""
        _require(
            condition=isinstance(self.identifier, str),
            message="must be str",
            field_name="identifier",
            exc=TypeError,
        )
        _require(
            condition=self.identifier.strip() != "",
            message="cannot be empty",
            field_name="identifier",
        )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def identity_fields(self, tags: str = "") -> dict[str, str]:
        """Minimal payload for creating a directory entry.

        Shipping data never goes to the directory; it only rides on orders.
        """
        fields = {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.identifier.strip(),
        }
        if tags:
            fields["tags"] = tags
        return fields

    def shipping_payload(self) -> Mapping[str, str]:
        """Shipping address in the shape the order service expects."""
        return _freeze_mapping(
            {
                "first_name": self.first_name,
                "last_name": self.last_name,
                "name": self.display_name,
                "address1": self.address1,
                "city": self.city,
                "province": self.province,
                "zip": self.zip,
                "country": self.country,
                "country_code": self.country_code,
            }
        )


@dataclasses.dataclass(frozen=True, slots=True)
class DirectoryEntry:
    """Identity of a remote customer as returned by the directory."""

    remote_id: str
    identifier: str

    def __post_init__(self) -> None:
        _require(
            condition=str(self.remote_id).strip() != "",
            message="cannot be empty",
            field_name="remote_id",
        )
        object.__setattr__(self, "remote_id", str(self.remote_id))


@dataclasses.dataclass(frozen=True, slots=True)
class Found:
    """Directory lookup hit."""

    entry: DirectoryEntry


@dataclasses.dataclass(frozen=True, slots=True)
class NotFound:
    """Directory lookup miss."""


type Lookup = Found | NotFound


@dataclasses.dataclass(frozen=True, slots=True)
class ReconciledRecord:
    """An input record bound to a stable remote customer id."""

    remote_id: str
    identifier: str
    shipping_payload: Mapping[str, str]
    variant_selector: str
    source: InputRecord | None = None

    def __post_init__(self) -> None:
        _require(
            condition=str(self.remote_id).strip() != "",
            message="cannot be empty",
            field_name="remote_id",
        )
        object.__setattr__(self, "remote_id", str(self.remote_id))
        object.__setattr__(
            self, "shipping_payload", _freeze_mapping(self.shipping_payload)
        )

    @classmethod
    def from_entry(cls, entry: DirectoryEntry, record: InputRecord) -> ReconciledRecord:
        """Combine a directory identity with the record's non-identity fields."""
        return cls(
            remote_id=entry.remote_id,
            identifier=record.identifier,
            shipping_payload=record.shipping_payload(),
            variant_selector=record.variant_selector,
            source=record,
        )

    @property
    def display_name(self) -> str:
        return self.source.display_name if self.source is not None else ""


@dataclasses.dataclass(frozen=True, slots=True)
class Transaction:
    """A draft order created for a reconciled record."""

    id: str
    display_name: str
    recipient: str
    created_at: str
    status: str


@dataclasses.dataclass(frozen=True, slots=True)
class DraftOrderRef:
    """A previously created draft order, as read back for invoicing."""

    id: str
    name: str = ""
    email: str = ""
    created_at: str = ""
    status: str = ""

    def __post_init__(self) -> None:
        _require(
            condition=str(self.id).strip() != "",
            message="cannot be empty",
            field_name="id",
        )

    @property
    def identifier(self) -> str:
        return self.email


@dataclasses.dataclass(frozen=True, slots=True)
class InvoiceReceipt:
    """Confirmation that an invoice was sent for a draft order."""

    draft_order_id: str
    draft_order_name: str
    to: str
    subject: str = ""
    custom_message: str = ""


# --- Run-level results ---


@dataclasses.dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Emitted once per completed record."""

    completed: int
    total: int
    outcome: OutcomeKind
    stage_name: str


@dataclasses.dataclass(frozen=True, slots=True)
class BatchResult[TValue]:
    """Successes and failures of one run, each in input order.

    A complete run accounts for every input exactly once. An aborted run may
    account for fewer.
    """

    successes: tuple[TValue, ...]
    failures: tuple[Failure, ...]
    total: int
    aborted: bool = False

    def __post_init__(self) -> None:
        processed = len(self.successes) + len(self.failures)
        _require(
            condition=processed <= self.total
            if self.aborted
            else processed == self.total,
            message=f"{processed} outcomes recorded for {self.total} records",
            field_name="batch result",
        )

    @property
    def processed(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures and not self.aborted
