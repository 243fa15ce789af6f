"""Reconciliation stage: map each entrant to a stable remote customer.

The lookup always happens before any creation, on every call, so running the
same record twice never creates two customers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from entrant_sync.core.types import (
    DirectoryEntry,
    Failure,
    Found,
    InputRecord,
    Lookup,
    NotFound,
    Outcome,
    ReconciledRecord,
    Stage,
    Success,
    normalize_identifier,
)
from entrant_sync.exceptions import (
    AcquireTimeoutError,
    DirectoryCreateError,
    DirectoryLookupError,
    EntrantSyncError,
    LimiterError,
)
from entrant_sync.pipeline.base import PacedStage

if TYPE_CHECKING:
    from entrant_sync.adapters.base import DirectoryClient
    from entrant_sync.pipeline.rate_limiter import TokenBucket
    from entrant_sync.telemetry import TelemetryContextProtocol

logger = logging.getLogger(__name__)


class Reconciler(PacedStage):
    """Finds or creates the remote customer for an `InputRecord`."""

    stage = Stage.RECONCILIATION

    def __init__(
        self,
        directory: DirectoryClient,
        limiter: TokenBucket,
        *,
        customer_tags: str = "",
        call_timeout: float | None = None,
        acquire_timeout: float | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        """Initialize the stage.

        Args:
            directory: Remote customer directory.
            limiter: The run's shared token bucket.
            customer_tags: Tags attached to newly created customers.
            call_timeout: Per remote call timeout in seconds.
            acquire_timeout: Per token acquisition timeout in seconds.
            telemetry: Optional telemetry context.
        """
        super().__init__(
            limiter,
            call_timeout=call_timeout,
            acquire_timeout=acquire_timeout,
            telemetry=telemetry,
        )
        self._directory = directory
        self._customer_tags = customer_tags

    async def handle(self, item: InputRecord) -> Outcome[ReconciledRecord]:
        """Reconcile one record; failures come back as data."""
        try:
            entry = await self._find_or_create(item)
        except LimiterError:
            raise
        except (EntrantSyncError, TimeoutError) as e:
            logger.info("Reconciliation failed for %s: %s", item.identifier, e)
            return Failure(source=item, stage=self.stage, reason=_reason(e), error=e)
        return Success(ReconciledRecord.from_entry(entry, item))

    async def reconcile(self, record: InputRecord) -> Outcome[ReconciledRecord]:
        """Alias of `handle` for direct, single-record use."""
        return await self.handle(record)

    async def lookup(self, identifier: str) -> Lookup:
        """Search the directory for exactly one entry matching `identifier`.

        Matching is case-insensitive and ignores surrounding whitespace. Near
        matches returned by the directory (``user+tag@domain``) are ignored.

        Raises:
            DirectoryLookupError: On transport failure or an ambiguous match.
        """
        try:
            candidates = await self._paced(
                self._directory.search(identifier), "directory.search"
            )
        except (LimiterError, AcquireTimeoutError):
            raise
        except TimeoutError as e:
            raise DirectoryLookupError(f"Search timed out for {identifier}") from e
        except Exception as e:
            raise DirectoryLookupError(f"Search failed for {identifier}: {e}") from e

        wanted = normalize_identifier(identifier)
        matches = [c for c in candidates if normalize_identifier(c.identifier) == wanted]
        if len(matches) > 1:
            ids = ", ".join(m.remote_id for m in matches)
            raise DirectoryLookupError(
                f"Ambiguous match for {identifier}: {len(matches)} entries ({ids})"
            )
        if matches:
            return Found(matches[0])
        return NotFound()

    async def _find_or_create(self, record: InputRecord) -> DirectoryEntry:
        match await self.lookup(record.identifier):
            case Found(entry=entry):
                logger.debug("Found %s as %s", record.identifier, entry.remote_id)
                self._telemetry.count("reconcile.found")
                return entry
            case NotFound():
                logger.debug("%s does not exist, creating", record.identifier)
                return await self._create(record)

    async def _create(self, record: InputRecord) -> DirectoryEntry:
        identity = record.identity_fields(self._customer_tags)
        try:
            entry = await self._paced(
                self._directory.create(identity), "directory.create"
            )
        except (LimiterError, AcquireTimeoutError):
            raise
        except TimeoutError as e:
            raise DirectoryCreateError(f"Create timed out for {record.identifier}") from e
        except Exception as e:
            raise DirectoryCreateError(
                f"Create failed for {record.identifier}: {e}"
            ) from e
        self._telemetry.count("reconcile.created")
        return entry


def _reason(error: BaseException) -> str:
    return str(error) or type(error).__name__
