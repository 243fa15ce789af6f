"""Progress observers for batch runs."""

from __future__ import annotations

import logging

from entrant_sync.core.types import OutcomeKind, ProgressEvent

logger = logging.getLogger(__name__)


class LoggingProgressObserver:
    """Logs a progress line every `every` records and on the last one.

    Failures are counted so the periodic line shows the running tally.
    """

    def __init__(self, every: int = 10, *, level: int = logging.INFO) -> None:
        if every < 1:
            raise ValueError("every must be >= 1")
        self._every = every
        self._level = level
        self.failures = 0

    def __call__(self, event: ProgressEvent) -> None:
        if event.completed == 1:  # new run
            self.failures = 0
        if event.outcome is OutcomeKind.FAILURE:
            self.failures += 1
        if event.completed % self._every == 0 or event.completed == event.total:
            logger.log(
                self._level,
                "%s: %d/%d processed (%d failed)",
                event.stage_name,
                event.completed,
                event.total,
                self.failures,
            )
