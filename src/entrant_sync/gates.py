"""Confirmation gates asked before each irreversible phase."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_YES = frozenset({"y", "yes"})


@runtime_checkable
class ConfirmationGate(Protocol):
    """Returns True to proceed, False to abort the run."""

    def confirm(self, message: str) -> bool: ...


class ConsoleGate:
    """Asks on the terminal. Anything but an explicit yes declines.

    `confirm` blocks on `input`; the executor and CLI call it through
    `asyncio.to_thread`.
    """

    def __init__(self, prompt_suffix: str = " [y/N] ") -> None:
        self._suffix = prompt_suffix

    def confirm(self, message: str) -> bool:
        try:
            answer = input(f"{message}{self._suffix}")
        except EOFError:
            logger.warning("No terminal input available; treating as declined")
            return False
        return answer.strip().lower() in _YES


class AutoApproveGate:
    """Approves every question (``--yes``), logging what was approved."""

    def confirm(self, message: str) -> bool:
        logger.info("Auto-approved: %s", message)
        return True
