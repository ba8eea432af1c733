"""Compensating rollback for multi-row ledger writes.

PostgREST commits each request on its own, so a ledger mutation that touches
several rows records an undo step after every successful write. If a later
step fails the undo steps run newest first and the original error is
re-raised.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class CompensationLog:
    """Undo steps registered by a single ledger operation."""

    operation: str
    _steps: list[tuple[str, Callable[[], None]]] = field(default_factory=list)

    def push(self, label: str, undo: Callable[[], None]) -> None:
        """Register an undo step for a write that has just succeeded."""
        self._steps.append((label, undo))

    @property
    def has_steps(self) -> bool:
        return bool(self._steps)

    def rollback(self) -> list[str]:
        """Run undo steps newest first and return the labels that failed."""
        failed: list[str] = []
        while self._steps:
            label, undo = self._steps.pop()
            try:
                undo()
            except Exception:
                logger.exception(
                    "Compensation step failed",
                    extra={"operation": self.operation, "step": label},
                )
                failed.append(label)
        return failed


@contextmanager
def compensating(operation: str) -> Iterator[CompensationLog]:
    """Run a block of writes, undoing completed ones if the block raises."""
    log = CompensationLog(operation)
    try:
        yield log
    except BaseException:
        if log.has_steps:
            logger.warning(
                "Rolling back partial ledger write", extra={"operation": operation}
            )
            log.rollback()
        raise
