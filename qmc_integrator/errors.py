"""Exception types raised by the integration engine."""

from __future__ import annotations


class QMCError(Exception):
    """Base class for all integration engine errors."""


class InvalidConfiguration(QMCError, ValueError):
    """A count, base or pool sizing is outside its allowed range."""


class WorkerFailure(QMCError, RuntimeError):
    """A submitted task raised instead of returning a result."""

    def __init__(self, task_index: int, cause: BaseException) -> None:
        super().__init__(f"Task {task_index} failed: {cause!r}")
        self.task_index = task_index
        self.cause = cause


class Overflow(QMCError, OverflowError):
    """A sample index does not fit the representable index range."""
