"""
Errors and warnings raised by the scheduling engine.

Only cycle errors interrupt a computation. Everything else is reported as a
warning and the engine continues with a best-effort default.
"""


class SchedulingError(Exception):
    """Base class for scheduling failures."""


class CyclicDependencyError(SchedulingError):
    """
    The dependency set contains a cycle.

    Attributes:
        task_ids: Ids of the tasks involved in (or blocked by) the cycle
    """

    def __init__(self, message, task_ids=None):
        super().__init__(message)
        self.task_ids = list(task_ids or [])


class SelfDependencyError(CyclicDependencyError):
    """A task was made to depend on itself."""


class SchedulingWarning(UserWarning):
    """Base class for recoverable scheduling problems."""


class InvalidCalendarConfigWarning(SchedulingWarning):
    """The working-day set was empty or invalid and Mon-Fri was used instead."""


class DanglingDependencyWarning(SchedulingWarning):
    """A dependency references a task that is not in the task set."""


class IterationLimitWarning(SchedulingWarning):
    """Date propagation stopped at the pass limit without converging."""
