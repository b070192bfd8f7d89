"""
Propagation of task dates through finish-to-start dependencies.

Leaf tasks are moved so that each one starts on the first working day after
its latest predecessor finishes (plus lag). Container tasks are never moved
directly; they follow their children through the rollup that runs after
every pass. Passes repeat until nothing changes or the pass limit is hit.
"""
from dataclasses import dataclass, field
from datetime import timedelta
import logging
import warnings
from typing import List

from config import MAX_PROPAGATION_PASSES
from planning.calendar import (
    add_business_days, calculate_task_end_date, is_working_day, next_working_day,
    normalize_working_days,
)
from planning.errors import IterationLimitWarning
from planning.graph import DependencyGraph
from planning.models import DEFAULT_WORKING_DAYS, Task, copy_task
from planning.rollup import group_children, rollup_parent_actual_dates, rollup_parent_dates

logger = logging.getLogger(__name__)


@dataclass
class PropagationResult:
    """Outcome of a propagation run."""
    tasks: List[Task] = field(default_factory=list)
    passes: int = 0
    converged: bool = True
    changed_ids: List[object] = field(default_factory=list)


def earliest_start_after(predecessor_end, lag, working_days):
    """
    First allowed start of a successor.

    The day after the predecessor ends, moved to a working day, then `lag`
    further working days.

    Args:
        predecessor_end: Last day of the predecessor
        lag: Extra working days after the predecessor
        working_days: Working-day set

    Returns:
        Start date of the successor
    """
    start = next_working_day(predecessor_end + timedelta(days=1), working_days)
    if lag and lag > 0:
        start = add_business_days(start, lag, working_days)
    return start


def _start_from_predecessors(task_id, graph, task_map, working_days, end_of):
    """
    Latest start required by any predecessor of the task.

    On equal predecessor end dates the larger lag gives the later start.
    """
    latest = None
    for pred_id in graph.predecessors[task_id]:
        candidate = earliest_start_after(end_of(task_map[pred_id]), graph.lag(pred_id, task_id), working_days)
        if latest is None or candidate > latest:
            latest = candidate
    return latest


def _planned_end(task):
    return task.end_date


def propagate(tasks, dependencies, working_days=DEFAULT_WORKING_DAYS, max_passes=MAX_PROPAGATION_PASSES):
    """
    Recalculates planned dates of all tasks from their dependencies.

    Args:
        tasks: List of tasks (not modified)
        dependencies: List of dependencies
        working_days: Working-day set
        max_passes: Upper bound on propagation + rollup passes

    Returns:
        PropagationResult with the new task list in input order

    Raises:
        CyclicDependencyError: if the dependencies contain a cycle
    """
    if not tasks:
        return PropagationResult()

    working_days = normalize_working_days(working_days)
    graph = DependencyGraph([task.id for task in tasks], dependencies)
    order = graph.topological_sort()

    container_ids = set(group_children(tasks))
    task_map = {task.id: copy_task(task) for task in tasks}

    passes = 0
    had_changes = True
    while had_changes and passes < max_passes:
        passes += 1
        had_changes = False

        for task_id in order:
            if task_id in container_ids:
                continue

            task = task_map[task_id]

            if not graph.predecessors[task_id]:
                # No predecessors: only dates off the calendar are touched
                if is_working_day(task.start_date, working_days):
                    continue
                new_start = next_working_day(task.start_date, working_days)
            else:
                new_start = _start_from_predecessors(task_id, graph, task_map, working_days, _planned_end)

            new_end = calculate_task_end_date(new_start, task.duration, working_days)

            if new_start != task.start_date or new_end != task.end_date:
                logger.debug(f"Task {task_id}: {task.start_date}..{task.end_date} -> {new_start}..{new_end}")
                task.start_date = new_start
                task.end_date = new_end
                had_changes = True

        # Containers follow their children before the next pass reads them
        for task in rollup_parent_dates(list(task_map.values()), working_days):
            if _dates_differ(task_map[task.id], task):
                had_changes = True
            task_map[task.id] = task

    converged = not had_changes
    if not converged:
        warnings.warn(
            f"Date propagation did not settle after {max_passes} passes, "
            f"returning the last computed dates",
            IterationLimitWarning,
            stacklevel=2,
        )

    changed = [task.id for task in tasks if _dates_differ(task, task_map[task.id])]
    logger.info(f"Date propagation: {len(tasks)} tasks, {passes} passes, {len(changed)} changed")

    return PropagationResult(
        tasks=[task_map[task.id] for task in tasks],
        passes=passes,
        converged=converged,
        changed_ids=changed,
    )


def _dates_differ(before, after):
    return (before.start_date, before.end_date, before.duration) != \
        (after.start_date, after.end_date, after.duration)


def recalculate_task_dates(tasks, dependencies, working_days=DEFAULT_WORKING_DAYS, max_passes=MAX_PROPAGATION_PASSES):
    """
    Recalculates planned task dates based on dependencies.

    Args:
        tasks: List of tasks
        dependencies: List of dependencies
        working_days: Working-day set
        max_passes: Upper bound on propagation + rollup passes

    Returns:
        New list of tasks in input order

    Raises:
        CyclicDependencyError: if the dependencies contain a cycle
    """
    return propagate(tasks, dependencies, working_days, max_passes).tasks


def _actual_end(task):
    return task.actual_end_date or task.end_date


def _actual_differ(before, after):
    return (before.actual_start_date, before.actual_end_date, before.actual_duration) != \
        (after.actual_start_date, after.actual_end_date, after.actual_duration)


def calculate_actual_dates(tasks, dependencies, working_days=DEFAULT_WORKING_DAYS,
                           max_passes=MAX_PROPAGATION_PASSES):
    """
    Calculates the actual track of every task.

    Leaf tasks without predecessors keep their actual start (or adopt the
    planned start). Successors start after the latest actual end of their
    predecessors (planned end when there is none) plus lag. The end comes
    from actual_duration when it is set, otherwise from the planned duration
    for tasks with predecessors and from the planned end for tasks without.
    Container tasks follow their children through the actual rollup after
    every pass, so their successors read the rolled-up end. Passes repeat
    until nothing changes.

    Args:
        tasks: List of tasks
        dependencies: List of dependencies
        working_days: Working-day set
        max_passes: Upper bound on passes

    Returns:
        New list of tasks in input order

    Raises:
        CyclicDependencyError: if the dependencies contain a cycle
    """
    if not tasks:
        return []

    working_days = normalize_working_days(working_days)
    graph = DependencyGraph([task.id for task in tasks], dependencies)
    order = graph.topological_sort()

    container_ids = set(group_children(tasks))
    task_map = {task.id: copy_task(task) for task in tasks}

    passes = 0
    had_changes = True
    while had_changes and passes < max_passes:
        passes += 1
        had_changes = False

        for task_id in order:
            if task_id in container_ids:
                continue

            task = task_map[task_id]
            before = copy_task(task)

            if not graph.predecessors[task_id]:
                if task.actual_start_date is None:
                    task.actual_start_date = task.start_date
                if task.actual_duration is not None:
                    task.actual_end_date = calculate_task_end_date(
                        task.actual_start_date, task.actual_duration, working_days)
                else:
                    task.actual_end_date = task.end_date
            else:
                start = _start_from_predecessors(task_id, graph, task_map, working_days, _actual_end)
                duration = task.actual_duration if task.actual_duration is not None else task.duration
                task.actual_start_date = start
                task.actual_end_date = calculate_task_end_date(start, duration, working_days)

            if _actual_differ(before, task):
                had_changes = True

        for task in rollup_parent_actual_dates(list(task_map.values()), working_days):
            if _actual_differ(task_map[task.id], task):
                had_changes = True
            task_map[task.id] = task

    if had_changes:
        warnings.warn(
            f"Actual dates did not settle after {max_passes} passes, "
            f"returning the last computed dates",
            IterationLimitWarning,
            stacklevel=2,
        )

    return [task_map[task.id] for task in tasks]
