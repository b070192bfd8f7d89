"""
Recalculation of a whole project snapshot after an edit.

Callers are expected to coalesce rapid edits before calling; every call
recomputes from scratch and is idempotent.
"""
from dataclasses import dataclass, field
import logging
from typing import List

from config import MAX_PROPAGATION_PASSES
from planning.holidays import get_combined_holidays
from planning.models import Task
from planning.propagation import calculate_actual_dates, propagate
from planning.resources import recalculate_weekly_allocation

logger = logging.getLogger(__name__)


@dataclass
class ScheduleUpdate:
    """New project state plus the ids whose stored values must be updated."""
    tasks: List[Task] = field(default_factory=list)
    changed_task_ids: List[object] = field(default_factory=list)
    changed_actual_ids: List[object] = field(default_factory=list)
    passes: int = 0
    converged: bool = True


def recalculate_schedule(tasks, dependencies, config, max_passes=MAX_PROPAGATION_PASSES):
    """
    Recalculates planned and actual dates of a project.

    Args:
        tasks: List of tasks
        dependencies: List of dependencies
        config: ProjectConfig
        max_passes: Pass limit of the planned propagation

    Returns:
        ScheduleUpdate

    Raises:
        CyclicDependencyError: if the dependencies contain a cycle; nothing
            is returned in that case
    """
    if not tasks:
        return ScheduleUpdate()

    working_days = config.working_days
    planned = propagate(tasks, dependencies, working_days, max_passes)
    with_actual = calculate_actual_dates(planned.tasks, dependencies, working_days, max_passes)

    before = {task.id: task for task in tasks}
    changed_actual = [
        task.id for task in with_actual
        if (task.actual_start_date, task.actual_end_date, task.actual_duration) !=
           (before[task.id].actual_start_date, before[task.id].actual_end_date, before[task.id].actual_duration)
    ]

    if planned.changed_ids or changed_actual:
        logger.info(f"Schedule recalculated: {len(planned.changed_ids)} planned, "
                    f"{len(changed_actual)} actual date changes")
    else:
        logger.info("Schedule recalculated: no date changes")

    return ScheduleUpdate(
        tasks=with_actual,
        changed_task_ids=planned.changed_ids,
        changed_actual_ids=changed_actual,
        passes=planned.passes,
        converged=planned.converged,
    )


def recalculate_assignments(assignments, tasks, resources, config, global_holidays=()):
    """
    Redistributes assignment hours over the current task dates.

    Manually distributed assignments are kept.

    Args:
        assignments: List of ResourceAssignment
        tasks: Current tasks
        resources: Resources of the project
        config: ProjectConfig
        global_holidays: Holidays shared by all projects

    Returns:
        New list of assignments
    """
    tasks_by_id = {task.id: task for task in tasks}
    resources_by_id = {resource.id: resource for resource in resources}
    holidays = get_combined_holidays(global_holidays, config)

    result = []
    for assignment in assignments:
        task = tasks_by_id.get(assignment.task_id)
        if task is None:
            logger.warning(f"Assignment {assignment.id} refers to missing task {assignment.task_id}")
            result.append(assignment)
            continue
        result.append(recalculate_weekly_allocation(
            assignment, task.start_date, task.end_date, config.working_days,
            resources_by_id.get(assignment.resource_id), holidays,
        ))
    return result
