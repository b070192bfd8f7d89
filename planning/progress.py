"""
Task progress and planned-vs-actual project statistics.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from planning.calendar import count_business_days
from planning.models import DEFAULT_WORKING_DAYS, copy_task
from planning.rollup import group_children

STATUS_AHEAD = 'ahead'
STATUS_ON_TRACK = 'on-track'
STATUS_BEHIND = 'behind'
STATUS_NO_DATA = 'no-data'


@dataclass
class ProjectStatistics:
    planned_duration: int = 0
    actual_duration: int = 0
    difference: int = 0
    status: str = STATUS_NO_DATA
    planned_start_date: Optional[date] = None
    planned_end_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None


def _percent(value):
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def calculate_task_progress(task, tasks):
    """
    Progress of a task in percent.

    A leaf task is done (100) once actual_duration is recorded and not
    started (0) otherwise. A container weights its children's progress by
    their planned duration.

    Args:
        task: Task to evaluate
        tasks: All tasks of the project

    Returns:
        Integer 0-100
    """
    children_by_parent = group_children(tasks)
    tasks_by_id = {item.id: item for item in tasks}

    def completed_fraction(current, visiting):
        child_ids = children_by_parent.get(current.id)
        if not child_ids:
            return 1.0 if current.actual_duration is not None else 0.0

        total_days = sum(tasks_by_id[child_id].duration for child_id in child_ids)
        if total_days == 0:
            return 0.0

        done_days = 0.0
        for child_id in child_ids:
            if child_id in visiting:
                continue
            child = tasks_by_id[child_id]
            done_days += child.duration * completed_fraction(child, visiting | {child_id})
        return done_days / total_days

    return _percent(completed_fraction(task, {task.id}) * 100)


def calculate_all_task_progress(tasks):
    """Copies of the tasks with percent_complete filled in."""
    return [copy_task(task, percent_complete=calculate_task_progress(task, tasks)) for task in tasks]


def calculate_project_statistics(tasks, working_days=DEFAULT_WORKING_DAYS):
    """
    Compares the planned and the actual span of the project.

    Only root tasks are considered. The project is 'ahead' when the actual
    duration is more than one working day shorter than planned, 'behind'
    when it is more than one day longer and 'on-track' otherwise.

    Args:
        tasks: All tasks of the project
        working_days: Working-day set

    Returns:
        ProjectStatistics
    """
    root_tasks = [task for task in tasks if task.parent_id is None]
    if not root_tasks:
        return ProjectStatistics()

    planned_start = min(task.start_date for task in root_tasks)
    planned_end = max(task.end_date for task in root_tasks)
    planned_duration = count_business_days(planned_start, planned_end, working_days)

    tracked = [task for task in root_tasks if task.actual_start_date and task.actual_end_date]
    if not tracked:
        return ProjectStatistics(
            planned_duration=planned_duration,
            planned_start_date=planned_start,
            planned_end_date=planned_end,
        )

    actual_start = min(task.actual_start_date for task in tracked)
    actual_end = max(task.actual_end_date for task in tracked)
    actual_duration = count_business_days(actual_start, actual_end, working_days)
    difference = actual_duration - planned_duration

    if difference < -1:
        status = STATUS_AHEAD
    elif difference > 1:
        status = STATUS_BEHIND
    else:
        status = STATUS_ON_TRACK

    return ProjectStatistics(
        planned_duration=planned_duration,
        actual_duration=actual_duration,
        difference=difference,
        status=status,
        planned_start_date=planned_start,
        planned_end_date=planned_end,
        actual_start_date=actual_start,
        actual_end_date=actual_end,
    )
