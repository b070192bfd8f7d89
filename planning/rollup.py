"""
Rollup of container (parent) task dates from their children.
"""
import logging

from planning.calendar import count_business_days, normalize_working_days
from planning.models import DEFAULT_WORKING_DAYS, copy_task

logger = logging.getLogger(__name__)


def group_children(tasks):
    """
    Groups tasks by parent.

    Args:
        tasks: List of tasks

    Returns:
        Dict {parent id: [child ids in input order]}
    """
    children = {}
    known = {task.id for task in tasks}
    for task in tasks:
        if task.parent_id is not None and task.parent_id in known:
            children.setdefault(task.parent_id, []).append(task.id)
    return children


def _bottom_up(tasks):
    # Deepest level first; the sort is stable so siblings keep input order
    return sorted(tasks, key=lambda task: task.level, reverse=True)


def rollup_parent_dates(tasks, working_days=DEFAULT_WORKING_DAYS):
    """
    Sets every container task's start, end and duration to the envelope of
    its children.

    Tasks are processed bottom-up by WBS level so that a container sees the
    already rolled-up dates of its child containers. Leaf tasks are returned
    unchanged.

    Args:
        tasks: List of tasks
        working_days: Working-day set used to derive container durations

    Returns:
        New list of tasks in input order
    """
    working_days = normalize_working_days(working_days)
    children_by_parent = group_children(tasks)
    task_map = {task.id: copy_task(task) for task in tasks}

    for task in _bottom_up(tasks):
        child_ids = children_by_parent.get(task.id)
        if not child_ids:
            continue

        children = [task_map[child_id] for child_id in child_ids]
        start_date = min(child.start_date for child in children)
        end_date = max(child.end_date for child in children)

        parent = task_map[task.id]
        parent.start_date = start_date
        parent.end_date = end_date
        parent.duration = count_business_days(start_date, end_date, working_days)

    return [task_map[task.id] for task in tasks]


def rollup_parent_actual_dates(tasks, working_days=DEFAULT_WORKING_DAYS):
    """
    Rolls up the actual track of container tasks.

    Same as rollup_parent_dates but over actual_start_date, actual_end_date
    and actual_duration. Children without actual dates contribute their
    planned dates, so a container's actual span is always defined.

    Args:
        tasks: List of tasks
        working_days: Working-day set used to derive actual durations

    Returns:
        New list of tasks in input order
    """
    working_days = normalize_working_days(working_days)
    children_by_parent = group_children(tasks)
    task_map = {task.id: copy_task(task) for task in tasks}

    for task in _bottom_up(tasks):
        child_ids = children_by_parent.get(task.id)
        if not child_ids:
            continue

        children = [task_map[child_id] for child_id in child_ids]
        start_date = min(child.actual_start_date or child.start_date for child in children)
        end_date = max(child.actual_end_date or child.end_date for child in children)

        parent = task_map[task.id]
        parent.actual_start_date = start_date
        parent.actual_end_date = end_date
        parent.actual_duration = count_business_days(start_date, end_date, working_days)

    return [task_map[task.id] for task in tasks]
