"""
Work breakdown structure: dotted WBS codes and task tree helpers.
"""
import logging

from planning.calendar import calculate_task_end_date, count_business_days
from planning.models import DEFAULT_WORKING_DAYS, copy_task
from planning.rollup import group_children

logger = logging.getLogger(__name__)


def generate_wbs_code(parent_code, sibling_count):
    """
    Generates the WBS code of a new task.

    Args:
        parent_code: Parent WBS code, None for a root task
        sibling_count: Number of existing tasks under the same parent

    Returns:
        Code such as '3' or '1.2.4'
    """
    if not parent_code:
        return f"{sibling_count + 1}"
    return f"{parent_code}.{sibling_count + 1}"


def get_parent_wbs_code(wbs_code):
    """Parent code of '1.2.3' is '1.2'; root codes have no parent (None)."""
    parts = wbs_code.split('.')
    if len(parts) == 1:
        return None
    return '.'.join(parts[:-1])


def get_wbs_level(wbs_code):
    """Level of a WBS code, 0 for root tasks."""
    return len(wbs_code.split('.')) - 1


def wbs_sort_key(wbs_code):
    """Sort key comparing code segments numerically ('1.2' before '1.10')."""
    return tuple(int(part) if part.isdigit() else part for part in wbs_code.split('.'))


def is_descendant_of(wbs_code, ancestor_code):
    return wbs_code.startswith(ancestor_code + '.')


def get_children_codes(all_codes, parent_code):
    """Direct children of `parent_code` (None for root codes)."""
    return [code for code in all_codes if get_parent_wbs_code(code) == parent_code]


def get_container_ids(tasks):
    """Ids of tasks that have at least one child."""
    return set(group_children(tasks))


def is_leaf(task, tasks):
    return task.id not in get_container_ids(tasks)


def get_leaf_tasks(tasks):
    containers = get_container_ids(tasks)
    return [task for task in tasks if task.id not in containers]


def get_parent_tasks(tasks):
    containers = get_container_ids(tasks)
    return [task for task in tasks if task.id in containers]


def get_descendants(task_id, tasks):
    """
    All tasks below `task_id`, depth first.

    Args:
        task_id: Id of the subtree root
        tasks: List of tasks

    Returns:
        List of descendant tasks
    """
    children_by_parent = group_children(tasks)
    tasks_by_id = {task.id: task for task in tasks}
    descendants = []
    stack = list(reversed(children_by_parent.get(task_id, [])))
    seen = {task_id}
    while stack:
        child_id = stack.pop()
        if child_id in seen:
            continue
        seen.add(child_id)
        descendants.append(tasks_by_id[child_id])
        stack.extend(reversed(children_by_parent.get(child_id, [])))
    return descendants


def demote_to_leaf(task, working_days=DEFAULT_WORKING_DAYS):
    """
    Turns a former container into a leaf task.

    The task keeps its last rolled-up span. Its duration becomes the number
    of working days in that span and from now on belongs to the user; the
    end date is re-derived from it.

    Args:
        task: Task whose last child was removed
        working_days: Working-day set

    Returns:
        New task
    """
    duration = max(count_business_days(task.start_date, task.end_date, working_days), 1)
    end_date = calculate_task_end_date(task.start_date, duration, working_days)
    logger.info(f"Task {task.id} has no children left, duration set to {duration} days")
    return copy_task(task, duration=duration, end_date=end_date)


def assign_levels(tasks):
    """
    Recomputes level from the parent chain.

    Args:
        tasks: List of tasks

    Returns:
        New list of tasks in input order
    """
    parents = {task.id: task.parent_id for task in tasks}
    levels = {}

    def level_of(task_id):
        depth = 0
        current = parents.get(task_id)
        seen = {task_id}
        while current is not None and current in parents and current not in seen:
            seen.add(current)
            depth += 1
            current = parents[current]
        return depth

    for task in tasks:
        levels[task.id] = level_of(task.id)

    return [copy_task(task, level=levels[task.id]) for task in tasks]
