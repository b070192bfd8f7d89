"""
Distribution of assignment hours over calendar weeks and resource capacity.
"""
from dataclasses import dataclass, replace
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
import logging
from typing import Optional

from planning.calendar import iter_weeks, normalize_working_days, to_date, week_key, week_start
from planning.holidays import is_resource_available, resource_working_days
from planning.models import DEFAULT_WORKING_DAYS, WeeklyAllocation

logger = logging.getLogger(__name__)

HUNDREDTH = Decimal('0.01')

LOAD_UNASSIGNED = 'unassigned'
LOAD_LOW = 'low'
LOAD_MEDIUM = 'medium'
LOAD_HIGH = 'high'
LOAD_OVER = 'over'


@dataclass
class WeekLoad:
    """Planned load of one resource in one week."""
    week_key: str
    week_start: object
    capacity_hours: float
    available_hours: float
    allocated_hours: float
    utilization_percent: Optional[int]
    load: str


def round_hours(value):
    """Rounds hours to 2 decimals, halves away from zero."""
    return float(Decimal(str(value)).quantize(HUNDREDTH, rounding=ROUND_HALF_UP))


def count_available_days(resource, start, end, working_days, holidays=()):
    """
    Counts the days in [start, end] on which the resource can work.

    Args:
        resource: Resource or None
        start: First day
        end: Last day
        working_days: Project working-day set
        holidays: Holidays of the project

    Returns:
        Number of available days
    """
    count = 0
    current = to_date(start)
    end = to_date(end)
    while current <= end:
        if is_resource_available(resource, current, working_days, holidays):
            count += 1
        current += timedelta(days=1)
    return count


def _overlap(week, start, end):
    week_end = week + timedelta(days=6)
    return max(week, start), min(week_end, end)


def calculate_weekly_allocation(task_start, task_end, total_planned_hours,
                                working_days=DEFAULT_WORKING_DAYS, resource=None, holidays=()):
    """
    Distributes the hours of an assignment across the weeks of the task.

    Each Monday-anchored week overlapping the task gets hours in proportion
    to the days the resource can actually work in that part of the task.
    Values are rounded to 2 decimals and the rounding remainder goes to the
    last week, so the weeks add up to the total.

    Args:
        task_start: First day of the task
        task_end: Last day of the task
        total_planned_hours: Hours to distribute
        working_days: Project working-day set
        resource: Assigned resource (vacations, tags, own working days)
        holidays: Holidays of the project

    Returns:
        List of WeeklyAllocation, one per week
    """
    task_start = to_date(task_start)
    task_end = to_date(task_end)
    working_days = normalize_working_days(working_days)

    weeks = []
    for week in iter_weeks(task_start, task_end):
        overlap_start, overlap_end = _overlap(week, task_start, task_end)
        days = count_available_days(resource, overlap_start, overlap_end, working_days, holidays)
        weeks.append((week, days))

    total_days = sum(days for _, days in weeks)
    if total_days == 0:
        if weeks:
            logger.warning(f"No available days between {task_start} and {task_end}, "
                           f"{total_planned_hours} hours not distributed")
        return [WeeklyAllocation(week_start=week, working_days_in_week=0, planned_hours=0.0)
                for week, _ in weeks]

    allocations = [
        WeeklyAllocation(
            week_start=week,
            working_days_in_week=days,
            planned_hours=round_hours(total_planned_hours * days / total_days),
        )
        for week, days in weeks
    ]

    allocated = sum(Decimal(str(allocation.planned_hours)) for allocation in allocations)
    remainder = Decimal(str(total_planned_hours)) - allocated
    if remainder.quantize(HUNDREDTH, rounding=ROUND_HALF_UP) != 0:
        last = allocations[-1]
        last.planned_hours = round_hours(Decimal(str(last.planned_hours)) + remainder)

    return allocations


def recalculate_weekly_allocation(assignment, new_task_start, new_task_end,
                                  working_days=DEFAULT_WORKING_DAYS, resource=None, holidays=()):
    """
    Recalculates an assignment's distribution after the task dates changed.

    Manually edited distributions are kept as they are.

    Args:
        assignment: ResourceAssignment
        new_task_start: New first day of the task
        new_task_end: New last day of the task
        working_days: Project working-day set
        resource: Assigned resource
        holidays: Holidays of the project

    Returns:
        New ResourceAssignment
    """
    if assignment.is_manual_distribution:
        return replace(assignment, weekly_distribution=list(assignment.weekly_distribution))

    distribution = calculate_weekly_allocation(
        new_task_start, new_task_end, assignment.planned_hours, working_days, resource, holidays)
    return replace(assignment, weekly_distribution=distribution)


def calculate_resource_capacity(resource, range_start, range_end,
                                working_days=DEFAULT_WORKING_DAYS, holidays=()):
    """
    Hours a resource can work in a date range.

    Daily hours are max_hours_per_week spread over the resource's working
    days per week; only available days count.

    Args:
        resource: Resource
        range_start: First day
        range_end: Last day
        working_days: Project working-day set
        holidays: Holidays of the project

    Returns:
        Available hours rounded to 2 decimals
    """
    days_per_week = len(resource_working_days(resource, working_days))
    hours_per_day = resource.max_hours_per_week / days_per_week
    days = count_available_days(resource, range_start, range_end, working_days, holidays)
    return round_hours(hours_per_day * days)


def classify_load(utilization_percent):
    if utilization_percent is None:
        return LOAD_OVER
    if utilization_percent == 0:
        return LOAD_UNASSIGNED
    if utilization_percent <= 50:
        return LOAD_LOW
    if utilization_percent <= 75:
        return LOAD_MEDIUM
    if utilization_percent <= 100:
        return LOAD_HIGH
    return LOAD_OVER


def calculate_resource_utilization(resources, assignments, start_date, week_count=12,
                                   working_days=DEFAULT_WORKING_DAYS, holidays=()):
    """
    Weekly load of every resource.

    Args:
        resources: List of resources
        assignments: List of ResourceAssignment with weekly distributions
        start_date: Any day of the first week to report
        week_count: Number of weeks to report
        working_days: Project working-day set
        holidays: Holidays of the project

    Returns:
        Dict {resource id: [WeekLoad, ...]} with one entry per week
    """
    first_week = week_start(start_date)
    weeks = [first_week + timedelta(weeks=i) for i in range(week_count)]

    allocated = {}
    for assignment in assignments:
        for allocation in assignment.weekly_distribution:
            key = (assignment.resource_id, week_key(allocation.week_start))
            allocated[key] = allocated.get(key, 0) + allocation.planned_hours

    result = {}
    for resource in resources:
        loads = []
        for week in weeks:
            key = week_key(week)
            hours = round_hours(allocated.get((resource.id, key), 0))
            capacity = resource.max_hours_per_week
            if capacity > 0:
                percent = int(Decimal(str(hours * 100 / capacity)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
            else:
                percent = 0 if hours == 0 else None
            loads.append(WeekLoad(
                week_key=key,
                week_start=week,
                capacity_hours=capacity,
                available_hours=calculate_resource_capacity(
                    resource, week, week + timedelta(days=6), working_days, holidays),
                allocated_hours=hours,
                utilization_percent=percent,
                load=classify_load(percent),
            ))
        result[resource.id] = loads

    return result
