"""
Working-day calendar: business-day arithmetic shared by the scheduling engine.

Days of the week are numbered 0 (Sunday) to 6 (Saturday).
"""
from datetime import date, datetime, timedelta
import logging
import warnings

from planning.errors import InvalidCalendarConfigWarning
from planning.models import DEFAULT_WORKING_DAYS

logger = logging.getLogger(__name__)

# Longest run of non-working days tolerated while looking for a working day
MAX_SNAP_DAYS = 14


def to_date(value):
    """
    Truncates a datetime, date or ISO string to a calendar day.

    Args:
        value: datetime, date or ISO 8601 string

    Returns:
        datetime.date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip()).date()
    raise TypeError(f"Cannot convert {value!r} to a date")


def day_of_week(day):
    """Day of the week with Sunday as 0."""
    return (to_date(day).weekday() + 1) % 7


def normalize_working_days(working_days):
    """
    Validates a working-day set.

    Out-of-range entries are dropped. When nothing valid is left the
    Mon-Fri default is used and an InvalidCalendarConfigWarning is emitted.

    Args:
        working_days: Iterable of day numbers (0 - Sunday), numeric strings allowed

    Returns:
        frozenset of day numbers
    """
    if not working_days:
        warnings.warn(
            "Working days are empty, using the Mon-Fri default",
            InvalidCalendarConfigWarning,
            stacklevel=3,
        )
        return frozenset(DEFAULT_WORKING_DAYS)

    valid = set()
    for day in working_days:
        if isinstance(day, str) and day.strip().isdigit():
            day = int(day)
        if isinstance(day, int) and not isinstance(day, bool) and 0 <= day <= 6:
            valid.add(day)

    if not valid:
        warnings.warn(
            f"No valid working days in {list(working_days)!r}, using the Mon-Fri default",
            InvalidCalendarConfigWarning,
            stacklevel=3,
        )
        return frozenset(DEFAULT_WORKING_DAYS)

    return frozenset(valid)


def is_working_day(day, working_days):
    """Checks whether the day of the week of `day` is in the working-day set."""
    return day_of_week(day) in working_days


def next_working_day(day, working_days):
    """
    Moves a date forward to the nearest working day.

    Args:
        day: Start date
        working_days: Working-day set

    Returns:
        `day` itself when it is a working day, otherwise the next working day
    """
    working_days = normalize_working_days(working_days)
    current = to_date(day)
    steps = 0
    while not is_working_day(current, working_days) and steps < MAX_SNAP_DAYS:
        current += timedelta(days=1)
        steps += 1
    return current


def add_business_days(day, days, working_days=DEFAULT_WORKING_DAYS):
    """
    Advances a date by a number of working days.

    The start date itself is not counted, so adding 0 returns the same date
    and adding 1 returns the next working day.

    Args:
        day: Start date
        days: Number of working days to advance (negative values count as 0)
        working_days: Working-day set

    Returns:
        Date reached after `days` working days
    """
    working_days = normalize_working_days(working_days)
    current = to_date(day)
    remaining = max(int(days), 0)
    if remaining == 0:
        return current

    iterations = 0
    max_iterations = max(remaining * 3, 1000)
    while remaining > 0 and iterations < max_iterations:
        current += timedelta(days=1)
        iterations += 1
        if is_working_day(current, working_days):
            remaining -= 1

    if remaining > 0:
        logger.error(f"add_business_days stopped after {iterations} steps from {day}, "
                     f"{remaining} working days left")

    return current


def count_business_days(start, end, working_days=DEFAULT_WORKING_DAYS):
    """
    Counts working days in the inclusive range [start, end].

    Args:
        start: First day of the range
        end: Last day of the range
        working_days: Working-day set

    Returns:
        Number of working days, 0 if end is before start
    """
    working_days = normalize_working_days(working_days)
    start = to_date(start)
    end = to_date(end)
    if end < start:
        return 0

    total_days = (end - start).days + 1
    full_weeks, rest = divmod(total_days, 7)
    count = full_weeks * len(working_days)

    first_dow = day_of_week(start)
    for offset in range(rest):
        if (first_dow + offset) % 7 in working_days:
            count += 1

    return count


def calculate_task_end_date(start, duration, working_days=DEFAULT_WORKING_DAYS):
    """
    Calculates the inclusive end date of a task.

    Args:
        start: Task start date
        duration: Duration in working days (values below 1 count as 1)
        working_days: Working-day set

    Returns:
        Last working day of the task
    """
    return add_business_days(start, max(int(duration), 1) - 1, working_days)


def week_start(day):
    """Monday of the week containing `day`."""
    day = to_date(day)
    return day - timedelta(days=day.weekday())


def iter_weeks(start, end):
    """
    Yields the Monday of every week overlapping [start, end].

    Args:
        start: First day of the range
        end: Last day of the range
    """
    current = week_start(start)
    end = to_date(end)
    while current <= end:
        yield current
        current += timedelta(days=7)


def week_key(day):
    """ISO week key such as '2024-W03' for the week containing `day`."""
    year, week, _ = week_start(day).isocalendar()
    return f"{year}-W{week:02d}"
