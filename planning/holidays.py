"""
Holidays and resource availability.
"""
from planning.calendar import is_working_day, normalize_working_days, to_date


def get_combined_holidays(global_holidays, project_config):
    """
    Combines global holidays with project-specific ones.

    Args:
        global_holidays: Holidays shared by all projects
        project_config: ProjectConfig with use_global_holidays,
            excluded_global_holiday_ids and project_holidays

    Returns:
        List of holidays that apply to the project
    """
    result = []

    if project_config.use_global_holidays:
        excluded = set(project_config.excluded_global_holiday_ids)
        result.extend(holiday for holiday in global_holidays if holiday.id not in excluded)

    result.extend(project_config.project_holidays or [])
    return result


def holiday_applies_to(holiday, tags):
    """
    A holiday without tags applies to everybody; a tagged holiday only to
    resources sharing at least one tag with it.
    """
    if not holiday.applies_to:
        return True
    return bool(set(holiday.applies_to) & set(tags or []))


def holiday_falls_on(holiday, day):
    """Recurring holidays match the same month and day every year."""
    holiday_date = to_date(holiday.date)
    day = to_date(day)
    if holiday.is_recurring:
        return (holiday_date.month, holiday_date.day) == (day.month, day.day)
    return holiday_date == day


def resource_working_days(resource, working_days):
    """The resource's own working days override the project calendar."""
    if resource is not None and resource.custom_working_days:
        return normalize_working_days(resource.custom_working_days)
    return normalize_working_days(working_days)


def is_on_vacation(resource, day):
    day = to_date(day)
    return any(vacation.contains(day) for vacation in resource.vacations)


def is_resource_available(resource, day, working_days, holidays=()):
    """
    Checks whether a resource can work on a given day.

    Args:
        resource: Resource or None (only the calendar and untagged holidays count)
        day: Date to check
        working_days: Project working-day set
        holidays: Holidays of the project

    Returns:
        True if the day is a working day for the resource, it is not on
        vacation and no applicable holiday falls on it
    """
    if not is_working_day(day, resource_working_days(resource, working_days)):
        return False

    tags = resource.tags if resource is not None else []
    if resource is not None and is_on_vacation(resource, day):
        return False

    return not any(
        holiday_falls_on(holiday, day) and holiday_applies_to(holiday, tags)
        for holiday in holidays
    )
