from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, List, Optional


DEFAULT_WORKING_DAYS = [1, 2, 3, 4, 5]


@dataclass
class Task:
    """Task of the work breakdown structure."""
    id: Any
    name: str
    duration: int
    start_date: date
    end_date: date
    parent_id: Optional[Any] = None
    level: int = 0
    wbs_code: Optional[str] = None

    # Actual (tracked) schedule, None while there is no tracking data
    actual_duration: Optional[int] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None

    assigned_to: List[Any] = field(default_factory=list)
    percent_complete: Optional[int] = None


@dataclass
class TaskWithCPM(Task):
    """Task with the parameters of the network model (day offsets)."""
    early_start: float = 0
    early_finish: float = 0
    late_start: float = 0
    late_finish: float = 0
    total_float: float = 0
    is_critical: bool = False

    @classmethod
    def from_task(cls, task):
        values = {name: getattr(task, name) for name in Task.__dataclass_fields__}
        values['assigned_to'] = list(task.assigned_to)
        return cls(**values)


@dataclass
class Dependency:
    """Finish-to-start dependency between two tasks."""
    predecessor_id: Any
    successor_id: Any
    lag: int = 0
    id: Optional[Any] = None


@dataclass
class DateRange:
    """Inclusive range of calendar days."""
    start: date
    end: date

    def contains(self, day):
        return self.start <= day <= self.end


@dataclass
class Holiday:
    """Holiday. Without applies_to tags it applies to every resource."""
    date: date
    name: str = ''
    applies_to: Optional[List[str]] = None
    is_recurring: bool = False
    id: Optional[Any] = None


@dataclass
class Resource:
    """Person or team that can be assigned to tasks."""
    id: Any
    name: str
    max_hours_per_week: float = 40.0
    tags: List[str] = field(default_factory=list)
    vacations: List[DateRange] = field(default_factory=list)
    custom_working_days: Optional[List[int]] = None
    cost_per_hour: Optional[float] = None


@dataclass
class WeeklyAllocation:
    """Hours of one assignment that fall into one Monday-anchored week."""
    week_start: date
    working_days_in_week: int
    planned_hours: float
    actual_hours: Optional[float] = None


@dataclass
class ResourceAssignment:
    """Assignment of a resource to a task with its weekly hour distribution."""
    task_id: Any
    resource_id: Any
    planned_hours: float
    actual_hours: Optional[float] = None
    weekly_distribution: List[WeeklyAllocation] = field(default_factory=list)
    is_manual_distribution: bool = False
    id: Optional[Any] = None


@dataclass
class ProjectConfig:
    """Calendar settings of a project."""
    working_days: List[int] = field(default_factory=lambda: list(DEFAULT_WORKING_DAYS))
    hours_per_day: float = 8.0
    use_global_holidays: bool = True
    excluded_global_holiday_ids: List[Any] = field(default_factory=list)
    project_holidays: List[Holiday] = field(default_factory=list)
    default_duration: int = 1


@dataclass
class Project:
    """Snapshot of a project as handed to the scheduling engine."""
    id: Any
    name: str
    start_date: Optional[date] = None
    config: ProjectConfig = field(default_factory=ProjectConfig)
    tasks: List[Task] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)
    resources: List[Resource] = field(default_factory=list)
    assignments: List[ResourceAssignment] = field(default_factory=list)
    holidays: List[Holiday] = field(default_factory=list)


def copy_task(task, **changes):
    """Returns a copy of the task that does not share the assigned_to list."""
    changes.setdefault('assigned_to', list(task.assigned_to))
    return replace(task, **changes)
