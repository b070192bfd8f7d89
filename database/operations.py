from contextlib import contextmanager
from datetime import date

from sqlalchemy import create_engine, or_
from sqlalchemy.orm import sessionmaker

from config import DATABASE_URL, WORKING_DAYS, parse_working_days
from database.models import Base, Project, Task, TaskDependency, Resource, Vacation, Holiday, \
    ResourceAssignment, WeeklyAllocationRow
from logger import logger
from planning import models
from planning.calendar import calculate_task_end_date, to_date, week_start
from planning.graph import validate_new_dependency
from planning.holidays import get_combined_holidays
from planning.network import calculate_network_parameters
from planning.resources import calculate_resource_utilization, calculate_weekly_allocation
from planning.scheduler import recalculate_assignments, recalculate_schedule
from planning.wbs import demote_to_leaf, generate_wbs_code

# Database connection
engine = create_engine(DATABASE_URL)
Session = sessionmaker(bind=engine)


def init_db(database_url=None):
    """
    Initializes the database.

    Args:
        database_url: Optional URL replacing the configured one
    """
    global engine
    if database_url:
        engine = create_engine(database_url)
        Session.configure(bind=engine)

    logger.info(f"Initializing database at {engine.url}")
    try:
        Base.metadata.create_all(engine)
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


@contextmanager
def session_scope():
    """
    Context manager for SQLAlchemy sessions.
    Commits on success and rolls back when an exception is raised.
    """
    session = Session()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database error: {str(e)}")
        raise
    finally:
        session.close()


def _join(values):
    values = [str(value) for value in values or []]
    return ','.join(values) if values else None


def _split(value):
    if not value:
        return []
    return [part.strip() for part in value.split(',') if part.strip()]


def _get_or_raise(session, model, object_id):
    obj = session.get(model, object_id)
    if obj is None:
        raise LookupError(f"{model.__name__} {object_id} not found")
    return obj


def create_project(name, start_date=None, working_days=None, hours_per_day=8.0,
                   use_global_holidays=True, excluded_global_holiday_ids=None):
    """
    Creates a new project.

    Args:
        name: Project name
        start_date: Default start of new root tasks
        working_days: Day numbers (0 - Sunday), configured default when empty
        hours_per_day: Working hours per day
        use_global_holidays: Whether global holidays apply
        excluded_global_holiday_ids: Global holidays ignored by this project

    Returns:
        ID of the created project
    """
    with session_scope() as session:
        project = Project(
            name=name,
            start_date=to_date(start_date) if start_date else None,
            working_days=_join(working_days or WORKING_DAYS),
            hours_per_day=hours_per_day,
            use_global_holidays=use_global_holidays,
            excluded_global_holiday_ids=_join(excluded_global_holiday_ids),
        )
        session.add(project)
        session.flush()
        logger.info(f"Created project {project.id} '{name}'")
        return project.id


def _project_config(session, project):
    holidays = session.query(Holiday).filter(Holiday.project_id == project.id).all()
    return models.ProjectConfig(
        working_days=parse_working_days(project.working_days or ""),
        hours_per_day=project.hours_per_day,
        use_global_holidays=project.use_global_holidays,
        excluded_global_holiday_ids=[int(value) for value in _split(project.excluded_global_holiday_ids)],
        project_holidays=[_holiday_to_model(holiday) for holiday in holidays],
    )


def add_task(project_id, name, duration, start_date=None, parent_id=None):
    """
    Adds a task to a project.

    The WBS code and level are derived from the parent. A child starts at
    its parent's start unless a start date is given.

    Args:
        project_id: Project ID
        name: Task name
        duration: Duration in working days
        start_date: Planned start, project start (or today) when empty
        parent_id: ID of the parent task, None for a root task

    Returns:
        ID of the created task
    """
    with session_scope() as session:
        project = _get_or_raise(session, Project, project_id)
        config = _project_config(session, project)

        siblings = session.query(Task).filter(
            Task.project_id == project_id,
            Task.parent_id == parent_id if parent_id is not None else Task.parent_id.is_(None),
        ).count()

        parent = None
        if parent_id is not None:
            parent = _get_or_raise(session, Task, parent_id)
            if parent.project_id != project_id:
                raise ValueError(f"Parent task {parent_id} belongs to another project")

        if start_date is None:
            start_date = parent.start_date if parent else (project.start_date or date.today())
        start_date = to_date(start_date)

        task = Task(
            project_id=project_id,
            name=name,
            duration=duration,
            start_date=start_date,
            end_date=calculate_task_end_date(start_date, duration, config.working_days),
            parent_id=parent_id,
            level=parent.level + 1 if parent else 0,
            wbs_code=generate_wbs_code(parent.wbs_code if parent else None, siblings),
        )
        session.add(task)
        session.flush()
        return task.id


def update_task(task_id, **fields):
    """
    Updates editable task fields.

    Args:
        task_id: Task ID
        fields: name, duration, start_date, actual_duration, actual_start_date

    Returns:
        ID of the updated task

    Raises:
        ValueError: for unknown fields, or for duration and start_date of a
            container task (those follow its subtasks)
    """
    editable = {'name', 'duration', 'start_date', 'actual_duration', 'actual_start_date'}
    unknown = set(fields) - editable
    if unknown:
        raise ValueError(f"Fields cannot be edited: {sorted(unknown)}")

    with session_scope() as session:
        task = _get_or_raise(session, Task, task_id)
        rolled_up = {'duration', 'start_date'} & set(fields)
        if rolled_up and session.query(Task).filter(Task.parent_id == task_id).count():
            raise ValueError(f"Task {task_id} has subtasks, {sorted(rolled_up)} follow them")
        config = _project_config(session, task.project)

        for name, value in fields.items():
            if name in ('start_date', 'actual_start_date') and value is not None:
                value = to_date(value)
            setattr(task, name, value)

        if 'duration' in fields or 'start_date' in fields:
            task.end_date = calculate_task_end_date(task.start_date, task.duration, config.working_days)
        return task.id


def delete_task(task_id):
    """
    Deletes a task together with its subtasks, dependencies and assignments.

    When the parent loses its last child it becomes a leaf task again and
    keeps its last span.

    Args:
        task_id: Task ID
    """
    with session_scope() as session:
        task = _get_or_raise(session, Task, task_id)
        project_id = task.project_id
        parent_id = task.parent_id

        subtree = []
        stack = [task]
        while stack:
            current = stack.pop()
            subtree.append(current)
            stack.extend(current.subtasks)
        ids = [item.id for item in subtree]

        session.query(TaskDependency).filter(
            or_(TaskDependency.task_id.in_(ids), TaskDependency.predecessor_id.in_(ids))
        ).delete(synchronize_session=False)
        for item in reversed(subtree):
            session.delete(item)
        session.flush()

        if parent_id is not None:
            remaining = session.query(Task).filter(Task.parent_id == parent_id).count()
            if remaining == 0:
                parent = session.get(Task, parent_id)
                config = _project_config(session, parent.project)
                leaf = demote_to_leaf(_task_to_model(parent), config.working_days)
                parent.duration = leaf.duration
                parent.end_date = leaf.end_date

        logger.info(f"Deleted {len(ids)} tasks from project {project_id}")


def add_dependency(predecessor_id, successor_id, lag=0):
    """
    Adds a finish-to-start dependency.

    The dependency is validated before it is stored: a cycle or a self
    dependency is rejected and nothing is written.

    Args:
        predecessor_id: ID of the task that must finish first
        successor_id: ID of the dependent task
        lag: Extra working days between the two tasks

    Returns:
        ID of the created dependency

    Raises:
        CyclicDependencyError: if the dependency would create a cycle
        ValueError: for negative lag, tasks of different projects or duplicates
    """
    if lag is None:
        lag = 0
    if lag < 0:
        raise ValueError("Lag cannot be negative")

    with session_scope() as session:
        successor = _get_or_raise(session, Task, successor_id)
        predecessor = _get_or_raise(session, Task, predecessor_id)
        if predecessor.project_id != successor.project_id:
            raise ValueError("Dependencies can only link tasks of the same project")

        existing = session.query(TaskDependency).filter(
            TaskDependency.project_id == successor.project_id).all()
        edges = [(dep.predecessor_id, dep.task_id) for dep in existing]
        if (predecessor_id, successor_id) in edges:
            raise ValueError(f"Dependency {predecessor_id} -> {successor_id} already exists")

        validate_new_dependency(predecessor_id, successor_id, edges)

        dependency = TaskDependency(
            project_id=successor.project_id,
            task_id=successor_id,
            predecessor_id=predecessor_id,
            lag=lag,
        )
        session.add(dependency)
        session.flush()
        return dependency.id


def delete_dependency(dependency_id):
    """Deletes a dependency. Missing dependencies are ignored."""
    with session_scope() as session:
        dependency = session.get(TaskDependency, dependency_id)
        if dependency is not None:
            session.delete(dependency)


def add_resource(name, max_hours_per_week=40.0, tags=None, email=None,
                 custom_working_days=None, cost_per_hour=None):
    """
    Adds a resource.

    Returns:
        ID of the created resource
    """
    with session_scope() as session:
        resource = Resource(
            name=name,
            email=email,
            tags=_join(tags),
            max_hours_per_week=max_hours_per_week,
            custom_working_days=_join(custom_working_days),
            cost_per_hour=cost_per_hour,
        )
        session.add(resource)
        session.flush()
        return resource.id


def add_vacation(resource_id, start_date, end_date):
    """Adds a vacation (inclusive range) to a resource."""
    start_date = to_date(start_date)
    end_date = to_date(end_date)
    if end_date < start_date:
        raise ValueError("Vacation ends before it starts")

    with session_scope() as session:
        _get_or_raise(session, Resource, resource_id)
        vacation = Vacation(resource_id=resource_id, start_date=start_date, end_date=end_date)
        session.add(vacation)
        session.flush()
        return vacation.id


def add_holiday(name, holiday_date, applies_to=None, is_recurring=False, project_id=None):
    """
    Adds a holiday, global when project_id is empty.

    Returns:
        ID of the created holiday
    """
    with session_scope() as session:
        holiday = Holiday(
            project_id=project_id,
            name=name,
            date=to_date(holiday_date),
            applies_to=_join(applies_to),
            is_recurring=is_recurring,
        )
        session.add(holiday)
        session.flush()
        return holiday.id


def _task_to_model(task):
    return models.Task(
        id=task.id,
        name=task.name,
        duration=task.duration,
        start_date=task.start_date,
        end_date=task.end_date,
        parent_id=task.parent_id,
        level=task.level or 0,
        wbs_code=task.wbs_code,
        actual_duration=task.actual_duration,
        actual_start_date=task.actual_start_date,
        actual_end_date=task.actual_end_date,
        assigned_to=[assignment.resource_id for assignment in task.assignments],
    )


def _dependency_to_model(dependency):
    return models.Dependency(
        id=dependency.id,
        predecessor_id=dependency.predecessor_id,
        successor_id=dependency.task_id,
        lag=dependency.lag or 0,
    )


def _resource_to_model(resource):
    return models.Resource(
        id=resource.id,
        name=resource.name,
        max_hours_per_week=resource.max_hours_per_week,
        tags=_split(resource.tags),
        vacations=[models.DateRange(vacation.start_date, vacation.end_date) for vacation in resource.vacations],
        custom_working_days=parse_working_days(resource.custom_working_days) if resource.custom_working_days else None,
        cost_per_hour=resource.cost_per_hour,
    )


def _holiday_to_model(holiday):
    return models.Holiday(
        id=holiday.id,
        date=holiday.date,
        name=holiday.name,
        applies_to=_split(holiday.applies_to) or None,
        is_recurring=bool(holiday.is_recurring),
    )


def _assignment_to_model(assignment):
    return models.ResourceAssignment(
        id=assignment.id,
        task_id=assignment.task_id,
        resource_id=assignment.resource_id,
        planned_hours=assignment.planned_hours,
        actual_hours=assignment.actual_hours,
        is_manual_distribution=bool(assignment.is_manual_distribution),
        weekly_distribution=[
            models.WeeklyAllocation(
                week_start=row.week_start,
                working_days_in_week=row.working_days,
                planned_hours=row.planned_hours,
                actual_hours=row.actual_hours,
            )
            for row in assignment.weeks
        ],
    )


def _global_holidays(session):
    return [_holiday_to_model(holiday)
            for holiday in session.query(Holiday).filter(Holiday.project_id.is_(None)).all()]


def load_project_snapshot(project_id):
    """
    Loads a project with everything the scheduling engine needs.

    Args:
        project_id: Project ID

    Returns:
        planning.models.Project; its holidays are the combined global and
        project holidays
    """
    with session_scope() as session:
        project = _get_or_raise(session, Project, project_id)
        config = _project_config(session, project)

        tasks = session.query(Task).filter(Task.project_id == project_id).order_by(Task.id).all()
        dependencies = session.query(TaskDependency).filter(
            TaskDependency.project_id == project_id).order_by(TaskDependency.id).all()
        task_ids = [task.id for task in tasks]
        assignments = []
        if task_ids:
            assignments = session.query(ResourceAssignment).filter(
                ResourceAssignment.task_id.in_(task_ids)).order_by(ResourceAssignment.id).all()
        resource_ids = sorted({assignment.resource_id for assignment in assignments})
        resources = []
        if resource_ids:
            resources = session.query(Resource).filter(Resource.id.in_(resource_ids)).all()

        return models.Project(
            id=project.id,
            name=project.name,
            start_date=project.start_date,
            config=config,
            tasks=[_task_to_model(task) for task in tasks],
            dependencies=[_dependency_to_model(dependency) for dependency in dependencies],
            resources=[_resource_to_model(resource) for resource in resources],
            assignments=[_assignment_to_model(assignment) for assignment in assignments],
            holidays=get_combined_holidays(_global_holidays(session), config),
        )


def save_task_dates(tasks, task_ids):
    """
    Writes the computed dates of the given tasks.

    Args:
        tasks: planning.models.Task list
        task_ids: IDs of the tasks to store

    Returns:
        Number of updated tasks
    """
    wanted = set(task_ids)
    updated = 0
    with session_scope() as session:
        for task in tasks:
            if task.id not in wanted:
                continue
            row = session.get(Task, task.id)
            if row is None:
                logger.warning(f"Task {task.id} disappeared before its dates were saved")
                continue
            row.start_date = task.start_date
            row.end_date = task.end_date
            row.duration = task.duration
            row.actual_start_date = task.actual_start_date
            row.actual_end_date = task.actual_end_date
            row.actual_duration = task.actual_duration
            updated += 1
    return updated


def _store_distribution(assignment_row, distribution):
    assignment_row.weeks.clear()
    for allocation in distribution:
        assignment_row.weeks.append(WeeklyAllocationRow(
            week_start=allocation.week_start,
            working_days=allocation.working_days_in_week,
            planned_hours=allocation.planned_hours,
            actual_hours=allocation.actual_hours,
        ))


def assign_resource(task_id, resource_id, planned_hours):
    """
    Assigns a resource to a task and distributes the hours over the weeks.

    Returns:
        ID of the created assignment
    """
    with session_scope() as session:
        task = _get_or_raise(session, Task, task_id)
        resource = _get_or_raise(session, Resource, resource_id)
        config = _project_config(session, task.project)
        holidays = get_combined_holidays(_global_holidays(session), config)

        distribution = calculate_weekly_allocation(
            task.start_date, task.end_date, planned_hours, config.working_days,
            _resource_to_model(resource), holidays,
        )
        assignment = ResourceAssignment(
            task_id=task_id,
            resource_id=resource_id,
            planned_hours=planned_hours,
            is_manual_distribution=False,
        )
        _store_distribution(assignment, distribution)
        session.add(assignment)
        session.flush()
        return assignment.id


def set_manual_distribution(assignment_id, weekly_hours):
    """
    Stores a distribution edited by hand. It is kept on later recalculations.

    Args:
        assignment_id: Assignment ID
        weekly_hours: Dict {any day of the week: hours}
    """
    with session_scope() as session:
        assignment = _get_or_raise(session, ResourceAssignment, assignment_id)
        previous = {row.week_start: row.working_days for row in assignment.weeks}

        distribution = []
        for day, hours in sorted(weekly_hours.items(), key=lambda item: to_date(item[0])):
            monday = week_start(day)
            distribution.append(models.WeeklyAllocation(
                week_start=monday,
                working_days_in_week=previous.get(monday, 0),
                planned_hours=hours,
            ))

        _store_distribution(assignment, distribution)
        assignment.planned_hours = sum(allocation.planned_hours for allocation in distribution)
        assignment.is_manual_distribution = True


def recalculate_project(project_id):
    """
    Recalculates the schedule of a project and stores the changes.

    Planned and actual dates are recalculated first, then the weekly
    distribution of every automatically distributed assignment.

    Args:
        project_id: Project ID

    Returns:
        planning.scheduler.ScheduleUpdate

    Raises:
        CyclicDependencyError: if the stored dependencies contain a cycle;
            nothing is written in that case
    """
    snapshot = load_project_snapshot(project_id)
    update = recalculate_schedule(snapshot.tasks, snapshot.dependencies, snapshot.config)

    changed = set(update.changed_task_ids) | set(update.changed_actual_ids)
    if changed:
        save_task_dates(update.tasks, changed)

    recalculate_project_assignments(project_id)

    logger.info(f"Project {project_id} recalculated, {len(changed)} tasks updated")
    return update


def recalculate_project_assignments(project_id):
    """
    Redistributes the hours of the project's assignments over the stored
    task dates. Manually distributed assignments are left untouched.

    Args:
        project_id: Project ID

    Returns:
        Number of redistributed assignments
    """
    with session_scope() as session:
        project = _get_or_raise(session, Project, project_id)
        config = _project_config(session, project)
        global_holidays = _global_holidays(session)

        rows = session.query(ResourceAssignment).join(Task).filter(Task.project_id == project_id).all()
        assignments = [_assignment_to_model(row) for row in rows]
        tasks = [_task_to_model(row.task) for row in rows]
        resources = [_resource_to_model(row.resource) for row in rows]

        updated = 0
        recalculated = recalculate_assignments(assignments, tasks, resources, config, global_holidays)
        for row, assignment in zip(rows, recalculated):
            if assignment.is_manual_distribution:
                continue
            _store_distribution(row, assignment.weekly_distribution)
            updated += 1
        return updated


def get_project_network(project_id, view_mode='planned'):
    """
    Calculates the network model (critical path) of a stored project.

    Returns:
        planning.network.NetworkModel
    """
    snapshot = load_project_snapshot(project_id)
    return calculate_network_parameters(snapshot.tasks, snapshot.dependencies, view_mode)


def get_resource_utilization(project_id, week_count=12):
    """
    Weekly load of the resources assigned in a project.

    Returns:
        Dict {resource id: [WeekLoad, ...]} starting at the project start
    """
    snapshot = load_project_snapshot(project_id)
    if snapshot.tasks:
        start = min(task.start_date for task in snapshot.tasks)
    else:
        start = snapshot.start_date or date.today()
    return calculate_resource_utilization(
        snapshot.resources, snapshot.assignments, start, week_count,
        snapshot.config.working_days, snapshot.holidays,
    )
