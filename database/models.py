from sqlalchemy import Column, Integer, String, Float, ForeignKey, Boolean, DateTime, Date as SQLAlchemyDate
from sqlalchemy.orm import declarative_base, relationship, backref
from datetime import datetime

Base = declarative_base()


class Project(Base):
    """Project with its calendar settings."""
    __tablename__ = 'projects'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    start_date = Column(SQLAlchemyDate, nullable=True)
    working_days = Column(String, nullable=False, default="1,2,3,4,5")  # 0 - Sunday
    hours_per_day = Column(Float, default=8.0)
    use_global_holidays = Column(Boolean, default=True)
    excluded_global_holiday_ids = Column(String, nullable=True)  # "3,7"

    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan")
    dependencies = relationship("TaskDependency", back_populates="project", cascade="all, delete-orphan")
    holidays = relationship("Holiday", back_populates="project", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}')>"


class Task(Base):
    """WBS task."""
    __tablename__ = 'tasks'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id'), nullable=False)
    name = Column(String, nullable=False)
    wbs_code = Column(String, nullable=True)
    level = Column(Integer, default=0)
    parent_id = Column(Integer, ForeignKey('tasks.id'), nullable=True)  # None for root tasks
    duration = Column(Integer, nullable=False)  # Working days; rolled up for containers
    start_date = Column(SQLAlchemyDate, nullable=False)
    end_date = Column(SQLAlchemyDate, nullable=False)

    # Actual track, empty until the task is tracked
    actual_duration = Column(Integer, nullable=True)
    actual_start_date = Column(SQLAlchemyDate, nullable=True)
    actual_end_date = Column(SQLAlchemyDate, nullable=True)

    project = relationship("Project", back_populates="tasks")
    subtasks = relationship("Task", backref=backref("parent", remote_side=[id]))
    assignments = relationship("ResourceAssignment", back_populates="task", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Task(id={self.id}, name='{self.name}', duration={self.duration})>"


class TaskDependency(Base):
    """Finish-to-start dependency between two tasks."""
    __tablename__ = 'task_dependencies'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id'), nullable=False)
    task_id = Column(Integer, ForeignKey('tasks.id'), nullable=False)  # Successor
    predecessor_id = Column(Integer, ForeignKey('tasks.id'), nullable=False)
    lag = Column(Integer, default=0)

    project = relationship("Project", back_populates="dependencies")
    task = relationship("Task", foreign_keys=[task_id])
    predecessor = relationship("Task", foreign_keys=[predecessor_id])

    def __repr__(self):
        return f"<TaskDependency(task_id={self.task_id}, predecessor_id={self.predecessor_id}, lag={self.lag})>"


class Resource(Base):
    """Resource shared by all projects."""
    __tablename__ = 'resources'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    tags = Column(String, nullable=True)  # "Frontend,Madrid"
    max_hours_per_week = Column(Float, default=40.0)
    custom_working_days = Column(String, nullable=True)  # Overrides the project calendar
    cost_per_hour = Column(Float, nullable=True)

    vacations = relationship("Vacation", back_populates="resource", cascade="all, delete-orphan")
    assignments = relationship("ResourceAssignment", back_populates="resource")

    def __repr__(self):
        return f"<Resource(id={self.id}, name='{self.name}')>"


class Vacation(Base):
    """Vacation of a resource, both dates inclusive."""
    __tablename__ = 'vacations'

    id = Column(Integer, primary_key=True)
    resource_id = Column(Integer, ForeignKey('resources.id'), nullable=False)
    start_date = Column(SQLAlchemyDate, nullable=False)
    end_date = Column(SQLAlchemyDate, nullable=False)

    resource = relationship("Resource", back_populates="vacations")

    def __repr__(self):
        return f"<Vacation(resource_id={self.resource_id}, {self.start_date}..{self.end_date})>"


class Holiday(Base):
    """Holiday. Global when project_id is empty."""
    __tablename__ = 'holidays'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id'), nullable=True)
    name = Column(String, nullable=False)
    date = Column(SQLAlchemyDate, nullable=False)
    applies_to = Column(String, nullable=True)  # Resource tags, empty = everybody
    is_recurring = Column(Boolean, default=False)

    project = relationship("Project", back_populates="holidays")

    def __repr__(self):
        return f"<Holiday(name='{self.name}', date={self.date})>"


class ResourceAssignment(Base):
    """Resource assigned to a task with a number of hours."""
    __tablename__ = 'resource_assignments'

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey('tasks.id'), nullable=False)
    resource_id = Column(Integer, ForeignKey('resources.id'), nullable=False)
    planned_hours = Column(Float, nullable=False)
    actual_hours = Column(Float, nullable=True)
    is_manual_distribution = Column(Boolean, default=False)

    task = relationship("Task", back_populates="assignments")
    resource = relationship("Resource", back_populates="assignments")
    weeks = relationship("WeeklyAllocationRow", back_populates="assignment",
                         cascade="all, delete-orphan", order_by="WeeklyAllocationRow.week_start")

    def __repr__(self):
        return f"<ResourceAssignment(task_id={self.task_id}, resource_id={self.resource_id})>"


class WeeklyAllocationRow(Base):
    """Hours of an assignment in one week."""
    __tablename__ = 'weekly_allocations'

    id = Column(Integer, primary_key=True)
    assignment_id = Column(Integer, ForeignKey('resource_assignments.id'), nullable=False)
    week_start = Column(SQLAlchemyDate, nullable=False)  # Monday
    working_days = Column(Integer, nullable=False)
    planned_hours = Column(Float, nullable=False)
    actual_hours = Column(Float, nullable=True)

    assignment = relationship("ResourceAssignment", back_populates="weeks")

    def __repr__(self):
        return f"<WeeklyAllocationRow(assignment_id={self.assignment_id}, week_start={self.week_start})>"
