# main.py
import argparse
import sys

from logger import logger
from database.operations import init_db, recalculate_project, get_project_network, get_resource_utilization
from planning.errors import SchedulingError
from planning.network import VIEW_PLANNED, VIEW_ACTUAL


def run_recalculate(project_id):
    update = recalculate_project(project_id)
    print(f"Passes: {update.passes}, converged: {update.converged}")
    print(f"Planned changes: {len(update.changed_task_ids)}, actual changes: {len(update.changed_actual_ids)}")
    for task in update.tasks:
        if task.id in update.changed_task_ids:
            print(f"  {task.wbs_code or task.id} {task.name}: {task.start_date} - {task.end_date} ({task.duration} d)")


def run_critical_path(project_id, view_mode):
    model = get_project_network(project_id, view_mode)
    if not model.network:
        print("Project has no tasks")
        return

    by_id = {task.id: task for task in model.network}
    print(f"Project duration: {model.project_duration} days")
    print("Critical path: " + " -> ".join(by_id[task_id].name for task_id in model.critical_path))
    for task in model.network:
        marker = '*' if task.is_critical else ' '
        print(f"{marker} {task.name}: ES={task.early_start} EF={task.early_finish} "
              f"LS={task.late_start} LF={task.late_finish} float={task.total_float}")


def run_utilization(project_id, week_count):
    utilization = get_resource_utilization(project_id, week_count)
    if not utilization:
        print("No resources assigned")
        return

    for resource_id, weeks in utilization.items():
        print(f"Resource {resource_id}")
        for week in weeks:
            percent = '-' if week.utilization_percent is None else f"{week.utilization_percent}%"
            print(f"  {week.week_key}: {week.allocated_hours}/{week.capacity_hours} h {percent} {week.load}")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Project scheduling and critical path engine"
    )
    parser.add_argument(
        'command',
        choices=['init-db', 'recalculate', 'critical-path', 'utilization'],
        help='Command to run'
    )
    parser.add_argument(
        'project_id',
        type=int,
        nargs='?',
        help='Project ID (all commands except init-db)'
    )
    parser.add_argument(
        '--database',
        type=str,
        default=None,
        help='Database URL (default: DATABASE_URL from the environment)'
    )
    parser.add_argument(
        '--view',
        choices=[VIEW_PLANNED, VIEW_ACTUAL],
        default=VIEW_PLANNED,
        help='Schedule analysed by critical-path (default: planned)'
    )
    parser.add_argument(
        '--weeks',
        type=int,
        default=12,
        help='Number of weeks reported by utilization (default: 12)'
    )

    args = parser.parse_args()

    init_db(args.database)
    if args.command == 'init-db':
        return 0

    if args.project_id is None:
        parser.error(f"{args.command} requires a project ID")

    try:
        if args.command == 'recalculate':
            run_recalculate(args.project_id)
        elif args.command == 'critical-path':
            run_critical_path(args.project_id, args.view)
        elif args.command == 'utilization':
            run_utilization(args.project_id, args.weeks)
    except (SchedulingError, LookupError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
