import inspect
import unittest
from datetime import date

from config import MAX_PROPAGATION_PASSES
from planning.calendar import add_business_days, calculate_task_end_date, is_working_day
from planning.errors import CyclicDependencyError, DanglingDependencyWarning, IterationLimitWarning
from planning.models import Dependency, Task
from planning.propagation import (
    calculate_actual_dates, earliest_start_after, propagate, recalculate_task_dates,
)

MON_FRI = [1, 2, 3, 4, 5]
MONDAY = date(2024, 1, 8)


def make_task(task_id, duration, start=MONDAY, parent_id=None, level=0, **kwargs):
    return Task(
        id=task_id,
        name=f"Task {task_id}",
        duration=duration,
        start_date=start,
        end_date=calculate_task_end_date(start, duration, MON_FRI),
        parent_id=parent_id,
        level=level,
        **kwargs
    )


def by_id(tasks):
    return {task.id: task for task in tasks}


class TestEarliestStart(unittest.TestCase):
    def test_next_working_day_after_friday(self):
        self.assertEqual(earliest_start_after(date(2024, 1, 12), 0, MON_FRI), date(2024, 1, 15))

    def test_lag_adds_working_days(self):
        self.assertEqual(earliest_start_after(date(2024, 1, 12), 2, MON_FRI), date(2024, 1, 17))


class TestPropagation(unittest.TestCase):
    def test_single_task_ends_on_friday(self):
        result = propagate([make_task(1, 5)], [], MON_FRI)

        self.assertEqual(result.tasks[0].end_date, date(2024, 1, 12))
        self.assertEqual(result.changed_ids, [])

    def test_root_on_working_day_is_left_alone(self):
        task = make_task(1, 5)
        task.end_date = date(2024, 1, 15)

        result = propagate([task], [], MON_FRI)

        self.assertEqual(result.tasks[0].start_date, MONDAY)
        self.assertEqual(result.tasks[0].end_date, date(2024, 1, 15))
        self.assertEqual(result.changed_ids, [])

    def test_root_saturday_start_moves(self):
        task = make_task(1, 5, start=date(2024, 1, 13))
        task.end_date = date(2024, 1, 13)

        result = propagate([task], [], MON_FRI)

        self.assertEqual(result.tasks[0].start_date, date(2024, 1, 15))
        self.assertEqual(result.tasks[0].end_date, date(2024, 1, 19))
        self.assertEqual(result.changed_ids, [1])

    def test_successor_starts_next_working_day(self):
        tasks = [make_task(1, 5), make_task(2, 3)]

        result = by_id(recalculate_task_dates(tasks, [Dependency(1, 2)], MON_FRI))

        self.assertEqual(result[2].start_date, date(2024, 1, 15))
        self.assertEqual(result[2].end_date, date(2024, 1, 17))

    def test_successor_with_lag(self):
        tasks = [make_task(1, 5), make_task(2, 3)]

        result = by_id(recalculate_task_dates(tasks, [Dependency(1, 2, lag=2)], MON_FRI))

        expected = add_business_days(add_business_days(date(2024, 1, 12), 1, MON_FRI), 2, MON_FRI)
        self.assertEqual(result[2].start_date, expected)
        self.assertEqual(expected, date(2024, 1, 17))

    def test_successor_is_pulled_back(self):
        tasks = [make_task(1, 5), make_task(2, 3, start=date(2024, 2, 1))]

        result = by_id(recalculate_task_dates(tasks, [Dependency(1, 2)], MON_FRI))

        self.assertEqual(result[2].start_date, date(2024, 1, 15))

    def test_weekend_start_moves_to_monday(self):
        result = propagate([make_task(1, 2, start=date(2024, 1, 13))], [], MON_FRI)

        self.assertEqual(result.tasks[0].start_date, date(2024, 1, 15))
        self.assertEqual(result.tasks[0].end_date, date(2024, 1, 16))

    def test_latest_predecessor_constraint_wins(self):
        # 1 ends on Friday without lag, 2 ends on Wednesday with lag 3
        tasks = [make_task(1, 5), make_task(2, 3), make_task(3, 1)]
        deps = [Dependency(1, 3), Dependency(2, 3, lag=3)]

        result = by_id(recalculate_task_dates(tasks, deps, MON_FRI))

        self.assertEqual(result[3].start_date, date(2024, 1, 16))

    def test_every_dependency_is_respected(self):
        tasks = [make_task(i, duration) for i, duration in enumerate([3, 1, 4, 2, 5, 1], start=1)]
        deps = [Dependency(1, 3, lag=1), Dependency(2, 3), Dependency(3, 4, lag=2),
                Dependency(2, 5, lag=7), Dependency(4, 6), Dependency(5, 6)]

        result = by_id(recalculate_task_dates(tasks, deps, MON_FRI))

        for dep in deps:
            predecessor = result[dep.predecessor_id]
            successor = result[dep.successor_id]
            bound = add_business_days(predecessor.end_date, 1 + dep.lag, MON_FRI)
            self.assertGreaterEqual(successor.start_date, bound)
            self.assertTrue(is_working_day(successor.start_date, MON_FRI))

    def test_containers_envelope_children(self):
        tasks = [
            make_task('P', 1),
            make_task('P.1', 2, parent_id='P', level=1),
            make_task('P.2', 3, parent_id='P', level=1),
        ]

        result = by_id(recalculate_task_dates(tasks, [Dependency('P.1', 'P.2')], MON_FRI))

        self.assertEqual(result['P.2'].start_date, date(2024, 1, 10))
        self.assertEqual(result['P'].start_date, MONDAY)
        self.assertEqual(result['P'].end_date, date(2024, 1, 12))
        self.assertEqual(result['P'].duration, 5)

    def test_dependency_on_container_follows_its_rollup(self):
        tasks = [
            make_task('P', 1),
            make_task('P.1', 5, parent_id='P', level=1),
            make_task('X', 2),
        ]

        result = propagate(tasks, [Dependency('P', 'X')], MON_FRI)
        tasks_by_id = by_id(result.tasks)

        self.assertTrue(result.converged)
        self.assertEqual(tasks_by_id['X'].start_date, date(2024, 1, 15))

    def test_second_run_changes_nothing(self):
        tasks = [
            make_task('P', 1),
            make_task('A', 2, parent_id='P', level=1),
            make_task('B', 4, parent_id='P', level=1),
            make_task('C', 3),
        ]
        deps = [Dependency('A', 'B', lag=1), Dependency('P', 'C')]

        first = propagate(tasks, deps, MON_FRI)
        second = propagate(first.tasks, deps, MON_FRI)

        self.assertEqual(second.changed_ids, [])
        self.assertEqual(second.passes, 1)
        self.assertEqual(second.tasks, first.tasks)

    def test_input_is_not_modified(self):
        tasks = [make_task(1, 5), make_task(2, 3)]

        propagate(tasks, [Dependency(1, 2)], MON_FRI)

        self.assertEqual(tasks[1].start_date, MONDAY)

    def test_cycle_raises(self):
        tasks = [make_task(1, 1), make_task(2, 1)]
        with self.assertRaises(CyclicDependencyError):
            propagate(tasks, [Dependency(1, 2), Dependency(2, 1)], MON_FRI)

    def test_dangling_dependency_is_ignored(self):
        tasks = [make_task(1, 5), make_task(2, 3)]
        with self.assertWarns(DanglingDependencyWarning):
            result = by_id(recalculate_task_dates(tasks, [Dependency(1, 2), Dependency(42, 2)], MON_FRI))
        self.assertEqual(result[2].start_date, date(2024, 1, 15))

    def test_pass_limit_warns(self):
        tasks = [make_task(1, 5), make_task(2, 3)]
        with self.assertWarns(IterationLimitWarning):
            result = propagate(tasks, [Dependency(1, 2)], MON_FRI, max_passes=1)
        self.assertFalse(result.converged)
        self.assertEqual(by_id(result.tasks)[2].start_date, date(2024, 1, 15))

    def test_empty_input(self):
        result = propagate([], [], MON_FRI)
        self.assertEqual(result.tasks, [])
        self.assertTrue(result.converged)

    def test_pass_limit_comes_from_config(self):
        for function in (propagate, recalculate_task_dates, calculate_actual_dates):
            default = inspect.signature(function).parameters['max_passes'].default
            self.assertEqual(default, MAX_PROPAGATION_PASSES)


class TestActualDates(unittest.TestCase):
    def test_late_predecessor_pushes_successor(self):
        tasks = [make_task(1, 5, actual_duration=7), make_task(2, 3)]
        tasks = recalculate_task_dates(tasks, [Dependency(1, 2)], MON_FRI)

        result = by_id(calculate_actual_dates(tasks, [Dependency(1, 2)], MON_FRI))

        self.assertEqual(result[1].actual_start_date, MONDAY)
        self.assertEqual(result[1].actual_end_date, date(2024, 1, 16))
        self.assertEqual(result[2].actual_start_date, date(2024, 1, 17))
        self.assertEqual(result[2].actual_end_date, date(2024, 1, 19))
        # Planned dates stay as they were
        self.assertEqual(result[2].start_date, date(2024, 1, 15))

    def test_root_keeps_recorded_actual_start(self):
        tasks = [make_task(1, 2, actual_start_date=date(2024, 1, 10), actual_duration=2)]

        result = calculate_actual_dates(tasks, [], MON_FRI)

        self.assertEqual(result[0].actual_start_date, date(2024, 1, 10))
        self.assertEqual(result[0].actual_end_date, date(2024, 1, 11))

    def test_untracked_root_uses_plan(self):
        result = calculate_actual_dates([make_task(1, 5)], [], MON_FRI)

        self.assertEqual(result[0].actual_start_date, MONDAY)
        self.assertEqual(result[0].actual_end_date, date(2024, 1, 12))

    def test_container_actual_rollup(self):
        tasks = [
            make_task('P', 5),
            make_task('A', 2, parent_id='P', level=1, actual_duration=4),
            make_task('B', 3, start=date(2024, 1, 10), parent_id='P', level=1),
        ]

        result = by_id(calculate_actual_dates(tasks, [], MON_FRI))

        self.assertEqual(result['P'].actual_start_date, MONDAY)
        self.assertEqual(result['P'].actual_end_date, date(2024, 1, 12))
        self.assertEqual(result['P'].actual_duration, 5)


if __name__ == '__main__':
    unittest.main()
