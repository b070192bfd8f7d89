import unittest
from datetime import date

from planning.models import DateRange, Holiday, Resource, ResourceAssignment, WeeklyAllocation
from planning.resources import (
    LOAD_HIGH, LOAD_LOW, LOAD_MEDIUM, LOAD_OVER, LOAD_UNASSIGNED,
    calculate_resource_capacity, calculate_resource_utilization, calculate_weekly_allocation,
    classify_load, count_available_days, recalculate_weekly_allocation, round_hours,
)

MON_FRI = [1, 2, 3, 4, 5]
MONDAY = date(2024, 1, 8)
FRIDAY = date(2024, 1, 12)


class TestWeeklyAllocation(unittest.TestCase):
    def test_one_full_week(self):
        resource = Resource(id=1, name="Dev", max_hours_per_week=40)

        weeks = calculate_weekly_allocation(MONDAY, FRIDAY, 40, MON_FRI, resource)

        self.assertEqual(len(weeks), 1)
        self.assertEqual(weeks[0].week_start, MONDAY)
        self.assertEqual(weeks[0].working_days_in_week, 5)
        self.assertEqual(weeks[0].planned_hours, 40)

    def test_split_by_working_days(self):
        weeks = calculate_weekly_allocation(date(2024, 1, 10), date(2024, 1, 16), 10, MON_FRI)

        self.assertEqual([week.working_days_in_week for week in weeks], [3, 2])
        self.assertEqual([week.planned_hours for week in weeks], [6.0, 4.0])

    def test_rounding_remainder_goes_to_last_week(self):
        # 1 + 5 + 1 available days
        weeks = calculate_weekly_allocation(date(2024, 1, 12), date(2024, 1, 22), 100, MON_FRI)

        self.assertEqual([week.planned_hours for week in weeks], [14.29, 71.43, 14.28])
        self.assertAlmostEqual(sum(week.planned_hours for week in weeks), 100, delta=0.01)

    def test_sum_matches_total(self):
        for total in (1, 7.5, 33.33, 100, 257):
            for length in range(1, 40, 3):
                end = date.fromordinal(MONDAY.toordinal() + length)
                weeks = calculate_weekly_allocation(MONDAY, end, total, MON_FRI)
                self.assertAlmostEqual(sum(week.planned_hours for week in weeks), total, delta=0.01)

    def test_vacation_week_gets_nothing(self):
        resource = Resource(id=1, name="Dev", vacations=[DateRange(date(2024, 1, 15), date(2024, 1, 19))])

        weeks = calculate_weekly_allocation(MONDAY, date(2024, 1, 19), 40, MON_FRI, resource)

        self.assertEqual([week.planned_hours for week in weeks], [40.0, 0.0])
        self.assertEqual(weeks[1].working_days_in_week, 0)

    def test_no_available_days(self):
        resource = Resource(id=1, name="Dev", vacations=[DateRange(MONDAY, FRIDAY)])

        weeks = calculate_weekly_allocation(MONDAY, FRIDAY, 40, MON_FRI, resource)

        self.assertEqual(len(weeks), 1)
        self.assertEqual(weeks[0].planned_hours, 0.0)

    def test_zero_hours(self):
        weeks = calculate_weekly_allocation(MONDAY, date(2024, 1, 19), 0, MON_FRI)

        self.assertEqual([week.planned_hours for week in weeks], [0.0, 0.0])

    def test_tagged_holiday_only_for_matching_resource(self):
        holidays = [Holiday(date=MONDAY, name="Local", applies_to=['Madrid'])]
        madrid = Resource(id=1, name="A", tags=['Madrid'])
        berlin = Resource(id=2, name="B", tags=['Berlin'])

        self.assertEqual(count_available_days(madrid, MONDAY, FRIDAY, MON_FRI, holidays), 4)
        self.assertEqual(count_available_days(berlin, MONDAY, FRIDAY, MON_FRI, holidays), 5)

    def test_custom_working_days(self):
        resource = Resource(id=1, name="Part time", custom_working_days=[1, 2, 3])

        weeks = calculate_weekly_allocation(MONDAY, FRIDAY, 24, MON_FRI, resource)

        self.assertEqual(weeks[0].working_days_in_week, 3)
        self.assertEqual(weeks[0].planned_hours, 24)

    def test_manual_distribution_is_kept(self):
        manual = [WeeklyAllocation(week_start=MONDAY, working_days_in_week=5, planned_hours=30)]
        assignment = ResourceAssignment(task_id=1, resource_id=1, planned_hours=30,
                                        weekly_distribution=manual, is_manual_distribution=True)

        result = recalculate_weekly_allocation(assignment, date(2024, 2, 5), date(2024, 2, 16), MON_FRI)

        self.assertEqual(result.weekly_distribution, manual)

    def test_automatic_distribution_follows_task(self):
        assignment = ResourceAssignment(task_id=1, resource_id=1, planned_hours=40)

        result = recalculate_weekly_allocation(assignment, date(2024, 2, 5), date(2024, 2, 9), MON_FRI)

        self.assertEqual(result.weekly_distribution[0].week_start, date(2024, 2, 5))
        self.assertEqual(assignment.weekly_distribution, [])


class TestCapacity(unittest.TestCase):
    def test_round_hours_half_up(self):
        self.assertEqual(round_hours(2.675), 2.68)
        self.assertEqual(round_hours(1.005), 1.01)

    def test_capacity_with_holiday(self):
        resource = Resource(id=1, name="Dev", max_hours_per_week=40, custom_working_days=[1, 2, 3, 4])
        holidays = [Holiday(date=MONDAY)]

        self.assertEqual(calculate_resource_capacity(resource, MONDAY, FRIDAY, MON_FRI), 40)
        self.assertEqual(calculate_resource_capacity(resource, MONDAY, FRIDAY, MON_FRI, holidays), 30)

    def test_classify_load(self):
        self.assertEqual(classify_load(0), LOAD_UNASSIGNED)
        self.assertEqual(classify_load(50), LOAD_LOW)
        self.assertEqual(classify_load(75), LOAD_MEDIUM)
        self.assertEqual(classify_load(100), LOAD_HIGH)
        self.assertEqual(classify_load(101), LOAD_OVER)
        self.assertEqual(classify_load(None), LOAD_OVER)

    def test_utilization_per_week(self):
        resource = Resource(id=1, name="Dev", max_hours_per_week=40)
        assignment = ResourceAssignment(
            task_id=1, resource_id=1, planned_hours=20,
            weekly_distribution=calculate_weekly_allocation(MONDAY, FRIDAY, 20, MON_FRI, resource),
        )

        result = calculate_resource_utilization([resource], [assignment], MONDAY, 2, MON_FRI)

        first, second = result[1]
        self.assertEqual(first.week_key, "2024-W02")
        self.assertEqual(first.allocated_hours, 20)
        self.assertEqual(first.utilization_percent, 50)
        self.assertEqual(first.load, LOAD_LOW)
        self.assertEqual(first.available_hours, 40)
        self.assertEqual(second.utilization_percent, 0)
        self.assertEqual(second.load, LOAD_UNASSIGNED)

    def test_zero_capacity_with_hours_is_over(self):
        resource = Resource(id=1, name="Nobody", max_hours_per_week=0)
        assignment = ResourceAssignment(
            task_id=1, resource_id=1, planned_hours=8,
            weekly_distribution=[WeeklyAllocation(week_start=MONDAY, working_days_in_week=1, planned_hours=8)],
        )

        week = calculate_resource_utilization([resource], [assignment], MONDAY, 1, MON_FRI)[1][0]

        self.assertIsNone(week.utilization_percent)
        self.assertEqual(week.load, LOAD_OVER)


if __name__ == '__main__':
    unittest.main()
