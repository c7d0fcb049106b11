from datetime import date, timedelta

from django.test import SimpleTestCase

from apps.goals.domain.entities import GoalLevel
from apps.goals.domain.services import GoalBook
from apps.tasks.domain.entities import (
    BiweeklyRule, MonthlyDateRule, MonthlyWeekdayRule, RecurringTaskDefinition, WeeklyRule,
)
from apps.tasks.domain.services import RecurrenceService, fires_on
from tests.helpers import NOW, goal

MONDAY = date(2024, 3, 4)


class FiresOnTest(SimpleTestCase):
    def test_weekly_days(self):
        rule = WeeklyRule(days={0, 2})
        self.assertTrue(fires_on(rule, MONDAY))
        self.assertFalse(fires_on(rule, MONDAY + timedelta(days=1)))
        self.assertTrue(fires_on(rule, MONDAY + timedelta(days=2)))

    def test_monthly_date(self):
        rule = MonthlyDateRule(day=15)
        self.assertTrue(fires_on(rule, date(2024, 3, 15)))
        self.assertTrue(fires_on(rule, date(2024, 2, 15)))
        self.assertFalse(fires_on(rule, date(2024, 3, 16)))

    def test_second_tuesday(self):
        rule = MonthlyWeekdayRule(week=2, day=1)
        self.assertFalse(fires_on(rule, date(2024, 3, 5)))
        self.assertTrue(fires_on(rule, date(2024, 3, 12)))
        self.assertFalse(fires_on(rule, date(2024, 3, 19)))

    def test_last_friday(self):
        rule = MonthlyWeekdayRule(week=-1, day=4)
        self.assertFalse(fires_on(rule, date(2024, 3, 22)))
        self.assertTrue(fires_on(rule, date(2024, 3, 29)))
        self.assertTrue(fires_on(rule, date(2024, 2, 23)))

    def test_biweekly_uses_its_own_last_fired(self):
        rule = BiweeklyRule(day=0)
        self.assertTrue(fires_on(rule, MONDAY))
        rule.last_fired = MONDAY
        self.assertFalse(fires_on(rule, MONDAY + timedelta(days=7)))
        self.assertTrue(fires_on(rule, MONDAY + timedelta(days=14)))
        self.assertFalse(fires_on(rule, MONDAY + timedelta(days=15)))

    def test_invalid_rules_are_rejected(self):
        with self.assertRaises(ValueError):
            MonthlyDateRule(day=31)
        with self.assertRaises(ValueError):
            MonthlyWeekdayRule(week=5, day=0)
        with self.assertRaises(ValueError):
            WeeklyRule(days=set())
        with self.assertRaises(ValueError):
            BiweeklyRule(day=7)


class RecurrenceServiceTest(SimpleTestCase):
    def setUp(self):
        self.book = GoalBook()
        self.weekly = self.book.add(goal(1, GoalLevel.WEEKLY))
        self.next_id = 100
        self.definition = RecurringTaskDefinition(
            id=50, title="Trening", rule=WeeklyRule(days={0}),
            parent_ids={1, 999}, checklist_template=["Rozgrzewka", "Bieg"],
        )
        self.service = RecurrenceService(self.book, [self.definition], self._allocate)

    def _allocate(self):
        self.next_id += 1
        return self.next_id

    def test_generates_task_with_parents_and_checklist(self):
        [task] = self.service.generate_daily_instances(MONDAY, NOW)
        self.assertEqual(task.level, GoalLevel.DAILY)
        self.assertEqual(task.scheduled_for, MONDAY)
        self.assertEqual(task.origin_id, 50)
        self.assertEqual(task.parent_ids, {1})
        self.assertEqual([i.text for i in task.checklist], ["Rozgrzewka", "Bieg"])
        self.assertFalse(any(i.completed for i in task.checklist))
        self.assertEqual(self.definition.last_generated, MONDAY)

    def test_second_run_same_day_generates_nothing(self):
        self.service.generate_daily_instances(MONDAY, NOW)
        self.assertEqual(self.service.generate_daily_instances(MONDAY, NOW), [])
        self.assertEqual(len(self.book.goals(GoalLevel.DAILY)), 1)

    def test_restart_before_stamp_does_not_duplicate(self):
        self.service.generate_daily_instances(MONDAY, NOW)
        # Zadanie zapisane, znacznik definicji nie
        self.definition.last_generated = None
        self.assertEqual(self.service.generate_daily_instances(MONDAY, NOW), [])
        self.assertEqual(len(self.book.goals(GoalLevel.DAILY)), 1)
        self.assertEqual(self.definition.last_generated, MONDAY)

    def test_archived_instance_also_blocks_duplicate(self):
        [task] = self.service.generate_daily_instances(MONDAY, NOW)
        self.book.archive_goal(task, NOW)
        self.definition.last_generated = None
        self.assertEqual(self.service.generate_daily_instances(MONDAY, NOW), [])

    def test_rule_not_firing(self):
        self.assertEqual(self.service.generate_daily_instances(MONDAY + timedelta(days=1), NOW), [])
        self.assertIsNone(self.definition.last_generated)

    def test_inactive_definition_is_skipped(self):
        self.definition.active = False
        self.assertEqual(self.service.generate_daily_instances(MONDAY, NOW), [])

    def test_biweekly_stamps_rule(self):
        self.definition.rule = BiweeklyRule(day=0)
        self.service.generate_daily_instances(MONDAY, NOW)
        self.assertEqual(self.definition.rule.last_fired, MONDAY)
        self.assertEqual(self.service.generate_daily_instances(MONDAY + timedelta(days=7), NOW), [])
        self.assertEqual(len(self.service.generate_daily_instances(MONDAY + timedelta(days=14), NOW)), 1)
