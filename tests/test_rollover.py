from datetime import timedelta

from django.test import SimpleTestCase

from apps.core.domain.events import EventKind
from apps.goals.domain.entities import GoalLevel
from apps.habits.domain.entities import HabitEntity
from apps.rewards.domain.companions import Companion, CompanionBonus
from apps.tasks.domain.entities import WeeklyRule
from apps.core.application.game_service import CreateRecurringInput
from tests.helpers import NOW, create, give_effect, make_service

TODAY = NOW.date()
YESTERDAY = TODAY - timedelta(days=1)


class HabitRolloverTest(SimpleTestCase):
    def setUp(self):
        self.service = make_service()
        self.state = self.service.state
        self.state.progress.last_rollover_date = TODAY - timedelta(days=2)
        self.state.progress.last_week_key = '2024-W10'
        # Ostatnio zaliczony przedwczoraj - seria przerwana
        self.habits = [
            HabitEntity(id=i, title=f"Nawyk {i}", created_at=NOW, current_streak=5, longest_streak=5,
                        completed_today=True, last_completed_date=TODAY - timedelta(days=2),
                        streak_alive_through=TODAY - timedelta(days=2))
            for i in (1, 2)
        ]
        self.state.habits.extend(self.habits)

    def test_broken_streak_resets_without_protection(self):
        report = self.service.rollover.run(TODAY, NOW)
        self.assertTrue(report.new_day)
        self.assertEqual(report.reset_habit_ids, [1, 2])
        self.assertEqual([h.current_streak for h in self.habits], [0, 0])
        self.assertFalse(any(h.completed_today for h in self.habits))

    def test_time_freeze_wins_over_shield_and_is_consumed(self):
        give_effect(self.state, 'time_freeze')
        give_effect(self.state, 'streak_shield')

        report = self.service.rollover.run(TODAY, NOW)

        self.assertTrue(report.time_freeze_used)
        self.assertFalse(report.shield_used)
        self.assertEqual([h.current_streak for h in self.habits], [5, 5])
        self.assertEqual([h.streak_alive_through for h in self.habits], [YESTERDAY, YESTERDAY])
        self.assertFalse(self.state.effects.has_pending('time_freeze'))
        self.assertIsNotNone(self.state.effects.find_live('streak_shield', NOW))

    def test_shield_protects_and_stays(self):
        give_effect(self.state, 'streak_shield')
        report = self.service.rollover.run(TODAY, NOW)
        self.assertTrue(report.shield_used)
        self.assertEqual(report.protected_habit_ids, [1, 2])
        self.assertIsNotNone(self.state.effects.find_live('streak_shield', NOW))

    def test_companion_quota_protects_one_habit_at_a_time(self):
        turtle = Companion(id=10, companion_type='turtle', rarity='epic',
                           bonus_type=CompanionBonus.STREAK_PROTECTION, bonus_amount=1)
        self.state.roster.companions.append(turtle)
        self.state.roster.active_id = 10

        report = self.service.rollover.run(TODAY, NOW)

        self.assertEqual(report.protected_habit_ids, [1])
        self.assertEqual(report.reset_habit_ids, [2])
        self.assertEqual(turtle.remaining_protections(TODAY), 0)
        # Nowy tydzień ISO - limit wraca
        self.assertEqual(turtle.remaining_protections(TODAY + timedelta(days=7)), 1)

    def test_protected_streak_continues_today(self):
        give_effect(self.state, 'streak_shield')
        self.service.rollover.run(TODAY, NOW)
        self.service.toggle_completion(GoalLevel.HABIT, 1)
        self.assertEqual(self.habits[0].current_streak, 6)

    def test_rollover_runs_once_per_day(self):
        self.service.rollover.run(TODAY, NOW)
        report = self.service.rollover.run(TODAY, NOW)
        self.assertFalse(report.new_day)

    def test_login_streak(self):
        self.state.progress.last_login_date = YESTERDAY
        self.state.progress.login_streak = 3
        self.service.rollover.run(TODAY, NOW)
        self.assertEqual(self.state.progress.login_streak, 4)

        self.service.rollover.run(TODAY + timedelta(days=3), NOW)
        self.assertEqual(self.state.progress.login_streak, 1)


class WeeklyRolloverTest(SimpleTestCase):
    def test_completed_weekly_goals_are_archived_on_new_week(self):
        service = make_service()
        monthly = create(service, GoalLevel.MONTHLY, "Miesiąc")
        done = create(service, GoalLevel.WEEKLY, "Zrobiony", parents=[monthly.id])
        open_goal = create(service, GoalLevel.WEEKLY, "Otwarty", parents=[monthly.id])
        service.toggle_completion(GoalLevel.WEEKLY, done.id)
        service.state.progress.last_week_key = '2024-W09'

        service.materialize_today()

        book = service.state.book
        self.assertIsNone(book.find(done.id))
        self.assertEqual(book.archive[-1].reason, 'weekly_rollover')
        self.assertIsNotNone(book.find(open_goal.id))
        self.assertEqual(monthly.progress, 50)
        self.assertEqual(service.state.progress.last_week_key, '2024-W10')

    def test_first_run_only_records_the_week(self):
        service = make_service()
        weekly = create(service, GoalLevel.WEEKLY)
        service.toggle_completion(GoalLevel.WEEKLY, weekly.id)
        service.materialize_today()
        self.assertIsNotNone(service.state.book.find(weekly.id))


class MaterializeTodayTest(SimpleTestCase):
    def test_rollover_then_generation(self):
        service = make_service()
        weekly = create(service, GoalLevel.WEEKLY, "Tydzień")
        service.add_recurring_definition(CreateRecurringInput(
            title="Pranie", rule=WeeklyRule(days={TODAY.weekday()}), parent_ids=[weekly.id],
        ))

        result = service.materialize_today()

        self.assertTrue(result.ok)
        self.assertTrue(result.data['rollover']['new_day'])
        [task_id] = result.data['generated']
        self.assertEqual(service.state.book.find(task_id).parent_ids, {weekly.id})
        self.assertEqual(weekly.progress, 0)
        self.assertIn(EventKind.ROLLOVER, service.notifier.kinds())

        again = service.materialize_today()
        self.assertEqual(again.data['generated'], [])
        self.assertEqual(len(service.state.book.goals(GoalLevel.DAILY)), 1)

    def test_day_after_brings_new_instance(self):
        service = make_service()
        service.add_recurring_definition(CreateRecurringInput(title="Czytanie", rule=WeeklyRule(days=range(7))))
        service.materialize_today()
        service.clock.advance(days=1)
        result = service.materialize_today()
        self.assertEqual(len(result.data['generated']), 1)
        self.assertEqual(len(service.state.book.goals(GoalLevel.DAILY)), 2)
