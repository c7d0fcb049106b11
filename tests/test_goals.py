from django.test import SimpleTestCase

from apps.goals.domain.entities import GoalLevel
from apps.goals.domain.services import GoalBook, ProgressPropagationService
from apps.goals.domain.services.propagation import compute_progress, round_half_up
from tests.helpers import NOW, goal


class ProgressMathTest(SimpleTestCase):
    def test_round_half_up(self):
        self.assertEqual(round_half_up(12.5), 13)
        self.assertEqual(round_half_up(12.49), 12)
        self.assertEqual(round_half_up(0.5), 1)

    def test_progress_is_rounded_percentage(self):
        self.assertEqual(compute_progress(1, 8), 13)
        self.assertEqual(compute_progress(1, 3), 33)
        self.assertEqual(compute_progress(2, 3), 67)
        self.assertEqual(compute_progress(3, 3), 100)

    def test_no_children_means_zero(self):
        self.assertEqual(compute_progress(0, 0), 0)


class GoalBookTest(SimpleTestCase):
    def setUp(self):
        self.book = GoalBook()
        self.weekly = self.book.add(goal(1, GoalLevel.WEEKLY))
        self.other_weekly = self.book.add(goal(2, GoalLevel.WEEKLY))
        self.daily = self.book.add(goal(3))

    def test_link_is_a_set_union(self):
        self.assertTrue(self.book.link(self.daily, self.weekly))
        self.assertFalse(self.book.link(self.daily, self.weekly))
        self.assertTrue(self.book.link(self.daily, self.other_weekly))
        self.assertEqual(self.daily.parent_ids, {1, 2})

    def test_link_must_go_exactly_one_level_up(self):
        monthly = self.book.add(goal(4, GoalLevel.MONTHLY))
        with self.assertRaises(ValueError):
            self.book.link(self.daily, monthly)

    def test_unlink_removes_only_the_named_parent(self):
        self.book.link(self.daily, self.weekly)
        self.book.link(self.daily, self.other_weekly)
        self.assertTrue(self.book.unlink(self.daily, 1))
        self.assertFalse(self.book.unlink(self.daily, 1))
        self.assertEqual(self.daily.parent_ids, {2})

    def test_children_include_archived_goals(self):
        self.book.link(self.daily, self.weekly)
        self.book.archive_goal(self.daily, NOW)
        self.assertIsNone(self.book.find(self.daily.id))
        self.assertEqual([c.id for c in self.book.children_of(self.weekly)], [3])

    def test_legacy_parent_counts_as_parent(self):
        legacy = self.book.add(goal(5, legacy_parent_id=2))
        self.assertEqual([c.id for c in self.book.children_of(self.other_weekly)], [5])
        self.assertEqual([p.id for p in self.book.parents_of(legacy)], [2])

    def test_habits_are_not_kept_in_the_book(self):
        with self.assertRaises(ValueError):
            self.book.add(goal(9, GoalLevel.HABIT))


class PropagationTest(SimpleTestCase):
    def setUp(self):
        self.book = GoalBook()
        self.service = ProgressPropagationService()
        self.monthly = self.book.add(goal(1, GoalLevel.MONTHLY))
        self.weekly = self.book.add(goal(2, GoalLevel.WEEKLY, parent_ids={1}))
        self.dailies = [self.book.add(goal(i, parent_ids={2})) for i in (3, 4, 5)]

    def test_partial_progress(self):
        self.dailies[0].completed = True
        self.service.recompute_all(self.book)
        self.assertEqual(self.weekly.progress, 33)
        self.assertFalse(self.weekly.completed)
        self.assertEqual(self.monthly.progress, 0)

    def test_cascade_reaches_the_top_in_one_pass(self):
        for d in self.dailies:
            d.completed = True
        completed = self.service.recompute_all(self.book)
        self.assertEqual([g.id for g in completed], [2, 1])
        self.assertTrue(self.monthly.completed)
        self.assertEqual(self.monthly.progress, 100)

    def test_recompute_is_idempotent(self):
        for d in self.dailies[:2]:
            d.completed = True
        self.service.recompute_all(self.book)
        first = [(g.id, g.progress, g.completed) for g in self.book.all_goals()]
        self.assertEqual(self.service.recompute_all(self.book), [])
        second = [(g.id, g.progress, g.completed) for g in self.book.all_goals()]
        self.assertEqual(first, second)

    def test_callback_runs_before_higher_levels(self):
        seen = []

        def on_completed(g):
            seen.append((g.id, self.monthly.progress))

        for d in self.dailies:
            d.completed = True
        self.service.recompute_all(self.book, on_completed=on_completed)
        self.assertEqual(seen[0], (2, 0))

    def test_uncompleting_a_child_keeps_parent_completed(self):
        for d in self.dailies:
            d.completed = True
        self.service.recompute_all(self.book)
        self.dailies[0].completed = False
        self.service.recompute_all(self.book)
        self.assertEqual(self.weekly.progress, 67)
        self.assertTrue(self.weekly.completed)

    def test_goal_without_children_stays_at_zero(self):
        lonely = self.book.add(goal(10, GoalLevel.WEEKLY))
        self.service.recompute_all(self.book)
        self.assertEqual(lonely.progress, 0)
        self.assertFalse(lonely.completed)

    def test_archived_children_still_count(self):
        for d in self.dailies:
            d.completed = True
        self.service.recompute_all(self.book)
        self.book.archive_goal(self.weekly, NOW, reason='weekly_rollover')
        self.service.recompute_all(self.book)
        self.assertEqual(self.monthly.progress, 100)
