import json
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase

from apps.core.adapters.clocks import FixedClock
from apps.core.adapters.memory_state_store import InMemoryStateStore
from apps.core.adapters.notifiers import RecordingNotifier
from apps.core.adapters.orm_state_store import DjangoStateStore
from apps.core.application.factory import build_game_service
from apps.core.application.persistence import DebouncedSnapshotWriter, load_or_recover
from apps.core.conf import is_backup_key, state_key
from apps.core.domain.events import EventKind
from apps.core.domain.snapshot import SnapshotCodec, SnapshotDecodeError
from apps.core.domain.state import GameState
from apps.core.models import StateEntry
from apps.core.ports.state_store import StoreQuotaExceeded
from apps.goals.domain.entities import GoalLevel
from apps.rewards.domain.effects import Timed, UntilConsumed
from apps.tasks.domain.entities import MonthlyWeekdayRule
from apps.core.application.game_service import CreateRecurringInput
from tests.helpers import NOW, STATE_KEY, create, make_service


class SnapshotCodecTest(SimpleTestCase):
    def setUp(self):
        self.codec = SnapshotCodec()

    def test_full_state_survives_a_save(self):
        service = make_service()
        weekly = create(service, GoalLevel.WEEKLY, "Tydzień", priority=2)
        daily = create(service, GoalLevel.DAILY, parents=[weekly.id])
        service.add_checklist_item(GoalLevel.DAILY, daily.id, "Krok")
        service.add_recurring_definition(CreateRecurringInput(
            title="Raport", rule=MonthlyWeekdayRule(week=-1, day=4), parent_ids=[weekly.id],
        ))
        service.cast_effect('xp_boost')
        service.cast_effect('quest_doubler')

        restored = self.codec.loads(self.codec.dumps(service.state), NOW)

        goal = restored.book.get(GoalLevel.DAILY, daily.id)
        self.assertEqual(goal.parent_ids, {weekly.id})
        self.assertEqual(goal.checklist[0].text, "Krok")
        self.assertEqual(restored.book.get(GoalLevel.WEEKLY, weekly.id).priority, 2)
        self.assertEqual(restored.recurring[0].rule, MonthlyWeekdayRule(week=-1, day=4))
        self.assertEqual([type(e.expiry) for e in restored.effects.spells], [Timed, UntilConsumed])
        self.assertEqual(restored.spell_charges, {})
        self.assertEqual(restored.next_id, service.state.next_id)

    def test_empty_snapshot_gets_defaults(self):
        state = self.codec.decode({}, NOW)
        self.assertEqual(state.progress.level, 1)
        self.assertEqual(state.spell_charges, {'xp_boost': 1, 'quest_doubler': 1})
        self.assertEqual(list(state.book.all_goals()), [])
        self.assertEqual(state.next_id, 1)

    def test_legacy_single_parent_is_folded_into_set(self):
        data = {'goals': {
            'weekly': [{'id': 7, 'title': "Stary"}],
            'daily': [{'id': 8, 'title': "Zadanie", 'parentId': 7, 'completed': True}],
        }}
        state = self.codec.decode(data, NOW)
        daily = state.book.get(GoalLevel.DAILY, 8)
        self.assertEqual(daily.parent_ids, {7})
        self.assertEqual(daily.legacy_parent_id, 7)
        # Stare ukończone cele nie płacą drugi raz
        self.assertTrue(daily.reward_claimed)
        self.assertEqual(state.next_id, 9)

    def test_legacy_numeric_expiry(self):
        data = {'spells': [
            {'effect_type': 'quest_doubler', 'expiry': -1, 'multiplier': 2},
            {'effect_type': 'xp_boost', 'expiry': NOW.timestamp() * 1000, 'multiplier': 1.5},
        ]}
        state = self.codec.decode(data, NOW)
        doubler, boost = state.effects.spells
        self.assertIsInstance(doubler.expiry, UntilConsumed)
        self.assertEqual(boost.expiry, Timed(NOW))

    def test_timestamp_without_zone_is_read_as_utc(self):
        data = {'spells': [
            {'effect_type': 'xp_boost', 'expiry': {'kind': 'timed', 'expires_at': '2024-03-04T10:00:00'}},
        ]}
        state = self.codec.decode(data, NOW)
        [boost] = state.effects.spells
        self.assertEqual(boost.expiry, Timed(NOW + timedelta(hours=1)))
        self.assertIsNotNone(boost.expiry.expires_at.tzinfo)

        service = make_service(state)
        quest = create(service, GoalLevel.SIDE_QUEST)
        result = service.toggle_completion(GoalLevel.SIDE_QUEST, quest.id)
        self.assertTrue(result.ok)
        self.assertGreater(result.data['reward']['xp'], 75)

    def test_focus_tick_after_loading_zoneless_timestamp(self):
        data = {'focus': {
            'state': 'running', 'planned_seconds': 1500, 'remaining_seconds': 30,
            'last_tick_at': '2024-03-04T08:59:00',
        }}
        service = make_service(self.codec.decode(data, NOW))

        service.tick()

        [event] = service.notifier.of_kind(EventKind.FOCUS_COMPLETE)
        self.assertEqual(event.payload['minutes'], 25)
        self.assertEqual(service.state.progress.total_xp, 50)

    def test_bad_entries_are_skipped(self):
        data = {
            'goals': {'daily': [{'title': "bez id"}, "śmieci", {'id': 3, 'title': "OK"}]},
            'recurring': [{'id': 4, 'title': "Zła reguła", 'rule': {'type': 'monthly_date', 'day': 31}}],
            'progress': {'level': "dużo", 'gold': -5},
        }
        state = self.codec.decode(data, NOW)
        self.assertEqual([g.id for g in state.book.goals(GoalLevel.DAILY)], [3])
        self.assertEqual(state.recurring, [])
        self.assertEqual((state.progress.level, state.progress.gold), (1, 0))

    def test_invalid_json_raises(self):
        with self.assertRaises(SnapshotDecodeError):
            self.codec.loads("{nie json", NOW)
        with self.assertRaises(SnapshotDecodeError):
            self.codec.loads("[]", NOW)


class RecoveryTest(SimpleTestCase):
    def test_missing_snapshot_starts_new_game(self):
        state = load_or_recover(InMemoryStateStore(), STATE_KEY, SnapshotCodec(), NOW)
        self.assertEqual(state.spell_charges, {'xp_boost': 1, 'quest_doubler': 1})

    def test_corrupt_snapshot_is_preserved_under_backup_key(self):
        store = InMemoryStateStore()
        store.data[STATE_KEY] = "{zepsute"

        state = load_or_recover(store, STATE_KEY, SnapshotCodec(), NOW)

        self.assertEqual(state.progress.total_xp, 0)
        backup = f"{STATE_KEY}:backup:20240304T090000"
        self.assertEqual(store.data[backup], "{zepsute")
        self.assertTrue(is_backup_key(backup))
        self.assertEqual(store.data[STATE_KEY], "{zepsute")


class DebouncedWriterTest(SimpleTestCase):
    def setUp(self):
        self.store = InMemoryStateStore()
        self.notifier = RecordingNotifier()
        self.writer = DebouncedSnapshotWriter(self.store, STATE_KEY, SnapshotCodec(), self.notifier, 0.5)
        self.state = GameState.new_game()

    def test_burst_of_changes_is_one_write(self):
        for ms in (0, 100, 200, 300):
            self.writer.mark_dirty(NOW + timedelta(milliseconds=ms))
            self.writer.flush_if_due(self.state, NOW + timedelta(milliseconds=ms))
        self.assertEqual(self.store.writes, 0)

        self.assertFalse(self.writer.flush_if_due(self.state, NOW + timedelta(milliseconds=700)))
        self.assertTrue(self.writer.flush_if_due(self.state, NOW + timedelta(milliseconds=800)))
        self.assertEqual(self.store.writes, 1)
        self.assertEqual(len(self.notifier.refreshes), 1)
        self.assertFalse(self.writer.flush_if_due(self.state, NOW + timedelta(seconds=5)))

    def test_failed_write_keeps_state_dirty(self):
        self.store.max_bytes = 10
        self.writer.mark_dirty(NOW)

        self.assertFalse(self.writer.flush(self.state))

        self.assertTrue(self.writer.dirty)
        self.assertEqual(self.store.data, {})
        [notice] = self.notifier.of_kind(EventKind.NOTICE)
        self.assertEqual(notice.payload['reason'], 'save_failed')
        self.assertEqual(self.notifier.refreshes, [])

        self.store.max_bytes = None
        self.assertTrue(self.writer.flush(self.state))
        self.assertFalse(self.writer.dirty)

    def test_service_changes_survive_a_failed_save(self):
        service = make_service(max_bytes=10)
        daily = create(service, GoalLevel.DAILY)
        self.assertFalse(service.flush())
        self.assertIsNotNone(service.state.book.find(daily.id))
        self.assertEqual(service.writer.last_error[:8], "Snapshot")


class DjangoStateStoreTest(TestCase):
    def test_write_read_and_overwrite(self):
        store = DjangoStateStore()
        self.assertIsNone(store.read('a'))
        store.write('a', '{"x": 1}')
        store.write('a', '{"x": 2}')
        self.assertEqual(json.loads(store.read('a')), {'x': 2})
        self.assertEqual(StateEntry.objects.count(), 1)

    def test_keys_by_prefix(self):
        store = DjangoStateStore()
        for key in ('life_quest:state:2', 'life_quest:state:1', 'other'):
            store.write(key, '{}')
        self.assertEqual(store.keys('life_quest:state'), ['life_quest:state:1', 'life_quest:state:2'])

    def test_quota(self):
        store = DjangoStateStore(max_bytes=5)
        with self.assertRaises(StoreQuotaExceeded):
            store.write('a', '{"too": "big"}')
        self.assertFalse(StateEntry.objects.exists())


class FactoryTest(TestCase):
    def test_state_is_reloaded_from_database(self):
        clock = FixedClock(NOW)
        service = build_game_service(42, clock=clock)
        weekly = create(service, GoalLevel.WEEKLY, "Z bazy")
        self.assertTrue(service.flush())

        reloaded = build_game_service(42, clock=clock)
        self.assertEqual(reloaded.state.book.get(GoalLevel.WEEKLY, weekly.id).title, "Z bazy")
        self.assertTrue(StateEntry.objects.filter(key=state_key(42)).exists())


class GameViewsTest(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user('gracz', password='sekret')
        self.client.force_login(self.user)

    def test_login_required(self):
        self.client.logout()
        self.assertEqual(self.client.get('/game/status/').status_code, 302)

    def test_status(self):
        response = self.client.get('/game/status/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['level'], 1)

    def test_actions_return_ok_or_refusal(self):
        self.assertEqual(self.client.post('/game/today/').status_code, 200)

        response = self.client.post('/game/spells/xp_boost/cast/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['ok'])

        response = self.client.post('/game/spells/xp_boost/cast/')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['reason'], 'no_charges')

        response = self.client.post('/game/goals/daily/5/toggle/')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['reason'], 'unknown_goal')

        response = self.client.post('/game/chests/bronze/')
        self.assertEqual(response.json()['reason'], 'insufficient_gold')

    def test_link_needs_parent(self):
        response = self.client.post('/game/goals/daily/1/links/add/', {'parent_id': 'x'})
        self.assertEqual(response.json()['reason'], 'invalid_parent')

    def test_get_is_not_allowed_for_actions(self):
        self.assertEqual(self.client.get('/game/today/').status_code, 405)
