# apps/core/domain/snapshot.py
"""
Kodek snapshotu stanu gry (JSON).

Odczyt jest pobłażliwy: każde pole ma wartość domyślną, więc starsze
snapshoty ładują się bez migracji. Jedyny jawny krok "migracji" to
zamiana starego pojedynczego rodzica (parentId / parent_id) na zbiór.
"""
import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import pytz

from apps.core.domain.state import GameState
from apps.goals.domain.entities import ArchivedGoal, ChecklistItem, GoalEntity, GoalLevel
from apps.goals.domain.services.graph import GoalBook
from apps.habits.domain.entities import HabitEntity
from apps.rewards.domain.companions import Companion, CompanionBonus, CompanionRoster
from apps.rewards.domain.effects import ActiveEffect, Instant, Timed, UntilConsumed
from apps.rewards.domain.focus import FocusSession, FocusState
from apps.rewards.domain.progress import PlayerProgress
from apps.rewards.domain.services.effect_stack import EffectStack
from apps.tasks.domain.entities import (
    BiweeklyRule, MonthlyDateRule, MonthlyWeekdayRule, RecurringTaskDefinition, WeeklyRule,
)

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
GOAL_COLLECTIONS = [level for level in GoalLevel if level != GoalLevel.HABIT]


class SnapshotDecodeError(ValueError):
    """Snapshot nie jest w ogóle czytelny (zły JSON albo nie-obiekt)."""


# --- Pomocnicze parsowanie z wartościami domyślnymi ---

def _date(value, default=None) -> Optional[date]:
    if not value:
        return default
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return default


def _datetime(value, default=None) -> Optional[datetime]:
    if not value:
        return default
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return default
    # Znaczniki bez strefy traktujemy jako UTC
    if parsed.tzinfo is None:
        parsed = pytz.UTC.localize(parsed)
    return parsed


def _int(value, default=0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value, default=0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _opt_int(value) -> Optional[int]:
    return None if value is None else _int(value, None)


def _list(value) -> list:
    return value if isinstance(value, list) else []


def _dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _decode_each(items, decoder: Callable[[dict], Any], what: str) -> list:
    decoded = []
    for raw in _list(items):
        if not isinstance(raw, dict):
            logger.warning("Skipping malformed %s entry: %r", what, raw)
            continue
        try:
            decoded.append(decoder(raw))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping unreadable %s entry (%s)", what, exc)
    return decoded


class SnapshotCodec:

    # --- Zapis ---

    def dumps(self, state: GameState) -> str:
        return json.dumps(self.encode(state), ensure_ascii=False, separators=(",", ":"))

    def encode(self, state: GameState) -> Dict[str, Any]:
        book = state.book
        return {
            'version': SNAPSHOT_VERSION,
            'next_id': state.next_id,
            'goals': {level.value: [self._encode_goal(g) for g in book.goals(level)] for level in GOAL_COLLECTIONS},
            'archive': [
                {'goal': self._encode_goal(a.goal), 'archived_at': _iso(a.archived_at), 'reason': a.reason}
                for a in book.archive
            ],
            'habits': [self._encode_habit(h) for h in state.habits],
            'recurring': [self._encode_definition(d) for d in state.recurring],
            'spells': [self._encode_effect(e) for e in state.effects.spells],
            'enchantments': [self._encode_effect(e) for e in state.effects.enchantments],
            'spell_charges': dict(state.spell_charges),
            'companions': [self._encode_companion(c) for c in state.roster.companions],
            'active_companion_id': state.roster.active_id,
            'progress': self._encode_progress(state.progress),
            'focus': {
                'planned_seconds': state.focus.planned_seconds,
                'remaining_seconds': state.focus.remaining_seconds,
                'state': state.focus.state.value,
                'last_tick_at': _iso(state.focus.last_tick_at),
            },
        }

    @staticmethod
    def _encode_goal(goal: GoalEntity) -> Dict[str, Any]:
        return {
            'id': goal.id,
            'level': goal.level.value,
            'title': goal.title,
            'description': goal.description,
            'created_at': _iso(goal.created_at),
            'completed': goal.completed,
            'progress': goal.progress,
            'priority': goal.priority,
            'checklist': [{'id': i.id, 'text': i.text, 'completed': i.completed} for i in goal.checklist],
            'parent_ids': sorted(goal.parent_ids),
            'legacy_parent_id': goal.legacy_parent_id,
            'scheduled_for': _iso(goal.scheduled_for),
            'origin_id': goal.origin_id,
            'reward_claimed': goal.reward_claimed,
            'is_boss': goal.is_boss,
            'boss_max_hp': goal.boss_max_hp,
            'current_hp': goal.current_hp,
            'total_damage_dealt': goal.total_damage_dealt,
            'boss_defeated': goal.boss_defeated,
        }

    @staticmethod
    def _encode_habit(habit: HabitEntity) -> Dict[str, Any]:
        return {
            'id': habit.id,
            'title': habit.title,
            'description': habit.description,
            'created_at': _iso(habit.created_at),
            'completed_today': habit.completed_today,
            'current_streak': habit.current_streak,
            'longest_streak': habit.longest_streak,
            'last_completed_date': _iso(habit.last_completed_date),
            'streak_alive_through': _iso(habit.streak_alive_through),
            'reward_claimed_on': _iso(habit.reward_claimed_on),
        }

    @staticmethod
    def _encode_rule(rule) -> Dict[str, Any]:
        if isinstance(rule, WeeklyRule):
            return {'type': 'weekly', 'days': sorted(rule.days)}
        if isinstance(rule, BiweeklyRule):
            return {'type': 'biweekly', 'day': rule.day, 'last_fired': _iso(rule.last_fired)}
        if isinstance(rule, MonthlyDateRule):
            return {'type': 'monthly_date', 'day': rule.day}
        if isinstance(rule, MonthlyWeekdayRule):
            return {'type': 'monthly_weekday', 'week': rule.week, 'day': rule.day}
        raise TypeError(f"Unsupported recurrence rule: {rule!r}")

    def _encode_definition(self, definition: RecurringTaskDefinition) -> Dict[str, Any]:
        return {
            'id': definition.id,
            'title': definition.title,
            'description': definition.description,
            'active': definition.active,
            'rule': self._encode_rule(definition.rule),
            'last_generated': _iso(definition.last_generated),
            'parent_ids': sorted(definition.parent_ids),
            'checklist_template': list(definition.checklist_template),
        }

    @staticmethod
    def _encode_effect(effect: ActiveEffect) -> Dict[str, Any]:
        if isinstance(effect.expiry, Timed):
            expiry = {'kind': 'timed', 'expires_at': _iso(effect.expiry.expires_at)}
        elif isinstance(effect.expiry, UntilConsumed):
            expiry = {'kind': 'until_consumed'}
        else:
            expiry = {'kind': 'instant'}
        return {'effect_type': effect.effect_type, 'multiplier': effect.multiplier, 'expiry': expiry}

    @staticmethod
    def _encode_companion(companion: Companion) -> Dict[str, Any]:
        return {
            'id': companion.id,
            'companion_type': companion.companion_type,
            'rarity': companion.rarity,
            'bonus_type': companion.bonus_type.value,
            'bonus_amount': companion.bonus_amount,
            'protections_used': companion.protections_used,
            'usage_week': companion.usage_week,
        }

    @staticmethod
    def _encode_progress(progress: PlayerProgress) -> Dict[str, Any]:
        return {
            'total_xp': progress.total_xp,
            'level': progress.level,
            'gold': progress.gold,
            'crystals': progress.crystals,
            'chests_opened': progress.chests_opened,
            'bosses_defeated': progress.bosses_defeated,
            'login_streak': progress.login_streak,
            'last_login_date': _iso(progress.last_login_date),
            'last_rollover_date': _iso(progress.last_rollover_date),
            'last_week_key': progress.last_week_key,
        }

    # --- Odczyt ---

    def loads(self, raw: str, now: datetime) -> GameState:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise SnapshotDecodeError(f"Snapshot is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise SnapshotDecodeError("Snapshot root must be an object")
        return self.decode(data, now)

    def decode(self, data: Dict[str, Any], now: datetime) -> GameState:
        state = GameState()

        book = GoalBook()
        goals = _dict(data.get('goals'))
        for level in GOAL_COLLECTIONS:
            for goal in _decode_each(goals.get(level.value), lambda raw: self._decode_goal(raw, level, now), 'goal'):
                book.add(goal)
        for entry in _decode_each(data.get('archive'), lambda raw: self._decode_archived(raw, now), 'archive'):
            book.archive.append(entry)
        state.book = book

        state.habits = _decode_each(data.get('habits'), lambda raw: self._decode_habit(raw, now), 'habit')
        state.recurring = _decode_each(data.get('recurring'), self._decode_definition, 'recurring')
        state.effects = EffectStack(
            spells=_decode_each(data.get('spells'), self._decode_effect, 'spell'),
            enchantments=_decode_each(data.get('enchantments'), self._decode_effect, 'enchantment'),
        )
        if 'spell_charges' in data:
            state.spell_charges = {
                str(k): _int(v) for k, v in _dict(data.get('spell_charges')).items() if _int(v) > 0
            }
        else:
            state.spell_charges = GameState.new_game().spell_charges

        state.roster = CompanionRoster(
            companions=_decode_each(data.get('companions'), self._decode_companion, 'companion'),
            active_id=_opt_int(data.get('active_companion_id')),
        )
        state.progress = self._decode_progress(_dict(data.get('progress')))
        state.focus = self._decode_focus(_dict(data.get('focus')))

        # Licznik ID nigdy poniżej istniejących identyfikatorów
        state.next_id = max(_int(data.get('next_id'), 1), self._max_id(state) + 1)
        return state

    @staticmethod
    def _normalize_parents(raw: Dict[str, Any]):
        parent_ids = {_int(p) for p in _list(raw.get('parent_ids', raw.get('parentIds')))}
        legacy = raw.get('legacy_parent_id', raw.get('parentId', raw.get('parent_id')))
        legacy = _opt_int(legacy)
        if legacy is not None:
            parent_ids.add(legacy)
        return parent_ids, legacy

    def _decode_goal(self, raw: Dict[str, Any], level: GoalLevel, now: datetime) -> GoalEntity:
        parent_ids, legacy = self._normalize_parents(raw)
        return GoalEntity(
            id=int(raw['id']),
            level=level,
            title=str(raw.get('title', '')),
            description=str(raw.get('description') or ''),
            created_at=_datetime(raw.get('created_at'), now),
            completed=bool(raw.get('completed', False)),
            progress=min(100, max(0, _int(raw.get('progress')))),
            priority=_opt_int(raw.get('priority')),
            checklist=_decode_each(raw.get('checklist'), lambda i: ChecklistItem(
                id=int(i['id']), text=str(i.get('text', '')), completed=bool(i.get('completed', False)),
            ), 'checklist'),
            parent_ids=parent_ids,
            legacy_parent_id=legacy,
            scheduled_for=_date(raw.get('scheduled_for')),
            origin_id=_opt_int(raw.get('origin_id')),
            reward_claimed=bool(raw.get('reward_claimed', raw.get('completed', False))),
            is_boss=bool(raw.get('is_boss', False)),
            boss_max_hp=_int(raw.get('boss_max_hp')),
            current_hp=_int(raw.get('current_hp')),
            total_damage_dealt=_int(raw.get('total_damage_dealt')),
            boss_defeated=bool(raw.get('boss_defeated', False)),
        )

    def _decode_archived(self, raw: Dict[str, Any], now: datetime) -> ArchivedGoal:
        goal_raw = _dict(raw.get('goal'))
        level = GoalLevel(goal_raw.get('level', GoalLevel.DAILY.value))
        return ArchivedGoal(
            goal=self._decode_goal(goal_raw, level, now),
            archived_at=_datetime(raw.get('archived_at'), now),
            reason=str(raw.get('reason') or 'manual'),
        )

    @staticmethod
    def _decode_habit(raw: Dict[str, Any], now: datetime) -> HabitEntity:
        last_completed = _date(raw.get('last_completed_date'))
        return HabitEntity(
            id=int(raw['id']),
            title=str(raw.get('title', '')),
            description=str(raw.get('description') or ''),
            created_at=_datetime(raw.get('created_at'), now),
            completed_today=bool(raw.get('completed_today', False)),
            current_streak=_int(raw.get('current_streak')),
            longest_streak=_int(raw.get('longest_streak')),
            last_completed_date=last_completed,
            streak_alive_through=_date(raw.get('streak_alive_through'), last_completed),
            reward_claimed_on=_date(raw.get('reward_claimed_on')),
        )

    @staticmethod
    def _decode_rule(raw: Dict[str, Any]):
        kind = raw.get('type')
        if kind == 'weekly':
            return WeeklyRule(days=frozenset(_int(d) for d in _list(raw.get('days'))))
        if kind == 'biweekly':
            return BiweeklyRule(day=_int(raw.get('day')), last_fired=_date(raw.get('last_fired')))
        if kind == 'monthly_date':
            return MonthlyDateRule(day=_int(raw.get('day')))
        if kind == 'monthly_weekday':
            return MonthlyWeekdayRule(week=_int(raw.get('week')), day=_int(raw.get('day')))
        raise ValueError(f"Unknown recurrence rule type: {kind!r}")

    def _decode_definition(self, raw: Dict[str, Any]) -> RecurringTaskDefinition:
        return RecurringTaskDefinition(
            id=int(raw['id']),
            title=str(raw.get('title', '')),
            description=str(raw.get('description') or ''),
            active=bool(raw.get('active', True)),
            rule=self._decode_rule(_dict(raw.get('rule'))),
            last_generated=_date(raw.get('last_generated')),
            parent_ids={_int(p) for p in _list(raw.get('parent_ids'))},
            checklist_template=[str(t) for t in _list(raw.get('checklist_template'))],
        )

    @staticmethod
    def _decode_effect(raw: Dict[str, Any]) -> ActiveEffect:
        expiry_raw = raw.get('expiry')
        # Stary format: znacznik w ms, -1 = "do zużycia"
        if isinstance(expiry_raw, (int, float)) and not isinstance(expiry_raw, bool):
            if expiry_raw == -1:
                expiry = UntilConsumed()
            else:
                expiry = Timed(datetime.fromtimestamp(expiry_raw / 1000, tz=timezone.utc))
        else:
            expiry_raw = _dict(expiry_raw)
            kind = expiry_raw.get('kind')
            if kind == 'timed':
                expires_at = _datetime(expiry_raw.get('expires_at'))
                if expires_at is None:
                    raise ValueError("Timed effect without expiry")
                expiry = Timed(expires_at)
            elif kind == 'until_consumed':
                expiry = UntilConsumed()
            else:
                expiry = Instant()
        return ActiveEffect(
            effect_type=str(raw['effect_type']),
            expiry=expiry,
            multiplier=_float(raw.get('multiplier'), 1.0),
        )

    @staticmethod
    def _decode_companion(raw: Dict[str, Any]) -> Companion:
        return Companion(
            id=int(raw['id']),
            companion_type=str(raw.get('companion_type', 'companion')),
            rarity=str(raw.get('rarity', 'common')),
            bonus_type=CompanionBonus(raw.get('bonus_type')),
            bonus_amount=_float(raw.get('bonus_amount')),
            protections_used=_int(raw.get('protections_used')),
            usage_week=raw.get('usage_week') or None,
        )

    @staticmethod
    def _decode_progress(raw: Dict[str, Any]) -> PlayerProgress:
        return PlayerProgress(
            total_xp=max(0, _int(raw.get('total_xp'))),
            level=max(1, _int(raw.get('level'), 1)),
            gold=max(0, _int(raw.get('gold'))),
            crystals=max(0, _int(raw.get('crystals'))),
            chests_opened=_int(raw.get('chests_opened')),
            bosses_defeated=_int(raw.get('bosses_defeated')),
            login_streak=_int(raw.get('login_streak')),
            last_login_date=_date(raw.get('last_login_date')),
            last_rollover_date=_date(raw.get('last_rollover_date')),
            last_week_key=raw.get('last_week_key') or None,
        )

    @staticmethod
    def _decode_focus(raw: Dict[str, Any]) -> FocusSession:
        try:
            state = FocusState(raw.get('state', FocusState.IDLE.value))
        except ValueError:
            state = FocusState.IDLE
        return FocusSession(
            planned_seconds=max(0, _int(raw.get('planned_seconds'))),
            remaining_seconds=max(0, _int(raw.get('remaining_seconds'))),
            state=state,
            last_tick_at=_datetime(raw.get('last_tick_at')),
        )

    @staticmethod
    def _max_id(state: GameState) -> int:
        ids: List[int] = [g.id for g in state.book.all_goals()]
        for goal in state.book.archived():
            ids.append(goal.id)
            ids.extend(i.id for i in goal.checklist)
        for goal in state.book.all_goals():
            ids.extend(i.id for i in goal.checklist)
        ids.extend(h.id for h in state.habits)
        ids.extend(d.id for d in state.recurring)
        ids.extend(c.id for c in state.roster.companions)
        return max(ids, default=0)
