# apps/core/application/game_service.py
import logging
import random
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from apps.bosses.domain.services import BossService, DamageOutcome
from apps.core.application.persistence import DebouncedSnapshotWriter
from apps.core.domain.events import EventKind, GameEvent
from apps.core.domain.results import ActionResult
from apps.core.domain.state import GameState
from apps.core.ports.clock import IClock
from apps.core.ports.notifier import INotifier
from apps.goals.domain.entities import (
    BossState, ChecklistItem, GoalEntity, GoalLevel, PRIORITY_LEVELS, child_level, parent_level,
)
from apps.goals.domain.services import ProgressPropagationService
from apps.habits.domain.entities import HabitEntity
from apps.habits.domain.services import HabitService
from apps.rewards.domain.effects import BulkArchive, EffectDefinition, ForcedDefeat, get_definition
from apps.rewards.domain.services import ChestShop, FocusTimer, RewardEngine, RewardGrant, Spellbook
from apps.rewards.domain.services.reward_engine import FOCUS_XP_PER_MINUTE
from apps.rewards.domain.services.shop import describe_loot
from apps.tasks.domain.entities import RecurrenceRule, RecurringTaskDefinition
from apps.tasks.domain.services import RecurrenceService, RolloverService

logger = logging.getLogger(__name__)

LevelArg = Union[GoalLevel, str]


@dataclass
class CreateGoalInput:
    level: LevelArg
    title: str
    description: str = ""
    priority: Optional[int] = None
    parent_ids: List[int] = field(default_factory=list)


@dataclass
class CreateRecurringInput:
    title: str
    rule: RecurrenceRule
    description: str = ""
    parent_ids: List[int] = field(default_factory=list)
    checklist_template: List[str] = field(default_factory=list)


def _parse_level(level: LevelArg) -> Optional[GoalLevel]:
    if isinstance(level, GoalLevel):
        return level
    try:
        return GoalLevel(level)
    except ValueError:
        return None


class GameService:
    """
    Fasada silnika: jedno miejsce, przez które przechodzi każda akcja gracza.

    Każda metoda mutująca działa do końca (jeden wątek), oznacza stan do
    zapisu i zwraca ActionResult. Odmowy nie zmieniają stanu i są zgłaszane
    notifierowi jako NOTICE.
    """

    def __init__(self, state: GameState, clock: IClock, notifier: INotifier,
                 writer: Optional[DebouncedSnapshotWriter] = None, rng: random.Random = None,
                 sweep_seconds: int = 60, default_focus_minutes: int = 25):
        self.state = state
        self.clock = clock
        self.notifier = notifier
        self.writer = writer
        self.rng = rng or random.Random()
        self.sweep_interval = timedelta(seconds=sweep_seconds)
        self.default_focus_minutes = default_focus_minutes
        self._last_sweep: Optional[datetime] = None

        self.engine = RewardEngine(state.effects, state.progress, state.roster, self.rng)
        self.bosses = BossService(state.book, self.engine, state.effects)
        self.propagation = ProgressPropagationService()
        self.spellbook = Spellbook(state.effects, state.progress, state.spell_charges,
                                   instant_handler=self._run_instant)
        self.shop = ChestShop(state.progress, state.effects, self.spellbook, state.roster,
                              state.allocate_id, self.rng)
        self.recurrence = RecurrenceService(state.book, state.recurring, state.allocate_id)
        self.rollover = RolloverService(state.book, state.habits, state.effects, state.roster, state.progress)
        self.habit_service = HabitService()
        self.focus = FocusTimer(state.focus)

    # ------------------------------------------------------------------
    # Ukończenie
    # ------------------------------------------------------------------

    def toggle_completion(self, level: LevelArg, goal_id: int) -> ActionResult:
        parsed = _parse_level(level)
        if parsed is None:
            return self._refuse('unknown_level', "Nie ma takiego poziomu celów.")
        now = self.clock.now()

        if parsed == GoalLevel.HABIT:
            return self._toggle_habit(goal_id, now)

        goal = self.state.book.get(parsed, goal_id)
        if goal is None:
            return self._refuse('unknown_goal', "Nie znaleziono celu.")

        if goal.completed:
            # Rodziców nie cofamy; cel z kompletem dzieci i tak wróciłby do ukończonych
            children = self.state.book.children_of(goal)
            if children and all(c.completed for c in children):
                return self._refuse(
                    'children_complete',
                    f"{goal.title} ma ukończone wszystkie powiązane cele - najpierw cofnij któryś z nich.",
                )
            goal.completed = False
            self._recompute(now)
            return self._done(now, f"Cofnięto: {goal.title}", goal_id=goal.id, completed=False)

        if goal.has_open_checklist:
            return self._refuse('checklist_incomplete', "Najpierw odhacz wszystkie punkty checklisty.")

        if child_level(goal.level) is not None:
            children = self.state.book.children_of(goal)
            if children and goal.progress < 100:
                return self._refuse(
                    'children_incomplete',
                    f"{goal.title} ukończy się sam, gdy wszystkie powiązane cele będą gotowe ({goal.progress}%).",
                )

        goal.completed = True
        grant = self._handle_completion(goal, now)
        self._recompute(now)
        return self._done(now, f"Ukończono: {goal.title}", goal_id=goal.id, completed=True,
                          reward=asdict(grant) if grant else None)

    def _toggle_habit(self, habit_id: int, now: datetime) -> ActionResult:
        habit = self.state.find_habit(habit_id)
        if habit is None:
            return self._refuse('unknown_goal', "Nie znaleziono nawyku.")
        today = now.date()

        if habit.completed_today:
            self.habit_service.undo_habit(habit, today)
            return self._done(now, f"Cofnięto: {habit.title}", habit_id=habit.id, completed=False,
                              streak=habit.current_streak)

        self.habit_service.complete_habit(habit, today)
        grant = None
        if habit.reward_claimed_on != today:
            habit.reward_claimed_on = today
            grant = self.engine.grant_for_level(GoalLevel.HABIT, now)
            self._publish_grant(grant, GoalLevel.HABIT, habit.id, habit.title)
        return self._done(now, f"Nawyk zaliczony: {habit.title}", habit_id=habit.id, completed=True,
                          streak=habit.current_streak, reward=asdict(grant) if grant else None)

    def _handle_completion(self, goal: GoalEntity, now: datetime) -> Optional[RewardGrant]:
        """Nagroda i obrażenia bossów - tylko przy pierwszym ukończeniu."""
        if goal.reward_claimed:
            return None
        goal.reward_claimed = True
        grant = self.engine.grant_for_level(goal.level, now)
        self._publish_grant(grant, goal.level, goal.id, goal.title)
        self._damage_parents(goal, now)
        return grant

    def _damage_parents(self, goal: GoalEntity, now: datetime) -> None:
        for parent in self.state.book.parents_of(goal):
            outcome = self.bosses.apply_damage(parent, now)
            if outcome is None:
                continue
            self._publish(EventKind.BOSS_DAMAGE, boss_id=parent.id, damage=outcome.damage,
                          current_hp=outcome.current_hp, max_hp=parent.boss_max_hp)
            if outcome.defeated:
                self._on_boss_defeated(parent, outcome, now)

    def _on_boss_defeated(self, boss: GoalEntity, outcome: DamageOutcome, now: datetime) -> None:
        self._publish(EventKind.BOSS_DEFEATED, boss_id=boss.id, title=boss.title,
                      executed=outcome.executed, reward=asdict(outcome.reward))
        self._publish_level_ups(outcome.reward)
        if outcome.reward.crystals:
            self._publish(EventKind.CRYSTAL_EARN, amount=outcome.reward.crystals,
                          total=self.state.progress.crystals)
        # Pokonanie bossa to też ukończenie - dostają jego rodzice
        self._damage_parents(boss, now)

    def _recompute(self, now: datetime) -> List[GoalEntity]:
        return self.propagation.recompute_all(
            self.state.book, on_completed=lambda g: self._handle_completion(g, now)
        )

    # ------------------------------------------------------------------
    # Checklista i powiązania
    # ------------------------------------------------------------------

    def toggle_checklist_item(self, level: LevelArg, goal_id: int, item_id: int) -> ActionResult:
        goal = self._lookup(level, goal_id)
        if goal is None:
            return self._refuse('unknown_goal', "Nie znaleziono celu.")
        item = next((i for i in goal.checklist if i.id == item_id), None)
        if item is None:
            return self._refuse('unknown_item', "Nie ma takiego punktu checklisty.")

        item.completed = not item.completed
        return self._done(self.clock.now(), item.text, goal_id=goal.id, item_id=item.id,
                          completed=item.completed)

    def add_checklist_item(self, level: LevelArg, goal_id: int, text: str) -> ActionResult:
        goal = self._lookup(level, goal_id)
        if goal is None:
            return self._refuse('unknown_goal', "Nie znaleziono celu.")
        text = (text or "").strip()
        if not text:
            return self._refuse('empty_text', "Punkt checklisty nie może być pusty.")

        item = ChecklistItem(id=self.state.allocate_id(), text=text)
        goal.checklist.append(item)
        return self._done(self.clock.now(), "Dodano punkt.", goal_id=goal.id, item_id=item.id)

    def add_link(self, child_level: LevelArg, child_id: int, parent_id: int) -> ActionResult:
        resolved = self._resolve_link(child_level, child_id, parent_id)
        if isinstance(resolved, ActionResult):
            return resolved
        child, parent = resolved
        now = self.clock.now()

        if self.state.book.link(child, parent) and parent.boss_state == BossState.ACTIVE:
            self.bosses.on_child_linked(parent)
        self._recompute(now)
        return self._done(now, f"Powiązano z: {parent.title}", child_id=child.id, parent_id=parent.id,
                          parent_progress=parent.progress)

    def remove_link(self, child_level: LevelArg, child_id: int, parent_id: int) -> ActionResult:
        resolved = self._resolve_link(child_level, child_id, parent_id)
        if isinstance(resolved, ActionResult):
            return resolved
        child, parent = resolved
        now = self.clock.now()

        if not self.state.book.unlink(child, parent.id):
            return self._refuse('not_linked', "Te cele nie są powiązane.")
        self._recompute(now)
        return self._done(now, f"Odłączono od: {parent.title}", child_id=child.id, parent_id=parent.id,
                          parent_progress=parent.progress)

    def _resolve_link(self, child_level: LevelArg, child_id: int, parent_id: int):
        child = self._lookup(child_level, child_id)
        if child is None:
            return self._refuse('unknown_goal', "Nie znaleziono celu.")
        upper = parent_level(child.level)
        if upper is None:
            return self._refuse('not_linkable', "Tego celu nie można powiązać z wyższym poziomem.")
        parent = self.state.book.get(upper, parent_id)
        if parent is None:
            return self._refuse('unknown_parent', "Nie znaleziono celu nadrzędnego.")
        return child, parent

    # ------------------------------------------------------------------
    # Tworzenie i archiwum
    # ------------------------------------------------------------------

    def create_goal(self, input_dto: CreateGoalInput) -> ActionResult:
        level = _parse_level(input_dto.level)
        if level is None or level == GoalLevel.HABIT:
            return self._refuse('unknown_level', "Nie ma takiego poziomu celów.")

        title = (input_dto.title or "").strip()
        if not title:
            return self._refuse('empty_title', "Tytuł nie może być pusty.")

        if input_dto.priority is not None:
            if level not in PRIORITY_LEVELS:
                return self._refuse('priority_not_allowed', "Priorytet mają tylko cele roczne, miesięczne i tygodniowe.")
            if not 1 <= input_dto.priority <= 5:
                return self._refuse('invalid_priority', "Priorytet musi być w zakresie 1-5.")

        parents = []
        if input_dto.parent_ids:
            upper = parent_level(level)
            if upper is None:
                return self._refuse('not_linkable', "Tego celu nie można powiązać z wyższym poziomem.")
            for pid in input_dto.parent_ids:
                parent = self.state.book.get(upper, pid)
                if parent is None:
                    return self._refuse('unknown_parent', "Nie znaleziono celu nadrzędnego.")
                parents.append(parent)

        now = self.clock.now()
        goal = self.state.book.add(GoalEntity(
            id=self.state.allocate_id(),
            level=level,
            title=title,
            description=input_dto.description,
            created_at=now,
            priority=input_dto.priority,
        ))
        for parent in parents:
            if self.state.book.link(goal, parent) and parent.boss_state == BossState.ACTIVE:
                self.bosses.on_child_linked(parent)

        self._recompute(now)
        logger.info("Created %s goal %s", level.value, goal.id)
        return self._done(now, f"Nowy cel: {goal.title}", goal_id=goal.id)

    def create_habit(self, title: str, description: str = "") -> ActionResult:
        title = (title or "").strip()
        if not title:
            return self._refuse('empty_title', "Tytuł nie może być pusty.")

        now = self.clock.now()
        habit = HabitEntity(id=self.state.allocate_id(), title=title, created_at=now, description=description)
        self.state.habits.append(habit)
        return self._done(now, f"Nowy nawyk: {habit.title}", habit_id=habit.id)

    def add_recurring_definition(self, input_dto: CreateRecurringInput) -> ActionResult:
        title = (input_dto.title or "").strip()
        if not title:
            return self._refuse('empty_title', "Tytuł nie może być pusty.")

        for pid in input_dto.parent_ids:
            if self.state.book.get(GoalLevel.WEEKLY, pid) is None:
                return self._refuse('unknown_parent', "Nie znaleziono celu tygodniowego.")

        definition = RecurringTaskDefinition(
            id=self.state.allocate_id(),
            title=title,
            rule=input_dto.rule,
            description=input_dto.description,
            parent_ids=set(input_dto.parent_ids),
            checklist_template=[t.strip() for t in input_dto.checklist_template if t and t.strip()],
        )
        self.state.recurring.append(definition)
        return self._done(self.clock.now(), f"Nowe zadanie cykliczne: {title}", definition_id=definition.id)

    def archive_goal(self, level: LevelArg, goal_id: int) -> ActionResult:
        goal = self._lookup(level, goal_id)
        if goal is None:
            return self._refuse('unknown_goal', "Nie znaleziono celu.")
        now = self.clock.now()
        self.state.book.archive_goal(goal, now, reason='manual')
        self._recompute(now)
        return self._done(now, f"Zarchiwizowano: {goal.title}", goal_id=goal.id)

    # ------------------------------------------------------------------
    # Harmonogram dnia
    # ------------------------------------------------------------------

    def materialize_today(self) -> ActionResult:
        """Przejście dnia/tygodnia, potem zadania cykliczne na dziś."""
        now = self.clock.now()
        today = self.clock.today()

        report = self.rollover.run(today, now)
        generated = self.recurrence.generate_daily_instances(today, now)
        self._recompute(now)

        if report.new_day or report.new_week or generated:
            self._publish(EventKind.ROLLOVER, day=today.isoformat(), new_week=report.new_week,
                          generated=[t.id for t in generated],
                          protected=report.protected_habit_ids, reset=report.reset_habit_ids)
        return self._done(now, "Dzień przygotowany.", generated=[t.id for t in generated],
                          rollover=asdict(report))

    # ------------------------------------------------------------------
    # Czary, sklep, towarzysze, bossowie
    # ------------------------------------------------------------------

    def cast_effect(self, effect_type: str) -> ActionResult:
        now = self.clock.now()
        result = self.spellbook.cast(effect_type, now)
        if not result.ok:
            return self._refuse(result.reason, result.message)

        definition = get_definition(effect_type)
        self._publish(EventKind.SPELL, effect_type=effect_type, name=definition.name)
        data = {'effect_type': effect_type, 'charges_left': self.state.spell_charges.get(effect_type, 0)}
        if 'archived' in result.data:
            data['archived'] = result.data['archived']
        if isinstance(definition.payload, ForcedDefeat):
            executed = self._execute_weakened_boss(now)
            if executed is not None:
                data['executed'] = executed
        return self._done(now, result.message, **data)

    def _execute_weakened_boss(self, now: datetime) -> Optional[int]:
        # Jeden ładunek - pierwszy boss, który już jest poniżej progu
        for goal in self.state.book.all_goals():
            outcome = self.bosses.execute_now(goal, now)
            if outcome is not None:
                self._on_boss_defeated(goal, outcome, now)
                self._recompute(now)
                return goal.id
        return None

    def _run_instant(self, definition: EffectDefinition, now: datetime) -> ActionResult:
        if not isinstance(definition.payload, BulkArchive):
            return ActionResult.refused('unsupported', f"{definition.name} nie może być teraz użyty.")

        # Wszystko ukończone poza celami życiowymi (side-questy też)
        done = [g for g in self.state.book.all_goals() if g.completed and g.level != GoalLevel.LIFE]
        if not done:
            return ActionResult.refused('nothing_to_archive', "Nie ma ukończonych celów do archiwizacji.")

        self.state.book.archive_many(done, now, reason='bulk_archive')
        self._recompute(now)
        return ActionResult.success(f"Zarchiwizowano {len(done)} celów.", archived=[g.id for g in done])

    def purchase_chest(self, tier: str) -> ActionResult:
        now = self.clock.now()
        crystals_before = self.state.progress.crystals
        result = self.shop.purchase_chest(tier, now)
        if not result.ok:
            return self._refuse(result.reason, result.message)

        loot = describe_loot(result.data['loot'])
        self._publish(EventKind.CHEST_OPENED, tier=tier, loot=loot)
        if self.state.progress.crystals > crystals_before:
            self._publish(EventKind.CRYSTAL_EARN, amount=self.state.progress.crystals - crystals_before,
                          total=self.state.progress.crystals)
        return self._done(now, result.message, tier=tier, loot=loot, gold=self.state.progress.gold)

    def activate_companion(self, companion_id: int) -> ActionResult:
        companion = self.state.roster.get(companion_id)
        if companion is None:
            return self._refuse('unknown_companion', "Nie masz takiego towarzysza.")
        self.state.roster.active_id = companion.id
        return self._done(self.clock.now(), f"Aktywny towarzysz: {companion.companion_type}",
                          companion_id=companion.id)

    def flag_boss(self, level: LevelArg, goal_id: int) -> ActionResult:
        goal = self._lookup(level, goal_id)
        if goal is None:
            return self._refuse('unknown_goal', "Nie znaleziono celu.")
        result = self.bosses.activate(goal)
        if not result.ok:
            return self._refuse(result.reason, result.message)
        return self._done(self.clock.now(), result.message, goal_id=goal.id, hp=goal.current_hp)

    # ------------------------------------------------------------------
    # Sesje skupienia
    # ------------------------------------------------------------------

    def start_focus(self, minutes: Optional[int] = None) -> ActionResult:
        now = self.clock.now()
        result = self.focus.start(minutes or self.default_focus_minutes, now)
        return self._done(now, result.message, **result.data) if result.ok else self._refuse(result.reason, result.message)

    def pause_focus(self) -> ActionResult:
        now = self.clock.now()
        result = self.focus.pause(now)
        if not result.ok:
            return self._refuse(result.reason, result.message)
        if result.data.get('completed'):
            self._complete_focus(now)
        return self._done(now, result.message, **result.data)

    def resume_focus(self) -> ActionResult:
        now = self.clock.now()
        result = self.focus.resume(now)
        return self._done(now, result.message) if result.ok else self._refuse(result.reason, result.message)

    def stop_focus(self) -> ActionResult:
        result = self.focus.stop()
        return self._done(self.clock.now(), result.message) if result.ok else self._refuse(result.reason, result.message)

    def _complete_focus(self, now: datetime) -> None:
        minutes = self.focus.acknowledge()
        if minutes <= 0:
            return
        grant = self.engine.grant(minutes * FOCUS_XP_PER_MINUTE, 0, 'focus', now)
        self._publish(EventKind.FOCUS_COMPLETE, minutes=minutes, xp=grant.xp)
        self._publish_level_ups(grant)
        self._mark_dirty(now)

    # ------------------------------------------------------------------
    # Zegar i zapis
    # ------------------------------------------------------------------

    def tick(self, now: Optional[datetime] = None) -> None:
        """Odliczanie skupienia, minutowy przegląd efektów, zapis po debounce."""
        now = now or self.clock.now()

        if self.focus.tick(now):
            self._complete_focus(now)

        if self._last_sweep is None or now - self._last_sweep >= self.sweep_interval:
            self._last_sweep = now
            removed = self.state.effects.prune_expired(now)
            if removed:
                logger.debug("Swept %s expired effects", removed)
                self._mark_dirty(now)

        if self.writer is not None:
            self.writer.flush_if_due(self.state, now, self.status())

    def flush(self) -> bool:
        if self.writer is None:
            return False
        return self.writer.flush(self.state, self.status())

    # ------------------------------------------------------------------
    # Odczyt
    # ------------------------------------------------------------------

    def progress_of(self, level: LevelArg, goal_id: int) -> Optional[int]:
        goal = self._lookup(level, goal_id)
        return goal.progress if goal is not None else None

    def boss_hp_of(self, level: LevelArg, goal_id: int) -> Optional[Dict[str, Any]]:
        goal = self._lookup(level, goal_id)
        if goal is None:
            return None
        return {
            'state': goal.boss_state.value,
            'current_hp': goal.current_hp,
            'max_hp': goal.boss_max_hp,
            'total_damage_dealt': goal.total_damage_dealt,
        }

    def level_info(self) -> Dict[str, int]:
        progress = self.state.progress
        return {
            'level': progress.level,
            'total_xp': progress.total_xp,
            'xp_into_level': progress.xp_into_level,
            'xp_to_next_level': progress.xp_to_next_level,
            'gold': progress.gold,
            'crystals': progress.crystals,
        }

    def status(self) -> Dict[str, Any]:
        now = self.clock.now()
        progress = self.state.progress
        info = self.level_info()
        info.update({
            'chests_opened': progress.chests_opened,
            'bosses_defeated': progress.bosses_defeated,
            'login_streak': progress.login_streak,
            'spell_charges': dict(self.state.spell_charges),
            'active_effects': [
                {'effect_type': effect.effect_type, 'pool': definition.pool.value}
                for effect, definition in self.state.effects.all_live(now)
            ],
            'active_companion_id': self.state.roster.active_id,
            'focus': {
                'state': self.state.focus.state.value,
                'remaining_seconds': self.state.focus.remaining_seconds,
            },
        })
        return info

    # ------------------------------------------------------------------
    # Pomocnicze
    # ------------------------------------------------------------------

    def _lookup(self, level: LevelArg, goal_id: int) -> Optional[GoalEntity]:
        parsed = _parse_level(level)
        if parsed is None or parsed == GoalLevel.HABIT:
            return None
        return self.state.book.get(parsed, goal_id)

    def _done(self, now: datetime, message: str, **data) -> ActionResult:
        self._mark_dirty(now)
        return ActionResult.success(message, **data)

    def _refuse(self, reason: str, message: str) -> ActionResult:
        self._publish(EventKind.NOTICE, reason=reason, message=message)
        return ActionResult.refused(reason, message)

    def _mark_dirty(self, now: datetime) -> None:
        if self.writer is not None:
            self.writer.mark_dirty(now)

    def _publish_grant(self, grant: RewardGrant, level: GoalLevel, source_id: int, title: str) -> None:
        self._publish(EventKind.ACHIEVEMENT, tier=level.value, source_id=source_id, title=title,
                      xp=grant.xp, gold=grant.gold)
        self._publish_level_ups(grant)

    def _publish_level_ups(self, grant: RewardGrant) -> None:
        for level in grant.levels_gained:
            self._publish(EventKind.LEVEL_UP, level=level)

    def _publish(self, kind: EventKind, **payload) -> None:
        try:
            self.notifier.publish(GameEvent(kind, payload))
        except Exception:
            logger.exception("Notifier failed for %s", kind.value)
