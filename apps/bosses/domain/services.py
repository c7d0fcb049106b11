# apps/bosses/domain/services.py
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from apps.core.domain.results import ActionResult
from apps.goals.domain.entities import BOSS_LEVELS, BossState, GoalEntity
from apps.goals.domain.services.graph import GoalBook
from apps.rewards.domain.effects import ForcedDefeat
from apps.rewards.domain.services.effect_stack import EffectStack
from apps.rewards.domain.services.reward_engine import RewardEngine, RewardGrant, boss_defeat_reward

logger = logging.getLogger(__name__)

HP_PER_CHILD = 100


@dataclass
class DamageOutcome:
    boss_id: int
    damage: int
    current_hp: int
    defeated: bool = False
    executed: bool = False
    reward: Optional[RewardGrant] = None


class BossService:
    """
    Warstwa bossów nad celami Life/Yearly.

    dormant -> active (pula HP = 100 x liczba dzieci) -> defeated (stan końcowy).
    Obrażenia liczone są przez RewardEngine; tutaj tylko HP i przejścia stanów.
    """

    def __init__(self, book: GoalBook, engine: RewardEngine, effects: EffectStack):
        self.book = book
        self.engine = engine
        self.effects = effects

    def activate(self, goal: GoalEntity) -> ActionResult:
        if goal.level not in BOSS_LEVELS:
            return ActionResult.refused('not_boss_level', "Bossem może być tylko cel życiowy lub roczny.")
        if goal.is_boss:
            return ActionResult.refused('already_boss', "Ten cel już jest bossem.")
        if goal.completed:
            return ActionResult.refused('goal_completed', "Ukończony cel nie może zostać bossem.")

        children = self.book.children_of(goal)
        if not children:
            return ActionResult.refused('no_children', "Boss potrzebuje przynajmniej jednego powiązanego celu.")

        goal.is_boss = True
        goal.boss_max_hp = HP_PER_CHILD * len(children)
        goal.current_hp = goal.boss_max_hp
        logger.info("Boss activated: goal %s with %s HP", goal.id, goal.boss_max_hp)
        return ActionResult.success(f"Boss {goal.title} ma {goal.current_hp} HP!", hp=goal.current_hp)

    def on_child_linked(self, boss: GoalEntity) -> None:
        """Nowe dziecko powiększa pulę; rany nie są leczone."""
        if boss.boss_state != BossState.ACTIVE or boss.completed:
            return
        boss.boss_max_hp += HP_PER_CHILD
        boss.current_hp += HP_PER_CHILD

    def apply_damage(self, boss: GoalEntity, now: datetime) -> Optional[DamageOutcome]:
        # Ukończony cel (np. przez propagację) nie przyjmuje już obrażeń
        if boss.boss_state != BossState.ACTIVE or boss.completed:
            return None

        damage = self.engine.compute_boss_damage(now)
        boss.current_hp = max(0, boss.current_hp - damage)
        boss.total_damage_dealt += damage
        outcome = DamageOutcome(boss_id=boss.id, damage=damage, current_hp=boss.current_hp)

        if boss.current_hp > 0 and self._try_execute(boss, now):
            boss.current_hp = 0
            outcome.current_hp = 0
            outcome.executed = True

        if boss.current_hp <= 0:
            outcome.defeated = True
            outcome.reward = self._defeat(boss, now)

        return outcome

    def execute_now(self, boss: GoalEntity, now: datetime) -> Optional[DamageOutcome]:
        """Execute rzucony na już osłabionego bossa kończy walkę od razu, bez trafienia."""
        if boss.boss_state != BossState.ACTIVE or boss.completed:
            return None
        if not self._try_execute(boss, now):
            return None
        boss.current_hp = 0
        outcome = DamageOutcome(boss_id=boss.id, damage=0, current_hp=0, defeated=True, executed=True)
        outcome.reward = self._defeat(boss, now)
        return outcome

    def _try_execute(self, boss: GoalEntity, now: datetime) -> bool:
        for effect, definition in self.effects.all_live(now):
            payload = definition.payload
            if isinstance(payload, ForcedDefeat) and boss.current_hp <= boss.boss_max_hp * payload.hp_fraction:
                self.effects.consume(effect)
                logger.info("Execute finished boss %s at %s HP", boss.id, boss.current_hp)
                return True
        return False

    def _defeat(self, boss: GoalEntity, now: datetime) -> RewardGrant:
        boss.boss_defeated = True
        boss.completed = True
        boss.reward_claimed = True
        self.engine.progress.bosses_defeated += 1

        xp, gold, crystals = boss_defeat_reward(boss.level, self.engine.progress.level)
        logger.info("Boss %s defeated", boss.id)
        return self.engine.grant(xp, gold, f"boss_{boss.level.value}", now, crystals=crystals)
