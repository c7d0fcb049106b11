# apps/rewards/domain/services/reward_engine.py
import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from apps.goals.domain.entities import GoalLevel
from apps.rewards.domain.companions import CompanionBonus, CompanionRoster
from apps.rewards.domain.effects import (
    ChanceMultiplier, EffectPool, Multiplier, OneShotMultiplier, RewardKind,
)
from apps.rewards.domain.progress import PlayerProgress
from apps.rewards.domain.services.effect_stack import EffectStack

logger = logging.getLogger(__name__)

# Bazowe nagrody (XP, złoto) za ukończenie celu danego poziomu
BASE_REWARDS = {
    GoalLevel.DAILY: (50, 10),
    GoalLevel.WEEKLY: (150, 30),
    GoalLevel.MONTHLY: (400, 80),
    GoalLevel.YEARLY: (1000, 200),
    GoalLevel.LIFE: (2500, 500),
    GoalLevel.SIDE_QUEST: (75, 15),
    GoalLevel.HABIT: (25, 5),
}

FOCUS_XP_PER_MINUTE = 2
BASE_BOSS_DAMAGE = 100

_COMPANION_BONUS = {
    RewardKind.XP: CompanionBonus.XP,
    RewardKind.GOLD: CompanionBonus.GOLD,
    RewardKind.BOSS_DAMAGE: CompanionBonus.ATTACK,
}


def boss_defeat_reward(level: GoalLevel, player_level: int):
    """(XP, złoto, kryształy) za pokonanie bossa - zależne od poziomu gracza."""
    if level == GoalLevel.LIFE:
        return 5000 + 500 * player_level, 1000 + 100 * player_level, 10
    return 2000 + 200 * player_level, 400 + 40 * player_level, 3


@dataclass
class RewardGrant:
    xp: int = 0
    gold: int = 0
    crystals: int = 0
    levels_gained: List[int] = field(default_factory=list)


class RewardEngine:
    """
    Składa mnożniki z aktywnych efektów w nagrody XP/złoto i obrażenia bossa.

    Kolejność: baza x czary x zaklęcia x towarzysz x jednorazowe, na końcu floor.
    Jednorazowe efekty są zużywane tutaj, czasowe wygasają same.
    """

    def __init__(self, effects: EffectStack, progress: PlayerProgress,
                 roster: CompanionRoster, rng: random.Random = None):
        self.effects = effects
        self.progress = progress
        self.roster = roster
        self.rng = rng or random.Random()

    def compute_reward(self, base: int, action: str, kind: RewardKind, now: datetime) -> int:
        if kind == RewardKind.BOSS_DAMAGE:
            raise ValueError("Use compute_boss_damage for boss damage")

        factors = [
            self._pool_product(EffectPool.SPELL, kind, now),
            self._pool_product(EffectPool.ENCHANTMENT, kind, now),
            self.roster.bonus_factor(_COMPANION_BONUS[kind]),
            self._consume_one_shots(kind, now),
        ]
        amount = self._apply(base, factors)
        logger.debug("Reward %s/%s: base=%s factors=%s -> %s", action, kind.value, base, factors, amount)
        return amount

    def compute_boss_damage(self, now: datetime) -> int:
        kind = RewardKind.BOSS_DAMAGE
        factors = [
            self.roster.bonus_factor(CompanionBonus.ATTACK),
            self._pool_product(EffectPool.ENCHANTMENT, kind, now),
            self._pool_product(EffectPool.SPELL, kind, now),
            self._consume_one_shots(kind, now),
            self._roll_chances(kind, now),
        ]
        return self._apply(BASE_BOSS_DAMAGE, factors)

    def grant(self, base_xp: int, base_gold: int, action: str, now: datetime, crystals: int = 0) -> RewardGrant:
        """Liczy i dopisuje nagrodę do postępu gracza (XP najpierw, potem złoto)."""
        xp = self.compute_reward(base_xp, action, RewardKind.XP, now) if base_xp else 0
        gold = self.compute_reward(base_gold, action, RewardKind.GOLD, now) if base_gold else 0

        self.progress.gold += gold
        self.progress.crystals += crystals
        levels = self.progress.add_xp(xp)
        if levels:
            logger.info("Level up -> %s", levels[-1])
        return RewardGrant(xp=xp, gold=gold, crystals=crystals, levels_gained=levels)

    def grant_for_level(self, level: GoalLevel, now: datetime) -> RewardGrant:
        base_xp, base_gold = BASE_REWARDS[level]
        return self.grant(base_xp, base_gold, level.value, now)

    # --- Składniki ---

    def _pool_product(self, pool: EffectPool, kind: RewardKind, now: datetime) -> float:
        product = 1.0
        for effect, definition in self.effects.live(pool, now):
            payload = definition.payload
            if isinstance(payload, Multiplier) and payload.target == kind:
                product *= effect.multiplier
        return product

    def _consume_one_shots(self, kind: RewardKind, now: datetime) -> float:
        product = 1.0
        for effect, definition in self.effects.all_live(now):
            payload = definition.payload
            if isinstance(payload, OneShotMultiplier) and kind in payload.targets:
                product *= payload.factor
                self.effects.consume(effect)
        return product

    def _roll_chances(self, kind: RewardKind, now: datetime) -> float:
        product = 1.0
        for _effect, definition in self.effects.all_live(now):
            payload = definition.payload
            # Każde wywołanie to niezależny rzut
            if isinstance(payload, ChanceMultiplier) and payload.target == kind:
                if self.rng.random() < payload.chance:
                    product *= payload.factor
        return product

    @staticmethod
    def _apply(base: int, factors: List[float]) -> int:
        total = float(base)
        for factor in factors:
            total *= factor
        return max(0, math.floor(total + 1e-9))
