# apps/rewards/domain/effects.py
"""
Katalog efektów (czary i zaklęcia przedmiotów) oraz aktywne instancje.

Definicja efektu = wariant (payload) + czas życia. Aktywna instancja ma
jawny typ wygaśnięcia zamiast magicznej wartości -1.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union


class RewardKind(str, Enum):
    XP = 'xp'
    GOLD = 'gold'
    BOSS_DAMAGE = 'boss_damage'


class EffectPool(str, Enum):
    SPELL = 'spell'
    ENCHANTMENT = 'enchantment'


class Lifetime(str, Enum):
    INSTANT = 'instant'
    TIMED = 'timed'
    UNTIL_CONSUMED = 'until_consumed'


# --- Wygaśnięcie aktywnego efektu ---

@dataclass(frozen=True)
class Instant:
    pass


@dataclass(frozen=True)
class Timed:
    expires_at: datetime


@dataclass(frozen=True)
class UntilConsumed:
    pass


Expiry = Union[Instant, Timed, UntilConsumed]


# --- Warianty działania efektu ---

@dataclass(frozen=True)
class Multiplier:
    target: RewardKind
    factor: float


@dataclass(frozen=True)
class ChanceMultiplier:
    target: RewardKind
    factor: float
    chance: float


@dataclass(frozen=True)
class OneShotMultiplier:
    targets: FrozenSet[RewardKind]
    factor: float


@dataclass(frozen=True)
class StreakGuard:
    consumed_on_use: bool


@dataclass(frozen=True)
class ForcedDefeat:
    hp_fraction: float


@dataclass(frozen=True)
class BulkArchive:
    pass


EffectPayload = Union[Multiplier, ChanceMultiplier, OneShotMultiplier, StreakGuard, ForcedDefeat, BulkArchive]


@dataclass(frozen=True)
class EffectDefinition:
    effect_type: str
    name: str
    pool: EffectPool
    payload: EffectPayload
    lifetime: Lifetime
    duration: Optional[timedelta] = None
    required_level: int = 1

    @property
    def multiplier(self) -> float:
        return getattr(self.payload, 'factor', 1.0)


@dataclass
class ActiveEffect:
    effect_type: str
    expiry: Expiry
    multiplier: float = 1.0

    def is_live(self, now: datetime) -> bool:
        if isinstance(self.expiry, Timed):
            return self.expiry.expires_at > now
        return isinstance(self.expiry, UntilConsumed)


XP_AND_GOLD = frozenset({RewardKind.XP, RewardKind.GOLD})

_CATALOGUE = [
    # Czary
    EffectDefinition('xp_boost', 'Wisdom Surge', EffectPool.SPELL,
                     Multiplier(RewardKind.XP, 1.5), Lifetime.TIMED, timedelta(minutes=60)),
    EffectDefinition('gold_rush', 'Gold Rush', EffectPool.SPELL,
                     Multiplier(RewardKind.GOLD, 2.0), Lifetime.TIMED, timedelta(minutes=30)),
    EffectDefinition('quest_doubler', 'Quest Doubler', EffectPool.SPELL,
                     OneShotMultiplier(XP_AND_GOLD, 2.0), Lifetime.UNTIL_CONSUMED),
    EffectDefinition('time_freeze', 'Time Freeze', EffectPool.SPELL,
                     StreakGuard(consumed_on_use=True), Lifetime.UNTIL_CONSUMED, required_level=3),
    EffectDefinition('streak_shield', 'Streak Shield', EffectPool.SPELL,
                     StreakGuard(consumed_on_use=False), Lifetime.TIMED, timedelta(days=7)),
    EffectDefinition('bulk_archive', 'Bulk Archive', EffectPool.SPELL,
                     BulkArchive(), Lifetime.INSTANT),
    EffectDefinition('berserker_rage', 'Berserker Rage', EffectPool.SPELL,
                     OneShotMultiplier(frozenset({RewardKind.BOSS_DAMAGE}), 2.0), Lifetime.UNTIL_CONSUMED),
    EffectDefinition('boss_slayer', 'Boss Slayer', EffectPool.SPELL,
                     Multiplier(RewardKind.BOSS_DAMAGE, 1.25), Lifetime.TIMED, timedelta(hours=24)),
    EffectDefinition('critical_strike', 'Critical Strike', EffectPool.SPELL,
                     ChanceMultiplier(RewardKind.BOSS_DAMAGE, 1.5, 0.5), Lifetime.TIMED, timedelta(minutes=60)),
    EffectDefinition('execute', 'Execute', EffectPool.SPELL,
                     ForcedDefeat(hp_fraction=0.25), Lifetime.UNTIL_CONSUMED, required_level=5),
    # Zaklęcia (osobna pula, zwykle z łupów)
    EffectDefinition('wisdom_enchant', 'Enchantment of Wisdom', EffectPool.ENCHANTMENT,
                     Multiplier(RewardKind.XP, 1.1), Lifetime.TIMED, timedelta(hours=24)),
    EffectDefinition('fortune_enchant', 'Enchantment of Fortune', EffectPool.ENCHANTMENT,
                     Multiplier(RewardKind.GOLD, 1.1), Lifetime.TIMED, timedelta(hours=24)),
    EffectDefinition('boss_damage', 'Enchantment of Might', EffectPool.ENCHANTMENT,
                     Multiplier(RewardKind.BOSS_DAMAGE, 1.2), Lifetime.TIMED, timedelta(hours=24)),
]

EFFECTS: Dict[str, EffectDefinition] = {d.effect_type: d for d in _CATALOGUE}


def get_definition(effect_type: str) -> Optional[EffectDefinition]:
    return EFFECTS.get(effect_type)


def activate(definition: EffectDefinition, now: datetime) -> ActiveEffect:
    """Tworzy aktywną instancję efektu zgodnie z jego czasem życia."""
    if definition.lifetime == Lifetime.TIMED:
        expiry = Timed(now + definition.duration)
    elif definition.lifetime == Lifetime.UNTIL_CONSUMED:
        expiry = UntilConsumed()
    else:
        expiry = Instant()
    return ActiveEffect(definition.effect_type, expiry, definition.multiplier)
