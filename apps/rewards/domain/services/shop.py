# apps/rewards/domain/services/shop.py
import logging
import random
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Dict, List, Tuple, Union

from apps.core.domain.results import ActionResult
from apps.rewards.domain.companions import Companion, CompanionBonus, CompanionRoster
from apps.rewards.domain.effects import EffectPool, activate, get_definition
from apps.rewards.domain.progress import PlayerProgress
from apps.rewards.domain.services.effect_stack import EffectStack
from apps.rewards.domain.services.spellbook import Spellbook

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpellChargeLoot:
    effect_type: str
    amount: int = 1


@dataclass(frozen=True)
class EnchantmentLoot:
    effect_type: str


@dataclass(frozen=True)
class CompanionLoot:
    companion_type: str
    rarity: str
    bonus_type: CompanionBonus
    bonus_amount: float


@dataclass(frozen=True)
class CrystalLoot:
    amount: int


Loot = Union[SpellChargeLoot, EnchantmentLoot, CompanionLoot, CrystalLoot]


@dataclass(frozen=True)
class ChestTier:
    name: str
    cost: int
    rolls: int
    table: Tuple[Tuple[int, Loot], ...]  # (waga, łup)


CHEST_TIERS: Dict[str, ChestTier] = {
    'bronze': ChestTier('bronze', 100, 1, (
        (40, SpellChargeLoot('xp_boost')),
        (25, SpellChargeLoot('gold_rush')),
        (15, SpellChargeLoot('streak_shield')),
        (15, CrystalLoot(1)),
        (5, CompanionLoot('owl', 'common', CompanionBonus.XP, 0.05)),
    )),
    'silver': ChestTier('silver', 300, 2, (
        (25, SpellChargeLoot('quest_doubler')),
        (20, SpellChargeLoot('boss_slayer')),
        (15, SpellChargeLoot('berserker_rage')),
        (15, EnchantmentLoot('wisdom_enchant')),
        (10, EnchantmentLoot('fortune_enchant')),
        (10, CrystalLoot(2)),
        (5, CompanionLoot('fox', 'rare', CompanionBonus.GOLD, 0.1)),
    )),
    'gold': ChestTier('gold', 750, 3, (
        (20, SpellChargeLoot('critical_strike')),
        (15, SpellChargeLoot('time_freeze')),
        (10, SpellChargeLoot('execute')),
        (15, EnchantmentLoot('boss_damage')),
        (15, EnchantmentLoot('wisdom_enchant')),
        (10, CrystalLoot(5)),
        (8, CompanionLoot('wolf', 'epic', CompanionBonus.ATTACK, 0.25)),
        (7, CompanionLoot('turtle', 'epic', CompanionBonus.STREAK_PROTECTION, 2)),
    )),
}


class ChestShop:
    def __init__(self, progress: PlayerProgress, effects: EffectStack, spellbook: Spellbook,
                 roster: CompanionRoster, allocate_id: Callable[[], int], rng: random.Random = None):
        self.progress = progress
        self.effects = effects
        self.spellbook = spellbook
        self.roster = roster
        self.allocate_id = allocate_id
        self.rng = rng or random.Random()

    def purchase_chest(self, tier_name: str, now: datetime) -> ActionResult:
        tier = CHEST_TIERS.get(tier_name)
        if tier is None:
            return ActionResult.refused('unknown_tier', "Nie ma takiej skrzyni.")
        if self.progress.gold < tier.cost:
            return ActionResult.refused(
                'insufficient_gold', f"Potrzebujesz {tier.cost} złota (masz {self.progress.gold})."
            )

        self.progress.gold -= tier.cost
        self.progress.chests_opened += 1

        weights = [w for w, _ in tier.table]
        items = [loot for _, loot in tier.table]
        rolled = self.rng.choices(items, weights=weights, k=tier.rolls)

        for loot in rolled:
            self._apply(loot, now)

        logger.info("Opened %s chest: %s", tier.name, rolled)
        return ActionResult.success(f"Otwarto skrzynię ({tier.name})!", loot=rolled)

    def _apply(self, loot: Loot, now: datetime) -> None:
        if isinstance(loot, SpellChargeLoot):
            self.spellbook.add_charges(loot.effect_type, loot.amount)
        elif isinstance(loot, EnchantmentLoot):
            definition = get_definition(loot.effect_type)
            if definition is not None and definition.pool == EffectPool.ENCHANTMENT:
                self.effects.add(definition, activate(definition, now))
        elif isinstance(loot, CompanionLoot):
            companion = Companion(
                id=self.allocate_id(),
                companion_type=loot.companion_type,
                rarity=loot.rarity,
                bonus_type=loot.bonus_type,
                bonus_amount=loot.bonus_amount,
            )
            self.roster.companions.append(companion)
            # Pierwszy towarzysz od razu aktywny
            if self.roster.active_id is None:
                self.roster.active_id = companion.id
        elif isinstance(loot, CrystalLoot):
            self.progress.crystals += loot.amount


def describe_loot(loot: List[Loot]) -> List[dict]:
    described = []
    for item in loot:
        entry = {'type': type(item).__name__}
        entry.update(asdict(item))
        if 'bonus_type' in entry:
            entry['bonus_type'] = entry['bonus_type'].value
        described.append(entry)
    return described
