# apps/rewards/domain/services/effect_stack.py
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from apps.rewards.domain.effects import (
    ActiveEffect, EffectDefinition, EffectPool, Timed, UntilConsumed, get_definition,
)

logger = logging.getLogger(__name__)


class EffectStack:
    """Dwie niezależne pule aktywnych efektów: czary i zaklęcia."""

    def __init__(self, spells: Optional[List[ActiveEffect]] = None,
                 enchantments: Optional[List[ActiveEffect]] = None):
        self.spells = spells if spells is not None else []
        self.enchantments = enchantments if enchantments is not None else []

    def _pool(self, pool: EffectPool) -> List[ActiveEffect]:
        return self.spells if pool == EffectPool.SPELL else self.enchantments

    def live(self, pool: EffectPool, now: datetime) -> List[Tuple[ActiveEffect, EffectDefinition]]:
        """
        Aktywne, niewygasłe efekty puli razem z definicjami.
        Efekty, których typu nie ma już w katalogu, są pomijane.
        """
        result = []
        for effect in self._pool(pool):
            definition = get_definition(effect.effect_type)
            if definition is None or not effect.is_live(now):
                continue
            result.append((effect, definition))
        return result

    def all_live(self, now: datetime) -> List[Tuple[ActiveEffect, EffectDefinition]]:
        return self.live(EffectPool.SPELL, now) + self.live(EffectPool.ENCHANTMENT, now)

    def find_live(self, effect_type: str, now: datetime) -> Optional[ActiveEffect]:
        for effect, definition in self.all_live(now):
            if definition.effect_type == effect_type:
                return effect
        return None

    def add(self, definition: EffectDefinition, effect: ActiveEffect) -> ActiveEffect:
        """Dodaje efekt; czasowy efekt tego samego typu jest odświeżany, nie dublowany."""
        pool = self._pool(definition.pool)
        if isinstance(effect.expiry, Timed):
            for existing in pool:
                if existing.effect_type == effect.effect_type and isinstance(existing.expiry, Timed):
                    if effect.expiry.expires_at > existing.expiry.expires_at:
                        existing.expiry = effect.expiry
                    return existing
        pool.append(effect)
        return effect

    def has_pending(self, effect_type: str) -> bool:
        return any(
            e.effect_type == effect_type and isinstance(e.expiry, UntilConsumed)
            for e in self.spells + self.enchantments
        )

    def consume(self, effect: ActiveEffect) -> None:
        for pool in (self.spells, self.enchantments):
            for index, candidate in enumerate(pool):
                if candidate is effect:
                    del pool[index]
                    logger.debug("Consumed effect %s", effect.effect_type)
                    return

    def prune_expired(self, now: datetime) -> int:
        """Usuwa wygasłe efekty czasowe i efekty nieznanych typów. Zwraca liczbę usuniętych."""
        removed = 0
        for pool in (self.spells, self.enchantments):
            keep = [
                e for e in pool
                if get_definition(e.effect_type) is not None
                and not (isinstance(e.expiry, Timed) and e.expiry.expires_at <= now)
            ]
            removed += len(pool) - len(keep)
            pool[:] = keep
        if removed:
            logger.info("Pruned %s expired effects", removed)
        return removed
