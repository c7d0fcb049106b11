# apps/rewards/domain/services/spellbook.py
import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from apps.core.domain.results import ActionResult
from apps.rewards.domain.effects import EffectDefinition, Lifetime, activate, get_definition
from apps.rewards.domain.progress import PlayerProgress
from apps.rewards.domain.services.effect_stack import EffectStack

logger = logging.getLogger(__name__)

# Ładunki na start nowej gry
STARTER_CHARGES = {'xp_boost': 1, 'quest_doubler': 1}

InstantHandler = Callable[[EffectDefinition, datetime], ActionResult]


class Spellbook:
    def __init__(self, effects: EffectStack, progress: PlayerProgress, charges: Dict[str, int],
                 instant_handler: Optional[InstantHandler] = None):
        self.effects = effects
        self.progress = progress
        self.charges = charges
        self.instant_handler = instant_handler
        self._casting = False

    def cast(self, effect_type: str, now: datetime) -> ActionResult:
        # Drugie rzucenie zanim pierwsze się zakończy -> odrzucamy, nie dublujemy
        if self._casting:
            return ActionResult.refused('busy', "Poczekaj, poprzedni czar jeszcze działa.")

        self._casting = True
        try:
            return self._cast(effect_type, now)
        finally:
            self._casting = False

    def _cast(self, effect_type: str, now: datetime) -> ActionResult:
        definition = get_definition(effect_type)
        if definition is None:
            return ActionResult.refused('unknown_effect', "Nie ma takiego czaru.")

        if self.progress.level < definition.required_level:
            return ActionResult.refused(
                'locked', f"{definition.name} wymaga poziomu {definition.required_level}."
            )

        if self.charges.get(effect_type, 0) <= 0:
            return ActionResult.refused('no_charges', f"Brak ładunków: {definition.name}.")

        if definition.lifetime == Lifetime.UNTIL_CONSUMED and self.effects.has_pending(effect_type):
            return ActionResult.refused('already_active', f"{definition.name} już czeka na użycie.")

        if definition.lifetime == Lifetime.INSTANT:
            if self.instant_handler is None:
                return ActionResult.refused('unsupported', f"{definition.name} nie może być teraz użyty.")
            result = self.instant_handler(definition, now)
            if not result.ok:
                return result
            self._spend(effect_type)
            return result

        self._spend(effect_type)
        effect = self.effects.add(definition, activate(definition, now))
        logger.info("Cast %s", effect_type)
        return ActionResult.success(f"Rzucono: {definition.name}!", effect=effect)

    def _spend(self, effect_type: str) -> None:
        self.charges[effect_type] = self.charges.get(effect_type, 0) - 1
        if self.charges[effect_type] <= 0:
            del self.charges[effect_type]

    def add_charges(self, effect_type: str, amount: int = 1) -> None:
        self.charges[effect_type] = self.charges.get(effect_type, 0) + amount
