# apps/core/domain/state.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from apps.goals.domain.services.graph import GoalBook
from apps.habits.domain.entities import HabitEntity
from apps.rewards.domain.companions import CompanionRoster
from apps.rewards.domain.focus import FocusSession
from apps.rewards.domain.progress import PlayerProgress
from apps.rewards.domain.services.effect_stack import EffectStack
from apps.rewards.domain.services.spellbook import STARTER_CHARGES
from apps.tasks.domain.entities import RecurringTaskDefinition


@dataclass
class GameState:
    """Cały stan gry jednego gracza - zapisywany jako jeden snapshot."""
    book: GoalBook = field(default_factory=GoalBook)
    habits: List[HabitEntity] = field(default_factory=list)
    recurring: List[RecurringTaskDefinition] = field(default_factory=list)
    effects: EffectStack = field(default_factory=EffectStack)
    spell_charges: Dict[str, int] = field(default_factory=dict)
    roster: CompanionRoster = field(default_factory=CompanionRoster)
    progress: PlayerProgress = field(default_factory=PlayerProgress)
    focus: FocusSession = field(default_factory=FocusSession)
    next_id: int = 1

    @classmethod
    def new_game(cls) -> "GameState":
        return cls(spell_charges=dict(STARTER_CHARGES))

    def allocate_id(self) -> int:
        allocated = self.next_id
        self.next_id += 1
        return allocated

    def find_habit(self, habit_id: int) -> Optional[HabitEntity]:
        return next((h for h in self.habits if h.id == habit_id), None)

    def find_definition(self, definition_id: int) -> Optional[RecurringTaskDefinition]:
        return next((d for d in self.recurring if d.id == definition_id), None)
