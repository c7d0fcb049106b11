# apps/goals/domain/services/graph.py
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional

from apps.goals.domain.entities import (
    ArchivedGoal, GoalEntity, GoalLevel, child_level, parent_level,
)


class GoalBook:
    """
    Zbiór celów podzielony na poziomy + archiwum.

    Kolekcje są uporządkowane (kolejność dodania), identyfikatory są unikalne
    w całej księdze, więc `find` nie potrzebuje poziomu.
    """

    def __init__(self):
        self._levels: Dict[GoalLevel, "OrderedDict[int, GoalEntity]"] = {
            level: OrderedDict() for level in GoalLevel if level != GoalLevel.HABIT
        }
        self.archive: List[ArchivedGoal] = []

    # --- Odczyt ---

    def goals(self, level: GoalLevel) -> List[GoalEntity]:
        return list(self._levels[level].values())

    def all_goals(self) -> Iterator[GoalEntity]:
        for collection in self._levels.values():
            yield from collection.values()

    def get(self, level: GoalLevel, goal_id: int) -> Optional[GoalEntity]:
        collection = self._levels.get(level)
        if collection is None:
            return None
        return collection.get(goal_id)

    def find(self, goal_id: int) -> Optional[GoalEntity]:
        for collection in self._levels.values():
            if goal_id in collection:
                return collection[goal_id]
        return None

    def archived(self, level: Optional[GoalLevel] = None) -> List[GoalEntity]:
        return [a.goal for a in self.archive if level is None or a.goal.level == level]

    def children_of(self, goal: GoalEntity) -> List[GoalEntity]:
        """Bezpośrednie dzieci (również zarchiwizowane - nadal liczą się do postępu)."""
        level = child_level(goal.level)
        if level is None:
            return []
        candidates = list(self._levels[level].values()) + self.archived(level)
        return [c for c in candidates if c.is_child_of(goal.id)]

    def parents_of(self, goal: GoalEntity) -> List[GoalEntity]:
        level = parent_level(goal.level)
        if level is None:
            return []
        ids = set(goal.parent_ids)
        if goal.legacy_parent_id is not None:
            ids.add(goal.legacy_parent_id)
        parents = [self._levels[level].get(pid) for pid in sorted(ids)]
        return [p for p in parents if p is not None]

    # --- Mutacje ---

    def add(self, goal: GoalEntity) -> GoalEntity:
        if goal.level == GoalLevel.HABIT:
            raise ValueError("Habits are kept outside the goal book")
        self._levels[goal.level][goal.id] = goal
        return goal

    def link(self, child: GoalEntity, parent: GoalEntity) -> bool:
        """Dodaje rodzica do zbioru. Zwraca True, jeśli to nowe powiązanie."""
        if parent_level(child.level) != parent.level:
            raise ValueError(
                f"{child.level.value} goal cannot be linked to a {parent.level.value} goal"
            )
        if child.is_child_of(parent.id):
            return False
        child.parent_ids.add(parent.id)
        return True

    def unlink(self, child: GoalEntity, parent_id: int) -> bool:
        removed = parent_id in child.parent_ids or child.legacy_parent_id == parent_id
        child.parent_ids.discard(parent_id)
        if child.legacy_parent_id == parent_id:
            child.legacy_parent_id = None
        return removed

    def archive_goal(self, goal: GoalEntity, now: datetime, reason: str = 'manual') -> ArchivedGoal:
        self._levels[goal.level].pop(goal.id, None)
        entry = ArchivedGoal(goal=goal, archived_at=now, reason=reason)
        self.archive.append(entry)
        return entry

    def archive_many(self, goals: Iterable[GoalEntity], now: datetime, reason: str) -> List[ArchivedGoal]:
        return [self.archive_goal(g, now, reason) for g in list(goals)]
