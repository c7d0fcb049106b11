# apps/goals/domain/services/propagation.py
import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from apps.goals.domain.entities import GoalEntity, GoalLevel, child_level
from apps.goals.domain.services.graph import GoalBook

logger = logging.getLogger(__name__)

# Od dołu do góry: Weekly -> Monthly -> Yearly -> Life
PROPAGATION_ORDER = [GoalLevel.WEEKLY, GoalLevel.MONTHLY, GoalLevel.YEARLY, GoalLevel.LIFE]


def round_half_up(value: float) -> int:
    """Zaokrąglenie jak w kalkulatorze (12.5 -> 13), nie bankierskie."""
    return int(value + 0.5)


def compute_progress(completed: int, total: int) -> int:
    if total == 0:
        return 0
    return round_half_up(100 * completed / total)


class ProgressPropagationService:
    """
    Przelicza postęp i ukończenie w całej hierarchii.

    Pełne przeliczenie (O(liczba celów)) zamiast śledzenia zależności.
    Wywołania są w tempie użytkownika, więc to wystarcza.
    """

    def recompute_all(
            self,
            book: GoalBook,
            on_completed: Optional[Callable[[GoalEntity], None]] = None
    ) -> List[GoalEntity]:
        newly_completed = []

        for level in PROPAGATION_ORDER:
            # Indeks rodzic -> dzieci budujemy na każdy poziom osobno, bo
            # callback mógł w międzyczasie ukończyć cele niższego poziomu.
            index = self._children_index(book, child_level(level))

            for goal in book.goals(level):
                children = index.get(goal.id, [])
                done = sum(1 for c in children if c.completed)
                goal.progress = compute_progress(done, len(children))

                # Ukończenie tylko w górę - nigdy nie zdejmujemy flagi automatycznie
                if children and goal.progress == 100 and not goal.completed:
                    goal.completed = True
                    newly_completed.append(goal)
                    logger.debug("Propagation completed %s goal %s", level.value, goal.id)
                    if on_completed is not None:
                        on_completed(goal)

        return newly_completed

    @staticmethod
    def _children_index(book: GoalBook, level: GoalLevel) -> Dict[int, List[GoalEntity]]:
        index = defaultdict(list)
        for child in book.goals(level) + book.archived(level):
            parents = set(child.parent_ids)
            if child.legacy_parent_id is not None:
                parents.add(child.legacy_parent_id)
            for pid in parents:
                index[pid].append(child)
        return index


__all__ = ["ProgressPropagationService", "compute_progress", "round_half_up"]
