# apps/rewards/domain/progress.py
from dataclasses import dataclass
from datetime import date
from typing import List, Optional


def xp_for_level(level: int) -> int:
    """Ile XP potrzeba, żeby przejść z poziomu `level` na następny."""
    return 500 + 300 * (level - 1)


def cumulative_xp(level: int) -> int:
    """Łączne XP potrzebne do osiągnięcia poziomu `level` (poziom 1 = 0)."""
    return sum(xp_for_level(l) for l in range(1, level))


@dataclass
class PlayerProgress:
    """Globalne liczniki gracza. Jeden obiekt, przekazywany przez referencję."""
    total_xp: int = 0
    level: int = 1
    gold: int = 0
    crystals: int = 0
    chests_opened: int = 0
    bosses_defeated: int = 0
    login_streak: int = 0
    last_login_date: Optional[date] = None
    last_rollover_date: Optional[date] = None
    last_week_key: Optional[str] = None

    @property
    def xp_into_level(self) -> int:
        return self.total_xp - cumulative_xp(self.level)

    @property
    def xp_to_next_level(self) -> int:
        return cumulative_xp(self.level + 1) - self.total_xp

    def add_xp(self, amount: int) -> List[int]:
        """Dodaje XP i zwraca listę nowo osiągniętych poziomów (może być kilka)."""
        self.total_xp += max(0, amount)
        gained = []
        while self.total_xp >= cumulative_xp(self.level + 1):
            self.level += 1
            gained.append(self.level)
        return gained
