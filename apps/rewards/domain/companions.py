# apps/rewards/domain/companions.py
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class CompanionBonus(str, Enum):
    XP = 'xp'
    GOLD = 'gold'
    ATTACK = 'attack'
    STREAK_PROTECTION = 'streak_protection'


def iso_week_key(day: date) -> str:
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


@dataclass
class Companion:
    id: int
    companion_type: str
    rarity: str
    bonus_type: CompanionBonus
    bonus_amount: float  # ułamek dla mnożników, limit tygodniowy dla ochrony serii

    # Licznik ochron w bieżącym tygodniu ISO
    protections_used: int = 0
    usage_week: Optional[str] = None

    def remaining_protections(self, today: date) -> int:
        if self.bonus_type != CompanionBonus.STREAK_PROTECTION:
            return 0
        used = self.protections_used if self.usage_week == iso_week_key(today) else 0
        return max(0, int(self.bonus_amount) - used)

    def use_protection(self, today: date) -> bool:
        if self.remaining_protections(today) <= 0:
            return False
        week = iso_week_key(today)
        if self.usage_week != week:
            self.usage_week = week
            self.protections_used = 0
        self.protections_used += 1
        return True


@dataclass
class CompanionRoster:
    companions: List[Companion] = field(default_factory=list)
    active_id: Optional[int] = None

    def active(self) -> Optional[Companion]:
        for companion in self.companions:
            if companion.id == self.active_id:
                return companion
        return None

    def get(self, companion_id: int) -> Optional[Companion]:
        return next((c for c in self.companions if c.id == companion_id), None)

    def bonus_factor(self, bonus_type: CompanionBonus) -> float:
        companion = self.active()
        if companion is None or companion.bonus_type != bonus_type:
            return 1.0
        return 1.0 + companion.bonus_amount
