# apps/habits/domain/entities.py
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


@dataclass
class HabitEntity:
    id: int
    title: str
    created_at: datetime
    description: str = ""

    completed_today: bool = False

    # Statystyki
    current_streak: int = 0
    longest_streak: int = 0
    last_completed_date: Optional[date] = None

    # Ostatni dzień, do którego seria jest "żywa" (wykonanie albo ochrona)
    streak_alive_through: Optional[date] = None

    # Nagroda raz dziennie (odznaczenie i ponowne zaznaczenie nie płaci drugi raz)
    reward_claimed_on: Optional[date] = None

    def is_streak_broken(self, today: date) -> bool:
        if self.current_streak == 0:
            return False
        if self.streak_alive_through is None:
            return True
        return (today - self.streak_alive_through).days > 1
