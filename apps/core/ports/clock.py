# apps/core/ports/clock.py
from abc import ABC, abstractmethod
from datetime import date, datetime


class IClock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Aktualny czas (aware) w strefie gracza."""
        pass

    def today(self) -> date:
        return self.now().date()
