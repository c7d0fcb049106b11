# apps/rewards/domain/services/focus.py
from datetime import datetime, timedelta

from apps.core.domain.results import ActionResult
from apps.rewards.domain.focus import FocusSession, FocusState


class FocusTimer:
    """Odliczanie sesji skupienia. Sterowane z zewnątrz przez tick(now)."""

    def __init__(self, session: FocusSession):
        self.session = session

    def start(self, minutes: int, now: datetime) -> ActionResult:
        if self.session.state in (FocusState.RUNNING, FocusState.PAUSED):
            return ActionResult.refused('focus_active', "Sesja skupienia już trwa.")
        if minutes <= 0:
            return ActionResult.refused('invalid_duration', "Podaj czas sesji w minutach.")

        self.session.planned_seconds = minutes * 60
        self.session.remaining_seconds = minutes * 60
        self.session.state = FocusState.RUNNING
        self.session.last_tick_at = now
        return ActionResult.success(f"Start sesji: {minutes} min.")

    def pause(self, now: datetime) -> ActionResult:
        if self.session.state != FocusState.RUNNING:
            return ActionResult.refused('focus_not_running', "Brak trwającej sesji.")
        self.tick(now)
        if self.session.state == FocusState.COMPLETED:
            return ActionResult.success("Sesja zakończona.", completed=True)
        # Timer anulowany, pozostały czas zostaje
        self.session.state = FocusState.PAUSED
        self.session.last_tick_at = None
        return ActionResult.success("Pauza.", remaining_seconds=self.session.remaining_seconds)

    def resume(self, now: datetime) -> ActionResult:
        if self.session.state != FocusState.PAUSED:
            return ActionResult.refused('focus_not_paused', "Sesja nie jest wstrzymana.")
        self.session.state = FocusState.RUNNING
        self.session.last_tick_at = now
        return ActionResult.success("Wznowiono.")

    def stop(self) -> ActionResult:
        if self.session.state not in (FocusState.RUNNING, FocusState.PAUSED):
            return ActionResult.refused('focus_not_running', "Brak trwającej sesji.")
        # Sesja porzucona - bez nagrody
        self.session.planned_seconds = 0
        self.session.remaining_seconds = 0
        self.session.state = FocusState.IDLE
        self.session.last_tick_at = None
        return ActionResult.success("Sesja przerwana.")

    def tick(self, now: datetime) -> bool:
        """Odlicza pełne sekundy od ostatniego ticka. True, gdy sesja właśnie się skończyła."""
        if self.session.state != FocusState.RUNNING or self.session.last_tick_at is None:
            return False

        elapsed = int((now - self.session.last_tick_at).total_seconds())
        if elapsed <= 0:
            return False

        self.session.remaining_seconds = max(0, self.session.remaining_seconds - elapsed)
        # Ułamki sekund przechodzą na następny tick
        self.session.last_tick_at += timedelta(seconds=elapsed)
        if self.session.remaining_seconds == 0:
            self.session.state = FocusState.COMPLETED
            self.session.last_tick_at = None
            return True
        return False

    def acknowledge(self) -> int:
        """Zamyka ukończoną sesję i zwraca liczbę minut do nagrodzenia."""
        if self.session.state != FocusState.COMPLETED:
            return 0
        minutes = self.session.planned_minutes
        self.session.state = FocusState.IDLE
        self.session.planned_seconds = 0
        return minutes
