# apps/tasks/domain/services/rollover.py
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List

from apps.goals.domain.entities import GoalLevel
from apps.goals.domain.services.graph import GoalBook
from apps.habits.domain.entities import HabitEntity
from apps.rewards.domain.companions import CompanionRoster, iso_week_key
from apps.rewards.domain.effects import StreakGuard
from apps.rewards.domain.progress import PlayerProgress
from apps.rewards.domain.services.effect_stack import EffectStack

logger = logging.getLogger(__name__)


@dataclass
class RolloverReport:
    new_day: bool = False
    new_week: bool = False
    time_freeze_used: bool = False
    shield_used: bool = False
    protected_habit_ids: List[int] = field(default_factory=list)
    reset_habit_ids: List[int] = field(default_factory=list)
    archived_goal_ids: List[int] = field(default_factory=list)


class RolloverService:
    """
    Przejście na nowy dzień / nowy tydzień ISO.

    Dzień: czyszczenie "zrobione dziś", seria logowań, ochrona lub reset serii
    nawyków. Tydzień: ukończone cele tygodniowe trafiają do archiwum.
    """

    def __init__(self, book: GoalBook, habits: List[HabitEntity], effects: EffectStack,
                 roster: CompanionRoster, progress: PlayerProgress):
        self.book = book
        self.habits = habits
        self.effects = effects
        self.roster = roster
        self.progress = progress

    def run(self, today: date, now: datetime) -> RolloverReport:
        report = RolloverReport()

        if self.progress.last_rollover_date != today:
            report.new_day = True
            self._roll_day(today, now, report)
            self.progress.last_rollover_date = today

        week = iso_week_key(today)
        if self.progress.last_week_key != week:
            # Pierwsze uruchomienie tylko zapisuje tydzień
            if self.progress.last_week_key is not None:
                report.new_week = True
                self._roll_week(now, report)
            self.progress.last_week_key = week

        return report

    def _roll_day(self, today: date, now: datetime, report: RolloverReport) -> None:
        for habit in self.habits:
            habit.completed_today = False

        self._track_login(today)

        broken = [h for h in self.habits if h.is_streak_broken(today)]
        if not broken:
            return

        yesterday = today - timedelta(days=1)

        # 1. Time Freeze: anuluje cały reset i znika
        freeze = self._live_guard(now, consumed_on_use=True)
        if freeze is not None:
            self.effects.consume(freeze)
            report.time_freeze_used = True
            self._protect(broken, yesterday, report)
            logger.info("Time Freeze protected %s habits", len(broken))
            return

        # 2. Streak Shield: chroni wszystko, zostaje aktywny
        if self._live_guard(now, consumed_on_use=False) is not None:
            report.shield_used = True
            self._protect(broken, yesterday, report)
            return

        # 3. Towarzysz z ochroną serii - po jednej ochronie na nawyk, do limitu tygodniowego
        companion = self.roster.active()
        for habit in broken:
            if companion is not None and companion.use_protection(today):
                self._protect([habit], yesterday, report)
            else:
                # 4. Reset
                habit.current_streak = 0
                habit.streak_alive_through = None
                report.reset_habit_ids.append(habit.id)

        if report.reset_habit_ids:
            logger.info("Reset streaks of habits %s", report.reset_habit_ids)

    def _roll_week(self, now: datetime, report: RolloverReport) -> None:
        done = [g for g in self.book.goals(GoalLevel.WEEKLY) if g.completed]
        self.book.archive_many(done, now, reason='weekly_rollover')
        report.archived_goal_ids.extend(g.id for g in done)

    def _track_login(self, today: date) -> None:
        last = self.progress.last_login_date
        if last == today:
            return
        if last == today - timedelta(days=1):
            self.progress.login_streak += 1
        else:
            self.progress.login_streak = 1
        self.progress.last_login_date = today

    def _live_guard(self, now: datetime, consumed_on_use: bool):
        for effect, definition in self.effects.all_live(now):
            payload = definition.payload
            if isinstance(payload, StreakGuard) and payload.consumed_on_use == consumed_on_use:
                return effect
        return None

    @staticmethod
    def _protect(habits: List[HabitEntity], yesterday: date, report: RolloverReport) -> None:
        for habit in habits:
            habit.streak_alive_through = yesterday
            report.protected_habit_ids.append(habit.id)
