# apps/habits/domain/services.py
from datetime import date, timedelta

from apps.habits.domain.entities import HabitEntity


class HabitService:
    def complete_habit(self, habit: HabitEntity, day: date) -> bool:
        """Zalicza nawyk na dany dzień. Zwraca False, jeśli już był zaliczony."""
        if habit.completed_today and habit.last_completed_date == day:
            return False  # Już zrobione

        # Jeśli seria żyła wczoraj -> streak++
        # Jeśli dawniej -> reset do 1
        yesterday = day - timedelta(days=1)

        if habit.streak_alive_through == yesterday:
            habit.current_streak += 1
        elif habit.streak_alive_through == day:
            pass
        else:
            habit.current_streak = 1  # Reset (lub start)

        if habit.current_streak > habit.longest_streak:
            habit.longest_streak = habit.current_streak

        habit.completed_today = True
        habit.last_completed_date = day
        habit.streak_alive_through = day
        return True

    def undo_habit(self, habit: HabitEntity, day: date) -> bool:
        """Cofa dzisiejsze zaliczenie (misclick)."""
        if not habit.completed_today:
            return False

        habit.completed_today = False
        habit.current_streak = max(0, habit.current_streak - 1)
        yesterday = day - timedelta(days=1)
        habit.streak_alive_through = yesterday if habit.current_streak > 0 else None
        if habit.last_completed_date == day:
            habit.last_completed_date = yesterday if habit.current_streak > 0 else None
        return True
