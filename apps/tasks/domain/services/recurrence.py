# apps/tasks/domain/services/recurrence.py
import logging
from datetime import date, datetime, time
from typing import Callable, List

from dateutil.rrule import MONTHLY, WEEKLY, rrule, weekday

from apps.goals.domain.entities import ChecklistItem, GoalEntity, GoalLevel
from apps.goals.domain.services.graph import GoalBook
from apps.tasks.domain.entities import (
    BiweeklyRule, MonthlyDateRule, MonthlyWeekdayRule, RecurrenceRule, RecurringTaskDefinition, WeeklyRule,
)

logger = logging.getLogger(__name__)

# Odstęp dla reguły "co dwa tygodnie" (liczony od ostatniego odpalenia reguły)
BIWEEKLY_MIN_GAP_DAYS = 13


def _first_occurrence(rule: rrule) -> date:
    return rule[0].date()


def fires_on(rule: RecurrenceRule, day: date) -> bool:
    """Czy reguła odpala w danym dniu."""
    if isinstance(rule, BiweeklyRule):
        if day.weekday() != rule.day:
            return False
        return rule.last_fired is None or (day - rule.last_fired).days >= BIWEEKLY_MIN_GAP_DAYS

    # Pozostałe reguły liczymy przez RRULE: pierwsze wystąpienie od dzisiaj == dzisiaj
    dtstart = datetime.combine(day, time.min)
    if isinstance(rule, WeeklyRule):
        schedule = rrule(WEEKLY, byweekday=sorted(rule.days), dtstart=dtstart, count=1)
    elif isinstance(rule, MonthlyDateRule):
        schedule = rrule(MONTHLY, bymonthday=rule.day, dtstart=dtstart, count=1)
    elif isinstance(rule, MonthlyWeekdayRule):
        # MO(+2) = drugi poniedziałek miesiąca, MO(-1) = ostatni
        schedule = rrule(MONTHLY, byweekday=weekday(rule.day, rule.week), dtstart=dtstart, count=1)
    else:
        raise TypeError(f"Unsupported recurrence rule: {rule!r}")

    return _first_occurrence(schedule) == day


class RecurrenceService:
    def __init__(self, book: GoalBook, definitions: List[RecurringTaskDefinition],
                 allocate_id: Callable[[], int]):
        self.book = book
        self.definitions = definitions
        self.allocate_id = allocate_id

    def generate_daily_instances(self, today: date, now: datetime) -> List[GoalEntity]:
        """Sprawdza aktywne definicje i generuje zadania na dziś. Idempotentne w obrębie dnia."""
        generated = []

        for definition in self.definitions:
            if not definition.active:
                continue

            # 1. Znacznik definicji - już wygenerowano dzisiaj
            if definition.last_generated == today:
                continue

            if not fires_on(definition.rule, today):
                continue

            # 2. Skan duplikatów (np. restart po zapisie zadania, a przed zapisem znacznika)
            if self._existing_instance(definition, today) is not None:
                self._stamp(definition, today)
                continue

            # 3. Utwórz instancję zadania
            task = GoalEntity(
                id=self.allocate_id(),
                level=GoalLevel.DAILY,
                title=definition.title,
                description=definition.description,
                created_at=now,
                scheduled_for=today,
                origin_id=definition.id,
                parent_ids={pid for pid in definition.parent_ids
                            if self.book.get(GoalLevel.WEEKLY, pid) is not None},
            )
            # Checklista z szablonu - zawsze nieodhaczona
            task.checklist = [ChecklistItem(id=self.allocate_id(), text=text) for text in definition.checklist_template]

            self.book.add(task)
            self._stamp(definition, today)
            generated.append(task)
            logger.info("Generated recurring task '%s' for %s", task.title, today)

        return generated

    def _existing_instance(self, definition: RecurringTaskDefinition, today: date):
        for task in self.book.goals(GoalLevel.DAILY) + self.book.archived(GoalLevel.DAILY):
            if (task.origin_id == definition.id and task.title == definition.title
                    and task.scheduled_for == today):
                return task
        return None

    @staticmethod
    def _stamp(definition: RecurringTaskDefinition, today: date) -> None:
        definition.last_generated = today
        if isinstance(definition.rule, BiweeklyRule):
            definition.rule.last_fired = today
