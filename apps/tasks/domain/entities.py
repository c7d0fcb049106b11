# apps/tasks/domain/entities.py
from dataclasses import dataclass, field
from datetime import date
from typing import FrozenSet, List, Optional, Set, Union

# Dni tygodnia jak w datetime.weekday(): poniedziałek=0 ... niedziela=6
WEEKDAYS = range(7)


@dataclass
class WeeklyRule:
    days: FrozenSet[int]

    def __post_init__(self):
        self.days = frozenset(self.days)
        if not self.days or not self.days.issubset(WEEKDAYS):
            raise ValueError("Weekly rule needs weekdays in 0..6")


@dataclass
class BiweeklyRule:
    day: int
    last_fired: Optional[date] = None  # własny znacznik reguły, nie definicji

    def __post_init__(self):
        if self.day not in WEEKDAYS:
            raise ValueError("Biweekly rule needs a weekday in 0..6")


@dataclass
class MonthlyDateRule:
    day: int

    def __post_init__(self):
        # Tylko 1-28, żeby reguła odpalała w każdym miesiącu
        if not 1 <= self.day <= 28:
            raise ValueError("Monthly date rule needs a day of month in 1..28")


@dataclass
class MonthlyWeekdayRule:
    week: int  # 1-4 albo -1 (ostatni w miesiącu)
    day: int

    def __post_init__(self):
        if self.week not in (1, 2, 3, 4, -1):
            raise ValueError("Monthly weekday rule needs week in 1..4 or -1")
        if self.day not in WEEKDAYS:
            raise ValueError("Monthly weekday rule needs a weekday in 0..6")


RecurrenceRule = Union[WeeklyRule, BiweeklyRule, MonthlyDateRule, MonthlyWeekdayRule]


@dataclass
class RecurringTaskDefinition:
    id: int
    title: str
    rule: RecurrenceRule
    description: str = ""
    active: bool = True
    last_generated: Optional[date] = None

    # Kopiowane do każdej instancji zadania
    parent_ids: Set[int] = field(default_factory=set)
    checklist_template: List[str] = field(default_factory=list)
