# apps/goals/domain/entities.py
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Set


class GoalLevel(str, Enum):
    LIFE = 'life'
    YEARLY = 'yearly'
    MONTHLY = 'monthly'
    WEEKLY = 'weekly'
    DAILY = 'daily'
    SIDE_QUEST = 'side_quest'
    HABIT = 'habit'


# Hierarchia od góry do dołu. Side-questy i nawyki są płaskie.
HIERARCHY = [GoalLevel.LIFE, GoalLevel.YEARLY, GoalLevel.MONTHLY, GoalLevel.WEEKLY, GoalLevel.DAILY]
PRIORITY_LEVELS = {GoalLevel.YEARLY, GoalLevel.MONTHLY, GoalLevel.WEEKLY}
BOSS_LEVELS = {GoalLevel.LIFE, GoalLevel.YEARLY}


def parent_level(level: GoalLevel) -> Optional[GoalLevel]:
    """Poziom rodzica (jeden wyżej) albo None dla Life i poziomów płaskich."""
    if level not in HIERARCHY or level == GoalLevel.LIFE:
        return None
    return HIERARCHY[HIERARCHY.index(level) - 1]


def child_level(level: GoalLevel) -> Optional[GoalLevel]:
    if level not in HIERARCHY or level == GoalLevel.DAILY:
        return None
    return HIERARCHY[HIERARCHY.index(level) + 1]


class BossState(str, Enum):
    DORMANT = 'dormant'
    ACTIVE = 'active'
    DEFEATED = 'defeated'


@dataclass
class ChecklistItem:
    id: int
    text: str
    completed: bool = False


@dataclass
class GoalEntity:
    id: int
    level: GoalLevel
    title: str
    created_at: datetime
    description: str = ""
    completed: bool = False
    progress: int = 0  # 0-100, liczone tylko powyżej Daily
    priority: Optional[int] = None  # 1-5, tylko Yearly/Monthly/Weekly
    checklist: List[ChecklistItem] = field(default_factory=list)

    # Relacje (tylko ID). Zbiór rodziców rośnie wyłącznie przez sumę.
    parent_ids: Set[int] = field(default_factory=set)
    legacy_parent_id: Optional[int] = None  # stary format: jeden rodzic

    # Zadania generowane przez harmonogram
    scheduled_for: Optional[date] = None
    origin_id: Optional[int] = None

    # Nagroda (i obrażenia bossa) wypłacana tylko raz
    reward_claimed: bool = False

    # Boss (tylko Life/Yearly)
    is_boss: bool = False
    boss_max_hp: int = 0
    current_hp: int = 0
    total_damage_dealt: int = 0
    boss_defeated: bool = False

    @property
    def boss_state(self) -> BossState:
        if not self.is_boss:
            return BossState.DORMANT
        if self.boss_defeated:
            return BossState.DEFEATED
        return BossState.ACTIVE

    @property
    def has_open_checklist(self) -> bool:
        return any(not item.completed for item in self.checklist)

    def is_child_of(self, parent_id: int) -> bool:
        return parent_id in self.parent_ids or self.legacy_parent_id == parent_id


@dataclass
class ArchivedGoal:
    goal: GoalEntity
    archived_at: datetime
    reason: str = 'manual'  # manual, weekly_rollover, bulk_archive
