# apps/core/domain/events.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class EventKind(str, Enum):
    ACHIEVEMENT = 'achievement'  # ukończenie celu; payload.tier = poziom
    LEVEL_UP = 'level_up'
    SPELL = 'spell'
    BOSS_DAMAGE = 'boss_damage'
    BOSS_DEFEATED = 'boss_defeated'
    CRYSTAL_EARN = 'crystal_earn'
    CHEST_OPENED = 'chest_opened'
    FOCUS_COMPLETE = 'focus_complete'
    ROLLOVER = 'rollover'
    NOTICE = 'notice'  # odmowa operacji albo problem z zapisem


@dataclass
class GameEvent:
    kind: EventKind
    payload: Dict[str, Any] = field(default_factory=dict)
