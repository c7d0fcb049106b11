# apps/rewards/domain/focus.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class FocusState(str, Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    PAUSED = 'paused'
    COMPLETED = 'completed'


@dataclass
class FocusSession:
    planned_seconds: int = 0
    remaining_seconds: int = 0
    state: FocusState = FocusState.IDLE
    last_tick_at: Optional[datetime] = None

    @property
    def planned_minutes(self) -> int:
        return self.planned_seconds // 60
