import random
from datetime import datetime

import pytz

from apps.core.adapters.clocks import FixedClock
from apps.core.adapters.memory_state_store import InMemoryStateStore
from apps.core.adapters.notifiers import RecordingNotifier
from apps.core.application.game_service import CreateGoalInput, GameService
from apps.core.application.persistence import DebouncedSnapshotWriter
from apps.core.domain.snapshot import SnapshotCodec
from apps.core.domain.state import GameState
from apps.goals.domain.entities import GoalEntity, GoalLevel
from apps.rewards.domain.effects import activate, get_definition

# Poniedziałek
NOW = datetime(2024, 3, 4, 9, 0, tzinfo=pytz.UTC)
STATE_KEY = 'life_quest:state:1'


def make_service(state=None, now=NOW, seed=7, store=None, max_bytes=None):
    store = store if store is not None else InMemoryStateStore(max_bytes=max_bytes)
    notifier = RecordingNotifier()
    writer = DebouncedSnapshotWriter(store, STATE_KEY, SnapshotCodec(), notifier, window_seconds=0.5)
    return GameService(
        state or GameState.new_game(),
        FixedClock(now),
        notifier,
        writer=writer,
        rng=random.Random(seed),
    )


def create(service, level, title="Cel", parents=(), priority=None):
    result = service.create_goal(CreateGoalInput(
        level=level, title=title, parent_ids=list(parents), priority=priority,
    ))
    assert result.ok, result.message
    return service.state.book.find(result.data['goal_id'])


def goal(goal_id, level=GoalLevel.DAILY, now=NOW, **kwargs):
    return GoalEntity(id=goal_id, level=level, title=f"{level.value} {goal_id}", created_at=now, **kwargs)


def give_effect(state, effect_type, now=NOW):
    definition = get_definition(effect_type)
    return state.effects.add(definition, activate(definition, now))
