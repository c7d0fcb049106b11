# apps/core/application/factory.py
from typing import Optional

from django.conf import settings

from apps.core.adapters.clocks import SystemClock
from apps.core.adapters.notifiers import SignalNotifier
from apps.core.adapters.orm_state_store import DjangoStateStore
from apps.core.application.game_service import GameService
from apps.core.application.persistence import DebouncedSnapshotWriter, load_or_recover
from apps.core.conf import game_settings, state_key
from apps.core.domain.snapshot import SnapshotCodec
from apps.core.ports.clock import IClock


def build_for_key(key: str, clock: Optional[IClock] = None) -> GameService:
    """Składa serwis gry dla jednego snapshotu: ORM + zegar systemowy + sygnały."""
    conf = game_settings()
    store = DjangoStateStore(max_bytes=conf['STORE_MAX_BYTES'])
    clock = clock or SystemClock(settings.TIME_ZONE)
    codec = SnapshotCodec()
    notifier = SignalNotifier(owner_key=key)

    state = load_or_recover(store, key, codec, clock.now())
    writer = DebouncedSnapshotWriter(store, key, codec, notifier, conf['SAVE_DEBOUNCE_SECONDS'])
    return GameService(
        state, clock, notifier,
        writer=writer,
        sweep_seconds=conf['EFFECT_SWEEP_SECONDS'],
        default_focus_minutes=conf['DEFAULT_FOCUS_MINUTES'],
    )


def build_game_service(user_id: int, clock: Optional[IClock] = None) -> GameService:
    return build_for_key(state_key(user_id), clock)
