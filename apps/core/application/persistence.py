# apps/core/application/persistence.py
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from apps.core.domain.events import EventKind, GameEvent
from apps.core.domain.snapshot import SnapshotCodec, SnapshotDecodeError
from apps.core.domain.state import GameState
from apps.core.ports.notifier import INotifier
from apps.core.ports.state_store import IStateStore, StoreError

logger = logging.getLogger(__name__)


def backup_key(key: str, now: datetime) -> str:
    return f"{key}:backup:{now.strftime('%Y%m%dT%H%M%S')}"


def load_or_recover(store: IStateStore, key: str, codec: SnapshotCodec, now: datetime) -> GameState:
    """
    Wczytuje snapshot. Brak -> nowa gra. Nieczytelny -> kopia oryginału pod
    kluczem zapasowym i nowa gra. Pojedyncze złe pola dostają wartości domyślne.
    """
    try:
        raw = store.read(key)
    except StoreError as exc:
        logger.error("Cannot read snapshot %s: %s", key, exc)
        return GameState.new_game()

    if raw is None:
        return GameState.new_game()

    try:
        return codec.loads(raw, now)
    except SnapshotDecodeError as exc:
        backup = backup_key(key, now)
        logger.warning("Snapshot %s unreadable (%s), preserved as %s", key, exc, backup)
        try:
            store.write(backup, raw)
        except StoreError as store_exc:
            logger.error("Cannot preserve unreadable snapshot %s: %s", key, store_exc)
        return GameState.new_game()


class DebouncedSnapshotWriter:
    """
    Zbiera serię mutacji w jeden zapis i jedno odświeżenie widoku.

    Każda mutacja przesuwa termin zapisu o okno debounce. Nieudany zapis
    zostawia stan "brudny" - następna mutacja ponowi próbę.
    """

    def __init__(self, store: IStateStore, key: str, codec: SnapshotCodec,
                 notifier: Optional[INotifier] = None, window_seconds: float = 0.5):
        self.store = store
        self.key = key
        self.codec = codec
        self.notifier = notifier
        self.window = timedelta(seconds=window_seconds)
        self.dirty = False
        self.due_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    def mark_dirty(self, now: datetime) -> None:
        self.dirty = True
        self.due_at = now + self.window

    def flush_if_due(self, state: GameState, now: datetime, summary: Optional[Dict[str, Any]] = None) -> bool:
        if not self.dirty or self.due_at is None or now < self.due_at:
            return False
        return self.flush(state, summary)

    def flush(self, state: GameState, summary: Optional[Dict[str, Any]] = None) -> bool:
        if not self.dirty:
            return False

        try:
            self.store.write(self.key, self.codec.dumps(state))
        except StoreError as exc:
            # Stan w pamięci zostaje nietknięty
            self.last_error = str(exc)
            logger.error("Snapshot write failed for %s: %s", self.key, exc)
            self._notify_failure(exc)
            return False

        self.dirty = False
        self.due_at = None
        self.last_error = None
        if self.notifier is not None:
            try:
                self.notifier.refresh(summary or {})
            except Exception:
                logger.exception("Refresh notification failed")
        return True

    def _notify_failure(self, exc: StoreError) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.publish(GameEvent(EventKind.NOTICE, {
                'reason': 'save_failed',
                'message': "Nie udało się zapisać postępu. Spróbujemy ponownie przy następnej zmianie.",
                'error': str(exc),
            }))
        except Exception:
            logger.exception("Failure notification failed")
