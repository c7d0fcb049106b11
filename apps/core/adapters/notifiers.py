# apps/core/adapters/notifiers.py
import logging
from typing import Any, Dict, List

from apps.core.domain.events import EventKind, GameEvent
from apps.core.ports.notifier import INotifier
from apps.core.signals import game_event, state_refreshed

logger = logging.getLogger(__name__)


class SignalNotifier(INotifier):
    """Wysyła zdarzenia sygnałami Django. Błędy odbiorców są tylko logowane."""

    def __init__(self, owner_key: str):
        self.owner_key = owner_key

    def publish(self, event: GameEvent) -> None:
        responses = game_event.send_robust(sender=self.__class__, key=self.owner_key, event=event)
        self._log_failures(responses)

    def refresh(self, summary: Dict[str, Any]) -> None:
        responses = state_refreshed.send_robust(sender=self.__class__, key=self.owner_key, summary=summary)
        self._log_failures(responses)

    @staticmethod
    def _log_failures(responses) -> None:
        for receiver, response in responses:
            if isinstance(response, Exception):
                logger.error("Receiver %s failed: %s", receiver, response)


class RecordingNotifier(INotifier):
    """Zbiera zdarzenia w liście (testy)."""

    def __init__(self):
        self.events: List[GameEvent] = []
        self.refreshes: List[Dict[str, Any]] = []

    def publish(self, event: GameEvent) -> None:
        self.events.append(event)

    def refresh(self, summary: Dict[str, Any]) -> None:
        self.refreshes.append(summary)

    def kinds(self) -> List[EventKind]:
        return [e.kind for e in self.events]

    def of_kind(self, kind: EventKind) -> List[GameEvent]:
        return [e for e in self.events if e.kind == kind]
