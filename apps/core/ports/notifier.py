# apps/core/ports/notifier.py
from abc import ABC, abstractmethod
from typing import Any, Dict

from apps.core.domain.events import GameEvent


class INotifier(ABC):
    """Współpracownik od renderowania. Wywołania typu fire-and-forget."""

    @abstractmethod
    def publish(self, event: GameEvent) -> None:
        pass

    @abstractmethod
    def refresh(self, summary: Dict[str, Any]) -> None:
        """Stan się zmienił i został zapisany - czas odświeżyć widok."""
        pass
