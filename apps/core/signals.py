# apps/core/signals.py
import logging

from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

# Argumenty: key (klucz snapshotu gracza), event (GameEvent)
game_event = Signal()

# Argumenty: key, summary (dict) - jeden sygnał na zapis (po debounce)
state_refreshed = Signal()


@receiver(game_event)
def log_game_event(sender, key, event, **kwargs):
    """Domyślny odbiorca: zapis do logu. Warstwa UI podpina własne odbiorniki."""
    logger.info("[%s] %s %s", key, event.kind.value, event.payload)
