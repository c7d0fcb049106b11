# apps/core/conf.py
from typing import Any, Dict

from django.conf import settings

DEFAULTS = {
    "STATE_KEY_PREFIX": "life_quest:state",
    "SAVE_DEBOUNCE_SECONDS": 0.5,
    "EFFECT_SWEEP_SECONDS": 60,
    "STORE_MAX_BYTES": None,
    "DEFAULT_FOCUS_MINUTES": 25,
}


def game_settings() -> Dict[str, Any]:
    """Ustawienia silnika: wartości domyślne nadpisane przez settings.LIFE_QUEST."""
    merged = dict(DEFAULTS)
    merged.update(getattr(settings, "LIFE_QUEST", {}))
    return merged


def state_key(user_id: int) -> str:
    return f"{game_settings()['STATE_KEY_PREFIX']}:{user_id}"


def is_backup_key(key: str) -> bool:
    return ":backup:" in key
