# apps/core/domain/results.py
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class ActionResult:
    """
    Wynik operacji użytkownika.

    Odmowa (ok=False) to nie wyjątek: stan nie został zmieniony, a `message`
    nadaje się do pokazania graczowi.
    """
    ok: bool
    reason: str = ""
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, message: str = "", **data) -> "ActionResult":
        return cls(ok=True, message=message, data=data)

    @classmethod
    def refused(cls, reason: str, message: str) -> "ActionResult":
        return cls(ok=False, reason=reason, message=message)

    def __bool__(self):
        return self.ok
