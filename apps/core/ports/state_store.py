# apps/core/ports/state_store.py
from abc import ABC, abstractmethod
from typing import List, Optional


class StoreError(Exception):
    """Trwały magazyn nie przyjął zapisu albo odczytu."""


class StoreQuotaExceeded(StoreError):
    pass


class IStateStore(ABC):
    """Trwały magazyn klucz -> wartość (tekst). Jeden klucz = jeden snapshot."""

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Zapisuje całą wartość atomowo. Rzuca StoreError (np. StoreQuotaExceeded)."""
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        pass
