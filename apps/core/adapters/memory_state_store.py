# apps/core/adapters/memory_state_store.py
from typing import Dict, List, Optional

from apps.core.ports.state_store import IStateStore, StoreQuotaExceeded


class InMemoryStateStore(IStateStore):
    """Magazyn w pamięci (testy, uruchomienia jednorazowe)."""

    def __init__(self, max_bytes: Optional[int] = None):
        self.data: Dict[str, str] = {}
        self.max_bytes = max_bytes
        self.writes = 0

    def read(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        if self.max_bytes is not None and len(value.encode('utf-8')) > self.max_bytes:
            raise StoreQuotaExceeded(f"Snapshot {key} exceeds {self.max_bytes} bytes")
        self.data[key] = value
        self.writes += 1

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self.data if k.startswith(prefix))
