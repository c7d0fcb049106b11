# apps/core/adapters/orm_state_store.py
import logging
from typing import List, Optional

from django.db import DatabaseError, transaction

from apps.core.models import StateEntry
from apps.core.ports.state_store import IStateStore, StoreError, StoreQuotaExceeded

logger = logging.getLogger(__name__)


class DjangoStateStore(IStateStore):
    def __init__(self, max_bytes: Optional[int] = None):
        self.max_bytes = max_bytes

    def read(self, key: str) -> Optional[str]:
        try:
            entry = StateEntry.objects.filter(key=key).only('value').first()
        except DatabaseError as exc:
            raise StoreError(f"Cannot read {key}: {exc}") from exc
        return entry.value if entry else None

    def write(self, key: str, value: str) -> None:
        size = len(value.encode('utf-8'))
        if self.max_bytes is not None and size > self.max_bytes:
            raise StoreQuotaExceeded(f"Snapshot {key} has {size} bytes, limit is {self.max_bytes}")

        try:
            # Cały snapshot w jednej transakcji
            with transaction.atomic():
                StateEntry.objects.update_or_create(key=key, defaults={'value': value})
        except DatabaseError as exc:
            raise StoreError(f"Cannot write {key}: {exc}") from exc

    def keys(self, prefix: str = "") -> List[str]:
        return list(
            StateEntry.objects.filter(key__startswith=prefix).order_by('key').values_list('key', flat=True)
        )
