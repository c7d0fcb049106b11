# apps/core/models.py
from django.db import models


class StateEntry(models.Model):
    """
    Trwały magazyn klucz -> wartość.
    Pod kluczem gracza leży cały snapshot gry (JSON), obok kopie zapasowe.
    """
    key = models.CharField(max_length=200, unique=True)
    value = models.TextField()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['key']

    def __str__(self):
        return self.key
