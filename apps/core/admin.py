from django.contrib import admin
from .models import StateEntry


@admin.register(StateEntry)
class StateEntryAdmin(admin.ModelAdmin):
    list_display = ('key', 'updated_at')
    search_fields = ('key',)
    readonly_fields = ('created_at', 'updated_at')
