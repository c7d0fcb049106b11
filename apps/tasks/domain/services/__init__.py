# Eksport przez __init__, żeby `from apps.tasks.domain.services import RecurrenceService` działało
from .recurrence import RecurrenceService, fires_on
from .rollover import RolloverReport, RolloverService

__all__ = ["RecurrenceService", "fires_on", "RolloverReport", "RolloverService"]
