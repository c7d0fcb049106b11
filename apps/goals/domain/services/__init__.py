# Eksport serwisów, żeby importy typu `from apps.goals.domain.services import ...` działały
from .graph import GoalBook
from .propagation import ProgressPropagationService

__all__ = ["GoalBook", "ProgressPropagationService"]
