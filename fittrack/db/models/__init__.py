from fittrack.db.models.base import Base
from fittrack.db.models.processed_actions import ProcessedAction
from fittrack.db.models.streak_state import StreakState

__all__ = ["Base", "ProcessedAction", "StreakState"]
