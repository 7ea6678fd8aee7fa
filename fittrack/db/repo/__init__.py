from fittrack.db.repo.processed_actions_repo import ProcessedActionsRepo
from fittrack.db.repo.streak_repo import StreakRepo

__all__ = ["ProcessedActionsRepo", "StreakRepo"]
