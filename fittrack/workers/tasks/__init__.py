from fittrack.workers.tasks.retention_cleanup import purge_processed_actions
from fittrack.workers.tasks.streak_reminders import send_streak_reminders

__all__ = ["purge_processed_actions", "send_streak_reminders"]
