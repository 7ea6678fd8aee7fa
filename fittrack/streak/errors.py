class StreakError(Exception):
    pass


class StreakIdempotencyConflictError(StreakError):
    pass
