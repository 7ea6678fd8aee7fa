WEEKLY_FREEZE_ALLOWANCE = 1
FREEZE_BRIDGE_DAY_DIFF = 2

EVENT_STREAK_FREEZE_USED = "streak_freeze_used"
EVENT_STREAK_BROKEN = "streak_broken"
EVENT_STREAK_AT_RISK = "streak_at_risk"
