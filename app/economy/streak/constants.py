DEFAULT_REFERENCE_TIMEZONE = "UTC"

# A gap of one day (checked in yesterday) is still normal cadence.
ACTIVE_MAX_GAP_DAYS = 1
# Gaps up to this many days can be forgiven with freezes; beyond it the streak is broken.
FREEZE_WINDOW_MAX_GAP_DAYS = 8
AUTO_FREEZE_MAX_MISSED_DAYS = 1

DEFAULT_MAX_MANUAL_FREEZES = 3
MAX_MANUAL_FREEZES_LIMIT = 99
MAX_FREEZE_GRANT_AMOUNT = 50
MAX_REQUESTED_MISSED_DAYS = 3650

STREAK_MILESTONES = (3, 7, 14, 30, 100, 365)

CONFLICT_RETRY_MAX_WAIT_SEC = 0.05

FREEZE_HISTORY_DEFAULT_LIMIT = 50
FREEZE_HISTORY_MAX_LIMIT = 200

STREAK_MILESTONE_EVENT_TYPE = "streak_milestone_reached"
REWARD_DELIVERY_MAX_ATTEMPTS = 5
