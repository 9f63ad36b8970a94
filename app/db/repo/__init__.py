from app.db.repo.freeze_ledger_repo import FreezeLedgerRepo
from app.db.repo.outbox_events_repo import StreakOutboxRepo
from app.db.repo.streak_repo import StreakRepo

__all__ = [
    "FreezeLedgerRepo",
    "StreakOutboxRepo",
    "StreakRepo",
]
