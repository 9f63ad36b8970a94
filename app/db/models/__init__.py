from app.db.models.base import Base
from app.db.models.freeze_ledger_entries import FreezeLedgerEntry
from app.db.models.outbox_events import StreakOutboxEvent
from app.db.models.streak_state import StreakState

__all__ = [
    "Base",
    "FreezeLedgerEntry",
    "StreakOutboxEvent",
    "StreakState",
]
