from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.freeze_ledger_entries import FreezeLedgerEntry
from app.db.repo.freeze_ledger_repo import FreezeLedgerRepo
from app.economy.streak.errors import InsufficientFreezeCreditsError, StreakInvalidInputError
from app.economy.streak.types import FreezeBalance, FreezeHistoryEntry, FreezeType

LEDGER_SOURCE_GRANT = "GRANT"
LEDGER_SOURCE_USER_FREEZE = "USER_FREEZE"
LEDGER_SOURCE_CHECKIN_AUTO = "CHECKIN_AUTO"


def try_debit(balance: FreezeBalance, *, freeze_type: FreezeType, amount: int) -> FreezeBalance:
    if amount <= 0:
        raise StreakInvalidInputError("debit amount must be positive")

    available = balance.available(freeze_type)
    if available < amount:
        raise InsufficientFreezeCreditsError(
            f"{freeze_type.value} freezes available={available} requested={amount}"
        )

    if freeze_type == FreezeType.AUTO:
        return replace(balance, auto=balance.auto - amount)
    return replace(balance, manual=balance.manual - amount)


def credit(balance: FreezeBalance, *, freeze_type: FreezeType, amount: int) -> tuple[FreezeBalance, int, int]:
    """Adds freezes; manual ones saturate at capacity and the overflow is discarded.

    Returns the new balance, the credited amount and the discarded amount.
    """
    if amount <= 0:
        raise StreakInvalidInputError("credit amount must be positive")

    if freeze_type == FreezeType.AUTO:
        return replace(balance, auto=balance.auto + amount), amount, 0

    room = max(0, balance.max_manual - balance.manual)
    credited = min(room, amount)
    return replace(balance, manual=balance.manual + credited), credited, amount - credited


def set_manual_capacity(balance: FreezeBalance, *, max_manual: int) -> FreezeBalance:
    if max_manual < balance.manual:
        raise StreakInvalidInputError(
            f"capacity {max_manual} is below the current manual balance {balance.manual}"
        )
    return replace(balance, max_manual=max_manual)


async def append_ledger_entry(
    session: AsyncSession,
    *,
    user_id: int,
    freeze_type: FreezeType,
    direction: str,
    amount: int,
    balance_after: int,
    resulting_streak: int,
    source: str,
    idempotency_key: str,
    now_utc: datetime,
    days_covered: int | None = None,
    metadata: dict[str, object] | None = None,
) -> FreezeLedgerEntry:
    return await FreezeLedgerRepo.create(
        session,
        entry=FreezeLedgerEntry(
            user_id=user_id,
            freeze_type=freeze_type.name,
            direction=direction,
            amount=amount,
            days_covered=days_covered,
            resulting_streak=resulting_streak,
            balance_after=balance_after,
            source=source,
            idempotency_key=idempotency_key,
            metadata_=metadata or {},
            created_at=now_utc,
        ),
    )


def history_entry_from_model(entry: FreezeLedgerEntry) -> FreezeHistoryEntry:
    return FreezeHistoryEntry(
        freeze_type=FreezeType[entry.freeze_type],
        direction=entry.direction,
        amount=entry.amount,
        days_covered=entry.days_covered,
        resulting_streak=entry.resulting_streak,
        balance_after=entry.balance_after,
        source=entry.source,
        created_at=entry.created_at,
    )
