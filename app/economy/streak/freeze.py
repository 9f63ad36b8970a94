from __future__ import annotations

from dataclasses import replace
from datetime import date

from app.economy.streak.constants import AUTO_FREEZE_MAX_MISSED_DAYS
from app.economy.streak.errors import FreezeGapTooLargeError, InsufficientFreezeCreditsError
from app.economy.streak.ledger import try_debit
from app.economy.streak.rules import cover_missed_days
from app.economy.streak.types import (
    FreezeBalance,
    FreezeSelection,
    FreezeType,
    StreakEvaluation,
    StreakSnapshot,
    StreakStatus,
)


def is_auto_eligible(evaluation: StreakEvaluation, balance: FreezeBalance) -> bool:
    return (
        evaluation.status == StreakStatus.AT_RISK
        and evaluation.missed_days == AUTO_FREEZE_MAX_MISSED_DAYS
        and balance.auto >= 1
    )


def recommend_freeze_type(evaluation: StreakEvaluation, balance: FreezeBalance) -> FreezeType | None:
    if evaluation.status != StreakStatus.AT_RISK:
        return None
    if is_auto_eligible(evaluation, balance):
        return FreezeType.AUTO
    if balance.manual >= evaluation.missed_days:
        return FreezeType.MANUAL
    return None


def select_freeze(evaluation: StreakEvaluation, balance: FreezeBalance) -> FreezeSelection | None:
    """Picks what to spend for the evaluated gap; None when nothing needs forgiving.

    Auto freezes win for a single missed day, otherwise manual freezes must
    cover every missed day. The caller's preferred type does not matter.
    """
    if evaluation.missed_days == 0:
        return None
    if evaluation.status == StreakStatus.BROKEN:
        raise FreezeGapTooLargeError(f"missed_days={evaluation.missed_days}")

    if is_auto_eligible(evaluation, balance):
        return FreezeSelection(freeze_type=FreezeType.AUTO, amount=1, missed_days=evaluation.missed_days)
    if balance.manual >= evaluation.missed_days:
        return FreezeSelection(
            freeze_type=FreezeType.MANUAL,
            amount=evaluation.missed_days,
            missed_days=evaluation.missed_days,
        )
    raise InsufficientFreezeCreditsError(
        f"missed_days={evaluation.missed_days} manual={balance.manual} auto={balance.auto}"
    )


def apply_freeze(
    snapshot: StreakSnapshot,
    *,
    evaluation: StreakEvaluation,
    through: date,
) -> tuple[StreakSnapshot, FreezeSelection | None]:
    selection = select_freeze(evaluation, snapshot.freezes)
    if selection is None:
        return snapshot, None

    freezes = try_debit(snapshot.freezes, freeze_type=selection.freeze_type, amount=selection.amount)
    covered = cover_missed_days(snapshot, through=through)
    return replace(covered, freezes=freezes), selection
