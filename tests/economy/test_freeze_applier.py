from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from app.economy.streak.errors import FreezeGapTooLargeError, InsufficientFreezeCreditsError
from app.economy.streak.freeze import apply_freeze, recommend_freeze_type, select_freeze
from app.economy.streak.rules import evaluate_streak
from app.economy.streak.types import FreezeBalance, FreezeType, StreakSnapshot

UTC = timezone.utc
LAST_CHECKIN = date(2024, 1, 1)


def snapshot(*, manual: int, auto: int, current_streak: int = 5) -> StreakSnapshot:
    return StreakSnapshot(
        user_id=7,
        last_checkin_local_date=LAST_CHECKIN,
        current_streak=current_streak,
        longest_streak=5,
        freezes=FreezeBalance(manual=manual, auto=auto, max_manual=3),
        updated_at=datetime(2024, 1, 1, 9, 0, tzinfo=UTC),
    )


def test_manual_freeze_covers_two_missed_days() -> None:
    state = snapshot(manual=3, auto=0)
    today = date(2024, 1, 4)
    evaluation = evaluate_streak(state, today=today)

    updated, selection = apply_freeze(state, evaluation=evaluation, through=today)

    assert selection is not None
    assert selection.freeze_type == FreezeType.MANUAL
    assert selection.amount == 2
    assert updated.freezes.manual == 1
    assert updated.current_streak == 5
    assert updated.longest_streak == 5
    assert updated.last_checkin_local_date == today


def test_manual_freeze_with_too_few_credits_fails() -> None:
    state = snapshot(manual=1, auto=0)
    evaluation = evaluate_streak(state, today=date(2024, 1, 4))

    with pytest.raises(InsufficientFreezeCreditsError):
        apply_freeze(state, evaluation=evaluation, through=date(2024, 1, 4))


def test_broken_gap_is_rejected_even_with_enough_credits() -> None:
    state = snapshot(manual=3, auto=9)
    evaluation = evaluate_streak(state, today=date(2024, 1, 11))

    with pytest.raises(FreezeGapTooLargeError):
        select_freeze(evaluation, state.freezes)


def test_single_missed_day_prefers_auto_credit() -> None:
    state = snapshot(manual=3, auto=1)
    evaluation = evaluate_streak(state, today=date(2024, 1, 3))

    selection = select_freeze(evaluation, state.freezes)

    assert selection is not None
    assert selection.freeze_type == FreezeType.AUTO
    assert selection.amount == 1


def test_single_missed_day_falls_back_to_manual_without_auto() -> None:
    state = snapshot(manual=1, auto=0)
    evaluation = evaluate_streak(state, today=date(2024, 1, 3))

    selection = select_freeze(evaluation, state.freezes)

    assert selection is not None
    assert selection.freeze_type == FreezeType.MANUAL


def test_auto_credits_never_cover_multi_day_gaps() -> None:
    state = snapshot(manual=0, auto=5)
    evaluation = evaluate_streak(state, today=date(2024, 1, 4))

    with pytest.raises(InsufficientFreezeCreditsError):
        select_freeze(evaluation, state.freezes)


def test_nothing_to_forgive_selects_nothing() -> None:
    state = snapshot(manual=3, auto=1)
    evaluation = evaluate_streak(state, today=date(2024, 1, 2))

    updated, selection = apply_freeze(state, evaluation=evaluation, through=date(2024, 1, 2))

    assert selection is None
    assert updated is state


def test_conservation_of_credits_across_apply() -> None:
    state = snapshot(manual=3, auto=2)
    evaluation = evaluate_streak(state, today=date(2024, 1, 5))

    updated, selection = apply_freeze(state, evaluation=evaluation, through=date(2024, 1, 5))

    assert selection is not None
    assert updated.freezes.manual + selection.amount == state.freezes.manual
    assert updated.freezes.auto == state.freezes.auto


@pytest.mark.parametrize(
    ("today", "manual", "auto", "expected"),
    [
        (date(2024, 1, 2), 3, 1, None),
        (date(2024, 1, 3), 0, 1, FreezeType.AUTO),
        (date(2024, 1, 4), 2, 1, FreezeType.MANUAL),
        (date(2024, 1, 4), 1, 1, None),
        (date(2024, 1, 11), 3, 1, None),
    ],
)
def test_recommend_freeze_type(today: date, manual: int, auto: int, expected: FreezeType | None) -> None:
    state = snapshot(manual=manual, auto=auto)

    assert recommend_freeze_type(evaluate_streak(state, today=today), state.freezes) == expected
