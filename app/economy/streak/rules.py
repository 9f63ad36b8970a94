from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

from app.economy.streak.constants import ACTIVE_MAX_GAP_DAYS, FREEZE_WINDOW_MAX_GAP_DAYS
from app.economy.streak.time import day_difference
from app.economy.streak.types import StreakEvaluation, StreakSnapshot, StreakStatus


def evaluate_streak(snapshot: StreakSnapshot, *, today: date) -> StreakEvaluation:
    """Classifies the streak as of ``today`` without touching the snapshot.

    A record that was never checked in, or whose streak is already zero, has
    nothing to lose and is always active. A check-in day ahead of ``today``
    (the user moved west across timezones) counts as the same day.
    """
    if snapshot.last_checkin_local_date is None:
        return StreakEvaluation(status=StreakStatus.ACTIVE, missed_days=0, gap_days=None)

    gap = max(0, day_difference(today, snapshot.last_checkin_local_date))
    if snapshot.current_streak == 0 or gap <= ACTIVE_MAX_GAP_DAYS:
        return StreakEvaluation(status=StreakStatus.ACTIVE, missed_days=0, gap_days=gap)

    missed_days = gap - 1
    if gap <= FREEZE_WINDOW_MAX_GAP_DAYS:
        return StreakEvaluation(status=StreakStatus.AT_RISK, missed_days=missed_days, gap_days=gap)
    return StreakEvaluation(status=StreakStatus.BROKEN, missed_days=missed_days, gap_days=gap)


def record_checkin(snapshot: StreakSnapshot, *, today: date) -> tuple[StreakSnapshot, bool]:
    """Counts ``today`` as a qualifying day.

    Callers resolve an at-risk gap first; any gap still present here means the
    streak was lost and a new one starts at 1.
    """
    last_day = snapshot.last_checkin_local_date
    if last_day is not None and day_difference(today, last_day) <= 0:
        return snapshot, False

    if last_day is None or snapshot.current_streak == 0:
        current_streak = 1
    elif day_difference(today, last_day) == 1:
        current_streak = snapshot.current_streak + 1
    else:
        current_streak = 1

    updated = replace(
        snapshot,
        current_streak=current_streak,
        longest_streak=max(snapshot.longest_streak, current_streak),
        last_checkin_local_date=today,
    )
    return updated, True


def cover_missed_days(snapshot: StreakSnapshot, *, through: date) -> StreakSnapshot:
    """Moves the check-in day forward so the missed days no longer count; counters are untouched."""
    return replace(snapshot, last_checkin_local_date=through)


def day_before(day: date) -> date:
    return day - timedelta(days=1)


def reset_streak(snapshot: StreakSnapshot) -> StreakSnapshot:
    if snapshot.current_streak == 0:
        return snapshot
    return replace(snapshot, current_streak=0)
