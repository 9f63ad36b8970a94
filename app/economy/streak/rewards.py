from __future__ import annotations

from datetime import date, datetime
from typing import Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.outbox_events_repo import StreakOutboxRepo
from app.economy.streak.constants import STREAK_MILESTONE_EVENT_TYPE, STREAK_MILESTONES

logger = structlog.get_logger(__name__)


class RewardHook(Protocol):
    async def on_streak_milestone(
        self,
        session: AsyncSession,
        *,
        user_id: int,
        streak_value: int,
        milestone: int,
        local_date: date,
        happened_at: datetime,
    ) -> None: ...


def milestones_crossed(previous_streak: int, new_streak: int) -> tuple[int, ...]:
    """Milestones in (previous_streak, new_streak]; empty unless the streak grew."""
    if new_streak <= previous_streak:
        return ()
    return tuple(value for value in STREAK_MILESTONES if previous_streak < value <= new_streak)


def milestone_dedupe_key(*, user_id: int, milestone: int, local_date: date) -> str:
    return f"streak_milestone:{user_id}:{milestone}:{local_date.isoformat()}"


class OutboxRewardHook:
    """Queues milestone rewards in the outbox within the caller's transaction."""

    async def on_streak_milestone(
        self,
        session: AsyncSession,
        *,
        user_id: int,
        streak_value: int,
        milestone: int,
        local_date: date,
        happened_at: datetime,
    ) -> None:
        created = await StreakOutboxRepo.create_if_absent(
            session,
            event_type=STREAK_MILESTONE_EVENT_TYPE,
            dedupe_key=milestone_dedupe_key(user_id=user_id, milestone=milestone, local_date=local_date),
            payload={
                "user_id": user_id,
                "streak_value": streak_value,
                "milestone": milestone,
                "local_date": local_date.isoformat(),
                "happened_at": happened_at.isoformat(),
            },
            created_at=happened_at,
        )
        logger.info(
            "streak_milestone_queued" if created else "streak_milestone_duplicate_skipped",
            user_id=user_id,
            milestone=milestone,
            streak_value=streak_value,
        )


async def fire_milestone_rewards(
    session: AsyncSession,
    hook: RewardHook,
    *,
    user_id: int,
    previous_streak: int,
    new_streak: int,
    local_date: date,
    happened_at: datetime,
) -> tuple[int, ...]:
    reached = milestones_crossed(previous_streak, new_streak)
    for milestone in reached:
        await hook.on_streak_milestone(
            session,
            user_id=user_id,
            streak_value=new_streak,
            milestone=milestone,
            local_date=local_date,
            happened_at=happened_at,
        )
    return reached
