from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.streak_state import StreakState


class StreakRepo:
    @staticmethod
    async def get_by_user_id(session: AsyncSession, user_id: int) -> StreakState | None:
        stmt = select(StreakState).where(StreakState.user_id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_state(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
        max_manual_freezes: int,
        last_checkin_local_date: date | None = None,
        current_streak: int = 0,
    ) -> StreakState:
        """Inserts the user's row; a concurrent insert that won the race is returned instead."""
        state = StreakState(
            user_id=user_id,
            last_checkin_local_date=last_checkin_local_date,
            current_streak=current_streak,
            longest_streak=current_streak,
            manual_freezes=0,
            auto_freezes=0,
            max_manual_freezes=max_manual_freezes,
            created_at=now_utc,
            updated_at=now_utc,
        )
        try:
            async with session.begin_nested():
                session.add(state)
                await session.flush()
        except IntegrityError:
            existing = await StreakRepo.get_by_user_id(session, user_id)
            if existing is None:
                raise
            return existing
        return state
