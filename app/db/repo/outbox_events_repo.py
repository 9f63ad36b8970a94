from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.outbox_events import StreakOutboxEvent


class StreakOutboxRepo:
    @staticmethod
    async def create_if_absent(
        session: AsyncSession,
        *,
        event_type: str,
        dedupe_key: str,
        payload: dict[str, object],
        created_at: datetime,
    ) -> bool:
        stmt = (
            insert(StreakOutboxEvent)
            .values(
                event_type=event_type,
                dedupe_key=dedupe_key,
                payload=payload,
                status="PENDING",
                attempts=0,
                created_at=created_at,
            )
            .on_conflict_do_nothing(index_elements=[StreakOutboxEvent.dedupe_key])
            .returning(StreakOutboxEvent.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_pending_for_update(
        session: AsyncSession,
        *,
        event_type: str,
        limit: int,
    ) -> list[StreakOutboxEvent]:
        stmt = (
            select(StreakOutboxEvent)
            .where(
                StreakOutboxEvent.event_type == event_type,
                StreakOutboxEvent.status == "PENDING",
            )
            .order_by(StreakOutboxEvent.created_at.asc(), StreakOutboxEvent.id.asc())
            .limit(max(1, int(limit)))
            .with_for_update(skip_locked=True)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_by_status(session: AsyncSession, *, event_type: str) -> dict[str, int]:
        stmt = (
            select(StreakOutboxEvent.status, func.count(StreakOutboxEvent.id))
            .where(StreakOutboxEvent.event_type == event_type)
            .group_by(StreakOutboxEvent.status)
        )
        result = await session.execute(stmt)
        return {str(status): int(total) for status, total in result.all()}
