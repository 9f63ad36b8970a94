from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.freeze_ledger_entries import FreezeLedgerEntry


class FreezeLedgerRepo:
    @staticmethod
    async def get_by_idempotency_key(
        session: AsyncSession, idempotency_key: str
    ) -> FreezeLedgerEntry | None:
        stmt = select(FreezeLedgerEntry).where(FreezeLedgerEntry.idempotency_key == idempotency_key)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, entry: FreezeLedgerEntry) -> FreezeLedgerEntry:
        session.add(entry)
        await session.flush()
        return entry

    @staticmethod
    async def list_for_user(
        session: AsyncSession,
        *,
        user_id: int,
        limit: int,
    ) -> list[FreezeLedgerEntry]:
        stmt = (
            select(FreezeLedgerEntry)
            .where(FreezeLedgerEntry.user_id == user_id)
            .order_by(FreezeLedgerEntry.created_at.desc(), FreezeLedgerEntry.id.desc())
            .limit(max(1, int(limit)))
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
