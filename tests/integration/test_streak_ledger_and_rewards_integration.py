from __future__ import annotations

from datetime import date, datetime

import httpx
import pytest
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from app.db.models.freeze_ledger_entries import FreezeLedgerEntry
from app.db.session import SessionLocal
from app.economy.streak.types import CheckinResult, FreezeGrantResult
from app.workers.tasks import streak_rewards
from tests.integration.streak_fixtures import (
    UTC,
    build_facade,
    ledger_entries,
    load_streak,
    outbox_events,
    seed_streak,
    utc_noon,
)


async def _insert_grant_entry(user_id: int, key: str) -> int:
    async with SessionLocal.begin() as session:
        entry = FreezeLedgerEntry(
            user_id=user_id,
            freeze_type="MANUAL",
            direction="CREDIT",
            amount=1,
            days_covered=None,
            resulting_streak=0,
            balance_after=1,
            source="GRANT",
            idempotency_key=key,
            metadata_={},
            created_at=datetime(2024, 1, 1, 12, 0, tzinfo=UTC),
        )
        session.add(entry)
        await session.flush()
        return entry.id


@pytest.mark.asyncio
async def test_freeze_ledger_blocks_sql_update_and_delete() -> None:
    entry_id = await _insert_grant_entry(301, "grant:301:sql")

    with pytest.raises(DBAPIError):
        async with SessionLocal.begin() as session:
            await session.execute(
                text("UPDATE streak_freeze_ledger SET amount = amount + 1 WHERE id = :entry_id"),
                {"entry_id": entry_id},
            )

    with pytest.raises(DBAPIError):
        async with SessionLocal.begin() as session:
            await session.execute(
                text("DELETE FROM streak_freeze_ledger WHERE id = :entry_id"),
                {"entry_id": entry_id},
            )


@pytest.mark.asyncio
async def test_freeze_ledger_blocks_orm_mutations() -> None:
    entry_id = await _insert_grant_entry(302, "grant:302:orm")

    with pytest.raises(ValueError, match="append-only"):
        async with SessionLocal.begin() as session:
            entry = await session.get(FreezeLedgerEntry, entry_id)
            assert entry is not None
            entry.amount = 99
            await session.flush()


@pytest.mark.asyncio
async def test_grant_replay_and_capacity_overflow_are_recorded() -> None:
    await seed_streak(303, last_checkin=date(2024, 1, 1), current=2, manual=2, max_manual=3)
    facade = build_facade()
    now_utc = utc_noon(date(2024, 1, 2))

    first = await facade.grant_freezes(
        user_id=303,
        freeze_type="manual",
        amount=3,
        idempotency_key="level-up-5",
        now_utc=now_utc,
    )
    replay = await facade.grant_freezes(
        user_id=303,
        freeze_type="manual",
        amount=3,
        idempotency_key="level-up-5",
        now_utc=now_utc,
    )
    saturated = await facade.grant_freezes(
        user_id=303,
        freeze_type="manual",
        amount=1,
        idempotency_key="level-up-6",
        now_utc=now_utc,
    )

    assert isinstance(first, FreezeGrantResult)
    assert (first.credited, first.discarded, first.idempotent_replay) == (1, 2, False)
    assert isinstance(replay, FreezeGrantResult)
    assert (replay.credited, replay.discarded, replay.idempotent_replay) == (1, 2, True)
    assert isinstance(saturated, FreezeGrantResult)
    assert (saturated.credited, saturated.discarded) == (0, 1)

    state = await load_streak(303)
    assert state is not None
    assert state.manual_freezes == 3

    entries = await ledger_entries(303)
    assert [(entry.amount, entry.metadata_["discarded"]) for entry in entries] == [(1, 2), (0, 1)]

    history = await facade.list_freeze_history(user_id=303, limit=10)
    assert [item.amount for item in history] == [0, 1]


@pytest.mark.asyncio
async def test_milestone_is_queued_once_and_delivered(monkeypatch) -> None:
    await seed_streak(304, last_checkin=date(2024, 1, 6), current=6)
    facade = build_facade()
    now_utc = utc_noon(date(2024, 1, 7))

    first = await facade.record_checkin(user_id=304, now_utc=now_utc)
    second = await facade.record_checkin(user_id=304, now_utc=now_utc)

    assert isinstance(first, CheckinResult) and first.milestones_reached == (7,)
    assert isinstance(second, CheckinResult) and second.milestones_reached == ()

    events = await outbox_events()
    assert len(events) == 1
    assert events[0].dedupe_key == "streak_milestone:304:7:2024-01-07"
    assert events[0].payload["streak_value"] == 7
    assert events[0].status == "PENDING"

    posted: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        posted.append(request.headers["Idempotency-Key"])
        return httpx.Response(202)

    settings = streak_rewards.get_settings().model_copy(
        update={"reward_webhook_url": "https://rewards.example/hooks/streak"}
    )
    monkeypatch.setattr(streak_rewards, "get_settings", lambda: settings)

    result = await streak_rewards.run_streak_reward_delivery_async(transport=httpx.MockTransport(handler))

    assert result == {"claimed": 1, "sent": 1, "retry_scheduled": 0, "failed": 0}
    assert posted == ["streak_milestone:304:7:2024-01-07"]
    delivered = await outbox_events()
    assert delivered[0].status == "SENT"
    assert delivered[0].attempts == 1
