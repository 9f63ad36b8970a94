from __future__ import annotations

import asyncio
from datetime import date

import pytest

from app.economy.streak.types import FreezeApplyResult, StreakErrorCode, StreakFailure
from tests.integration.streak_fixtures import build_facade, ledger_entries, load_streak, seed_streak, utc_noon


@pytest.mark.asyncio
async def test_concurrent_auto_freezes_spend_the_credit_once() -> None:
    await seed_streak(201, last_checkin=date(2024, 1, 1), current=5, auto=1)
    now_utc = utc_noon(date(2024, 1, 3))
    facade = build_facade(max_attempts=3)

    results = await asyncio.gather(
        facade.use_streak_freeze(user_id=201, freeze_type="auto", missed_days=1, now_utc=now_utc),
        facade.use_streak_freeze(user_id=201, freeze_type="auto", missed_days=1, now_utc=now_utc),
    )

    applied = [r for r in results if isinstance(r, FreezeApplyResult) and r.applied is not None]
    others = [r for r in results if not (isinstance(r, FreezeApplyResult) and r.applied is not None)]
    assert len(applied) == 1
    assert len(others) == 1
    loser = others[0]
    assert isinstance(loser, StreakFailure)
    assert loser.code in {StreakErrorCode.INSUFFICIENT_CREDITS, StreakErrorCode.CONCURRENCY_CONFLICT}

    state = await load_streak(201)
    assert state is not None
    assert state.auto_freezes == 0
    assert state.current_streak == 5
    assert len(await ledger_entries(201)) == 1


@pytest.mark.asyncio
async def test_concurrent_grants_with_same_key_credit_once() -> None:
    await seed_streak(202, last_checkin=date(2024, 1, 1), current=1, manual=0)
    now_utc = utc_noon(date(2024, 1, 2))
    facade = build_facade(max_attempts=5)

    results = await asyncio.gather(
        *(
            facade.grant_freezes(
                user_id=202,
                freeze_type="manual",
                amount=2,
                idempotency_key="weekly-bonus-2024-01",
                now_utc=now_utc,
            )
            for _ in range(3)
        )
    )

    assert all(not isinstance(result, StreakFailure) for result in results)
    assert sum(1 for result in results if not result.idempotent_replay) == 1
    state = await load_streak(202)
    assert state is not None
    assert state.manual_freezes == 2
    assert len(await ledger_entries(202)) == 1
