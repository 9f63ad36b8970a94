from __future__ import annotations

from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from app.api.routes.internal_streaks_helpers import _freeze_use_as_response
from app.db.models.streak_state import StreakState
from app.economy.streak import service
from app.economy.streak.errors import InsufficientFreezeCreditsError
from app.economy.streak.service import StreakService
from app.economy.streak.types import FreezeType

UTC = timezone.utc


def _state(*, last_checkin: date, auto: int = 0, manual: int = 0) -> StreakState:
    return StreakState(
        user_id=42,
        last_checkin_local_date=last_checkin,
        current_streak=5,
        longest_streak=5,
        manual_freezes=manual,
        auto_freezes=auto,
        max_manual_freezes=3,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
        updated_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


def _install(monkeypatch, state: StreakState, *, spent_today: object | None = None) -> list[str]:
    looked_up: list[str] = []

    async def fake_get_state(session, user_id: int) -> StreakState:
        return state

    async def fake_get_entry(session, idempotency_key: str):
        looked_up.append(idempotency_key)
        return spent_today

    monkeypatch.setattr(service.StreakRepo, "get_by_user_id", fake_get_state)
    monkeypatch.setattr(service.FreezeLedgerRepo, "get_by_idempotency_key", fake_get_entry)
    return looked_up


async def _use_freeze(*, requested_missed_days: int, today: date):
    return await StreakService.use_streak_freeze(
        object(),
        user_id=42,
        now_utc=datetime(today.year, today.month, today.day, 12, 0, tzinfo=UTC),
        reference_tz=UTC,
        requested_freeze_type=FreezeType.AUTO,
        requested_missed_days=requested_missed_days,
    )


@pytest.mark.asyncio
async def test_freeze_with_nothing_missed_is_successful_noop(monkeypatch) -> None:
    looked_up = _install(monkeypatch, _state(last_checkin=date(2024, 1, 1), auto=1))

    result = await _use_freeze(requested_missed_days=0, today=date(2024, 1, 2))
    body = _freeze_use_as_response(result)

    assert result.applied is None
    assert body.success is True
    assert body.freeze_type is None
    assert body.missed_days == 0
    assert body.remaining.auto == 1
    assert looked_up == []


@pytest.mark.asyncio
async def test_stale_gap_without_spend_today_is_still_noop(monkeypatch) -> None:
    looked_up = _install(monkeypatch, _state(last_checkin=date(2024, 1, 2), auto=1))

    result = await _use_freeze(requested_missed_days=1, today=date(2024, 1, 2))

    assert result.applied is None
    assert looked_up == ["streak_freeze:42:2024-01-02"]


@pytest.mark.asyncio
async def test_gap_already_forgiven_today_fails_with_insufficient_credits(monkeypatch) -> None:
    _install(
        monkeypatch,
        _state(last_checkin=date(2024, 1, 3), auto=0),
        spent_today=SimpleNamespace(source="USER_FREEZE"),
    )

    with pytest.raises(InsufficientFreezeCreditsError, match="already covered"):
        await _use_freeze(requested_missed_days=1, today=date(2024, 1, 3))
