from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Path, Query, Request

from app.core.config import get_settings
from app.economy.streak.constants import FREEZE_HISTORY_DEFAULT_LIMIT, FREEZE_HISTORY_MAX_LIMIT
from app.economy.streak.service_facade import StreakServiceFacade
from app.economy.streak.types import StreakFailure

from .internal_streaks_helpers import (
    _assert_internal_access,
    _balance_as_response,
    _check_as_response,
    _checkin_as_response,
    _freeze_use_as_response,
    _grant_as_response,
    _history_entry_as_response,
    _raise_for_failure,
)
from .internal_streaks_models import (
    CheckinRequest,
    CheckinResponse,
    FreezeBalanceResponse,
    FreezeCapacityRequest,
    FreezeGrantRequest,
    FreezeGrantResponse,
    FreezeHistoryResponse,
    FreezeUseRequest,
    FreezeUseResponse,
    StreakCheckResponse,
    StreakResetResponse,
)

router = APIRouter(prefix="/internal/streaks", tags=["internal", "streaks"])

UserIdPath = Annotated[int, Path(gt=0, le=2**63 - 1)]


def get_streak_facade() -> StreakServiceFacade:
    return StreakServiceFacade()


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@router.get("/{user_id}/check", response_model=StreakCheckResponse)
async def check_streak(
    request: Request,
    user_id: UserIdPath,
    tz: str | None = Query(default=None, max_length=64),
) -> StreakCheckResponse:
    _assert_internal_access(request, settings=get_settings())

    result = await get_streak_facade().check_streak(user_id=user_id, now_utc=_now_utc(), timezone_name=tz)
    if isinstance(result, StreakFailure):
        _raise_for_failure(result)
    return _check_as_response(result)


@router.post("/{user_id}/checkins", response_model=CheckinResponse)
async def record_checkin(
    payload: CheckinRequest,
    request: Request,
    user_id: UserIdPath,
) -> CheckinResponse:
    _assert_internal_access(request, settings=get_settings())

    result = await get_streak_facade().record_checkin(
        user_id=user_id,
        now_utc=_now_utc(),
        timezone_name=payload.timezone,
    )
    if isinstance(result, StreakFailure):
        _raise_for_failure(result)
    return _checkin_as_response(result)


@router.post("/{user_id}/freezes/use", response_model=FreezeUseResponse)
async def use_streak_freeze(
    payload: FreezeUseRequest,
    request: Request,
    user_id: UserIdPath,
) -> FreezeUseResponse:
    _assert_internal_access(request, settings=get_settings())

    result = await get_streak_facade().use_streak_freeze(
        user_id=user_id,
        freeze_type=payload.freeze_type,
        missed_days=payload.missed_days,
        now_utc=_now_utc(),
        timezone_name=payload.timezone,
    )
    if isinstance(result, StreakFailure):
        _raise_for_failure(result)
    return _freeze_use_as_response(result)


@router.post("/{user_id}/reset", response_model=StreakResetResponse)
async def reset_streak(request: Request, user_id: UserIdPath) -> StreakResetResponse:
    _assert_internal_access(request, settings=get_settings())

    result = await get_streak_facade().reset_streak(user_id=user_id, now_utc=_now_utc())
    if isinstance(result, StreakFailure):
        _raise_for_failure(result)
    return StreakResetResponse(
        current_streak=result.current_streak,
        longest_streak=result.longest_streak,
        previous_streak=result.previous_streak,
    )


@router.get("/{user_id}/freezes", response_model=FreezeBalanceResponse)
async def get_freezes(request: Request, user_id: UserIdPath) -> FreezeBalanceResponse:
    _assert_internal_access(request, settings=get_settings())

    result = await get_streak_facade().get_freezes(user_id=user_id)
    if isinstance(result, StreakFailure):
        _raise_for_failure(result)
    return _balance_as_response(result)


@router.post("/{user_id}/freezes/grant", response_model=FreezeGrantResponse)
async def grant_freezes(
    payload: FreezeGrantRequest,
    request: Request,
    user_id: UserIdPath,
) -> FreezeGrantResponse:
    _assert_internal_access(request, settings=get_settings())

    result = await get_streak_facade().grant_freezes(
        user_id=user_id,
        freeze_type=payload.freeze_type,
        amount=payload.amount,
        idempotency_key=payload.idempotency_key,
        now_utc=_now_utc(),
    )
    if isinstance(result, StreakFailure):
        _raise_for_failure(result)
    return _grant_as_response(result)


@router.put("/{user_id}/freezes/capacity", response_model=FreezeBalanceResponse)
async def set_freeze_capacity(
    payload: FreezeCapacityRequest,
    request: Request,
    user_id: UserIdPath,
) -> FreezeBalanceResponse:
    _assert_internal_access(request, settings=get_settings())

    result = await get_streak_facade().set_manual_capacity(
        user_id=user_id,
        max_manual=payload.max_manual,
        now_utc=_now_utc(),
    )
    if isinstance(result, StreakFailure):
        _raise_for_failure(result)
    return _balance_as_response(result)


@router.get("/{user_id}/freezes/history", response_model=FreezeHistoryResponse)
async def get_freeze_history(
    request: Request,
    user_id: UserIdPath,
    limit: int = Query(default=FREEZE_HISTORY_DEFAULT_LIMIT, ge=1, le=FREEZE_HISTORY_MAX_LIMIT),
) -> FreezeHistoryResponse:
    _assert_internal_access(request, settings=get_settings())

    result = await get_streak_facade().list_freeze_history(user_id=user_id, limit=limit)
    if isinstance(result, StreakFailure):
        _raise_for_failure(result)
    return FreezeHistoryResponse(
        user_id=user_id,
        items=[_history_entry_as_response(entry) for entry in result],
    )
