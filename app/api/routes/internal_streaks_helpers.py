from __future__ import annotations

from typing import Any, NoReturn

import structlog
from fastapi import HTTPException, Request

from app.economy.streak.types import (
    CheckinResult,
    FreezeApplyResult,
    FreezeBalance,
    FreezeGrantResult,
    FreezeHistoryEntry,
    StreakCheckResult,
    StreakErrorCode,
    StreakFailure,
)
from app.services.internal_auth import evaluate_internal_access

from .internal_streaks_models import (
    CheckinResponse,
    FreezeBalanceResponse,
    FreezeGrantResponse,
    FreezeHistoryEntryResponse,
    FreezeUseResponse,
    RemainingFreezesResponse,
    StreakCheckResponse,
)

logger = structlog.get_logger(__name__)

FAILURE_HTTP_STATUS = {
    StreakErrorCode.INVALID_INPUT: 422,
    StreakErrorCode.RECORD_NOT_FOUND: 404,
    StreakErrorCode.INSUFFICIENT_CREDITS: 409,
    StreakErrorCode.GAP_TOO_LARGE: 409,
    StreakErrorCode.DECISION_REQUIRED: 409,
    StreakErrorCode.CONCURRENCY_CONFLICT: 503,
}


def _assert_internal_access(request: Request, *, settings: Any) -> None:
    denial = evaluate_internal_access(
        request,
        expected_token=settings.internal_api_token,
        allowlist=settings.internal_api_allowlist,
        trusted_proxies=getattr(settings, "internal_api_trusted_proxies", ""),
    )
    if denial is not None:
        logger.warning("internal_streaks_auth_failed", reason=denial.reason, client_ip=denial.client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


def _raise_for_failure(failure: StreakFailure) -> NoReturn:
    status_code = FAILURE_HTTP_STATUS.get(failure.code, 500)
    detail: dict[str, str] = {"code": failure.code.value}
    if failure.detail:
        detail["message"] = failure.detail
    raise HTTPException(status_code=status_code, detail=detail)


def _balance_as_response(balance: FreezeBalance) -> FreezeBalanceResponse:
    return FreezeBalanceResponse(
        manual=balance.manual,
        auto=balance.auto,
        max=balance.max_manual,
        can_accumulate=balance.can_accumulate,
    )


def _check_as_response(result: StreakCheckResult) -> StreakCheckResponse:
    return StreakCheckResponse(
        state=result.status.value,
        missed_days=result.missed_days,
        current_streak=result.current_streak,
        longest_streak=result.longest_streak,
        last_checkin=result.last_checkin_local_date,
        today=result.today,
        freezes=_balance_as_response(result.freezes),
        recommended_freeze_type=(
            result.recommended_freeze_type.value if result.recommended_freeze_type is not None else None
        ),
    )


def _checkin_as_response(result: CheckinResult) -> CheckinResponse:
    applied = result.freeze_applied
    return CheckinResponse(
        counted=result.counted,
        current_streak=result.current_streak,
        longest_streak=result.longest_streak,
        last_checkin=result.last_checkin_local_date,
        freeze_applied=applied.freeze_type.value if applied is not None else None,
        freeze_days_covered=applied.missed_days if applied is not None else 0,
        milestones=list(result.milestones_reached),
        streak_restarted=result.streak_restarted,
        freezes=_balance_as_response(result.freezes),
    )


def _freeze_use_as_response(result: FreezeApplyResult) -> FreezeUseResponse:
    # Failures never reach here; a gap with nothing to forgive is a successful no-op.
    applied = result.applied
    return FreezeUseResponse(
        success=True,
        freeze_type=applied.freeze_type.value if applied is not None else None,
        missed_days=result.missed_days,
        remaining=RemainingFreezesResponse(manual=result.remaining.manual, auto=result.remaining.auto),
        current_streak=result.current_streak,
        longest_streak=result.longest_streak,
        last_checkin=result.last_checkin_local_date,
    )


def _grant_as_response(result: FreezeGrantResult) -> FreezeGrantResponse:
    return FreezeGrantResponse(
        freeze_type=result.freeze_type.value,
        requested=result.requested,
        credited=result.credited,
        discarded=result.discarded,
        idempotent_replay=result.idempotent_replay,
        freezes=_balance_as_response(result.freezes),
    )


def _history_entry_as_response(entry: FreezeHistoryEntry) -> FreezeHistoryEntryResponse:
    return FreezeHistoryEntryResponse(
        freeze_type=entry.freeze_type.value,
        direction=entry.direction,
        amount=entry.amount,
        days_covered=entry.days_covered,
        resulting_streak=entry.resulting_streak,
        balance_after=entry.balance_after,
        source=entry.source,
        created_at=entry.created_at,
    )
