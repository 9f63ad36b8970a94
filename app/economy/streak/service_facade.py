from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, tzinfo
from typing import TypeVar

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.economy.streak.constants import (
    FREEZE_HISTORY_DEFAULT_LIMIT,
    FREEZE_HISTORY_MAX_LIMIT,
    MAX_FREEZE_GRANT_AMOUNT,
    MAX_MANUAL_FREEZES_LIMIT,
    MAX_REQUESTED_MISSED_DAYS,
)
from app.economy.streak.errors import StreakError, StreakInvalidInputError
from app.economy.streak.rewards import OutboxRewardHook, RewardHook
from app.economy.streak.service import StreakService
from app.economy.streak.time import resolve_reference_timezone
from app.economy.streak.types import (
    CheckinResult,
    FreezeApplyResult,
    FreezeBalance,
    FreezeGrantResult,
    FreezeHistoryEntry,
    FreezeType,
    StreakCheckResult,
    StreakFailure,
    StreakResetResult,
)
from app.economy.streak.unit_of_work import run_streak_unit_of_work

T = TypeVar("T")

logger = structlog.get_logger(__name__)

MAX_USER_ID = 2**63 - 1
MAX_IDEMPOTENCY_KEY_LENGTH = 96


def _validate_user_id(user_id: int) -> int:
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise StreakInvalidInputError("user_id must be an integer")
    if user_id <= 0 or user_id > MAX_USER_ID:
        raise StreakInvalidInputError(f"user_id out of range: {user_id}")
    return user_id


def _validate_range(name: str, value: int, *, minimum: int, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise StreakInvalidInputError(f"{name} must be an integer")
    if value < minimum or value > maximum:
        raise StreakInvalidInputError(f"{name} must be within [{minimum}, {maximum}]")
    return value


def _coerce_freeze_type(value: FreezeType | str) -> FreezeType:
    try:
        return FreezeType(value)
    except ValueError as exc:
        raise StreakInvalidInputError(f"unknown freeze_type: {value}") from exc


def _validate_idempotency_key(value: str) -> str:
    key = (value or "").strip()
    if not key or len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise StreakInvalidInputError("idempotency_key must be 1-96 characters")
    return key


def _require_aware(now_utc: datetime) -> datetime:
    if now_utc.tzinfo is None:
        raise StreakInvalidInputError("now_utc must be timezone-aware")
    return now_utc


class StreakServiceFacade:
    """Public entry point for the streak core.

    Every call runs as its own unit of work. Domain errors never escape:
    they come back as ``StreakFailure`` values carrying the error code.
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        reward_hook: RewardHook | None = None,
        default_timezone: str | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._reward_hook: RewardHook = reward_hook or OutboxRewardHook()
        self._default_timezone = default_timezone
        self._max_attempts = max_attempts

    def _resolve_timezone(self, name: str | None) -> tzinfo:
        default = self._default_timezone or get_settings().streak_reference_timezone
        resolved = resolve_reference_timezone(name, default=default)
        if resolved is None:
            raise StreakInvalidInputError(f"unknown timezone: {name or default}")
        return resolved

    async def _run(
        self,
        operation_name: str,
        user_id: object,
        prepare: Callable[[], Callable[[AsyncSession], Awaitable[T]]],
    ) -> T | StreakFailure:
        try:
            operation = prepare()
            return await run_streak_unit_of_work(
                operation,
                session_factory=self._session_factory,
                max_attempts=self._max_attempts,
            )
        except StreakError as exc:
            logger.info(
                "streak_operation_failed",
                operation=operation_name,
                user_id=user_id,
                code=exc.code.value,
                detail=exc.detail,
            )
            return StreakFailure(code=exc.code, detail=exc.detail)

    async def check_streak(
        self,
        *,
        user_id: int,
        now_utc: datetime,
        timezone_name: str | None = None,
    ) -> StreakCheckResult | StreakFailure:
        def prepare() -> Callable[[AsyncSession], Awaitable[StreakCheckResult]]:
            valid_user_id = _validate_user_id(user_id)
            now = _require_aware(now_utc)
            reference_tz = self._resolve_timezone(timezone_name)
            return lambda session: StreakService.check_streak(
                session,
                user_id=valid_user_id,
                now_utc=now,
                reference_tz=reference_tz,
            )

        return await self._run("check_streak", user_id, prepare)

    async def record_checkin(
        self,
        *,
        user_id: int,
        now_utc: datetime,
        timezone_name: str | None = None,
    ) -> CheckinResult | StreakFailure:
        def prepare() -> Callable[[AsyncSession], Awaitable[CheckinResult]]:
            valid_user_id = _validate_user_id(user_id)
            now = _require_aware(now_utc)
            reference_tz = self._resolve_timezone(timezone_name)
            return lambda session: StreakService.record_checkin(
                session,
                user_id=valid_user_id,
                now_utc=now,
                reference_tz=reference_tz,
                reward_hook=self._reward_hook,
            )

        return await self._run("record_checkin", user_id, prepare)

    async def use_streak_freeze(
        self,
        *,
        user_id: int,
        freeze_type: FreezeType | str,
        missed_days: int,
        now_utc: datetime,
        timezone_name: str | None = None,
    ) -> FreezeApplyResult | StreakFailure:
        def prepare() -> Callable[[AsyncSession], Awaitable[FreezeApplyResult]]:
            valid_user_id = _validate_user_id(user_id)
            requested_type = _coerce_freeze_type(freeze_type)
            requested_missed = _validate_range(
                "missed_days",
                missed_days,
                minimum=0,
                maximum=MAX_REQUESTED_MISSED_DAYS,
            )
            now = _require_aware(now_utc)
            reference_tz = self._resolve_timezone(timezone_name)
            return lambda session: StreakService.use_streak_freeze(
                session,
                user_id=valid_user_id,
                now_utc=now,
                reference_tz=reference_tz,
                requested_freeze_type=requested_type,
                requested_missed_days=requested_missed,
            )

        return await self._run("use_streak_freeze", user_id, prepare)

    async def reset_streak(self, *, user_id: int, now_utc: datetime) -> StreakResetResult | StreakFailure:
        def prepare() -> Callable[[AsyncSession], Awaitable[StreakResetResult]]:
            valid_user_id = _validate_user_id(user_id)
            now = _require_aware(now_utc)
            return lambda session: StreakService.reset_streak(session, user_id=valid_user_id, now_utc=now)

        return await self._run("reset_streak", user_id, prepare)

    async def grant_freezes(
        self,
        *,
        user_id: int,
        freeze_type: FreezeType | str,
        amount: int,
        idempotency_key: str,
        now_utc: datetime,
    ) -> FreezeGrantResult | StreakFailure:
        def prepare() -> Callable[[AsyncSession], Awaitable[FreezeGrantResult]]:
            valid_user_id = _validate_user_id(user_id)
            granted_type = _coerce_freeze_type(freeze_type)
            valid_amount = _validate_range("amount", amount, minimum=1, maximum=MAX_FREEZE_GRANT_AMOUNT)
            key = _validate_idempotency_key(idempotency_key)
            now = _require_aware(now_utc)
            return lambda session: StreakService.grant_freezes(
                session,
                user_id=valid_user_id,
                freeze_type=granted_type,
                amount=valid_amount,
                idempotency_key=key,
                now_utc=now,
            )

        return await self._run("grant_freezes", user_id, prepare)

    async def set_manual_capacity(
        self,
        *,
        user_id: int,
        max_manual: int,
        now_utc: datetime,
    ) -> FreezeBalance | StreakFailure:
        def prepare() -> Callable[[AsyncSession], Awaitable[FreezeBalance]]:
            valid_user_id = _validate_user_id(user_id)
            capacity = _validate_range("max_manual", max_manual, minimum=0, maximum=MAX_MANUAL_FREEZES_LIMIT)
            now = _require_aware(now_utc)
            return lambda session: StreakService.set_manual_capacity(
                session,
                user_id=valid_user_id,
                max_manual=capacity,
                now_utc=now,
            )

        return await self._run("set_manual_capacity", user_id, prepare)

    async def get_freezes(self, *, user_id: int) -> FreezeBalance | StreakFailure:
        def prepare() -> Callable[[AsyncSession], Awaitable[FreezeBalance]]:
            valid_user_id = _validate_user_id(user_id)
            return lambda session: StreakService.get_freezes(session, user_id=valid_user_id)

        return await self._run("get_freezes", user_id, prepare)

    async def list_freeze_history(
        self,
        *,
        user_id: int,
        limit: int = FREEZE_HISTORY_DEFAULT_LIMIT,
    ) -> list[FreezeHistoryEntry] | StreakFailure:
        def prepare() -> Callable[[AsyncSession], Awaitable[list[FreezeHistoryEntry]]]:
            valid_user_id = _validate_user_id(user_id)
            valid_limit = _validate_range("limit", limit, minimum=1, maximum=FREEZE_HISTORY_MAX_LIMIT)
            return lambda session: StreakService.list_freeze_history(
                session,
                user_id=valid_user_id,
                limit=valid_limit,
            )

        return await self._run("list_freeze_history", user_id, prepare)
