from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.economy.streak.constants import CONFLICT_RETRY_MAX_WAIT_SEC
from app.economy.streak.errors import StreakConcurrencyConflictError

T = TypeVar("T")

logger = structlog.get_logger(__name__)


def _before_sleep_log(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "streak_conflict_retry",
        attempt=retry_state.attempt_number,
        error_type=type(exc).__name__ if exc else None,
    )


async def _run_once(
    operation: Callable[[AsyncSession], Awaitable[T]],
    session_factory: async_sessionmaker[AsyncSession],
) -> T:
    try:
        async with session_factory.begin() as session:
            return await operation(session)
    except StaleDataError as exc:
        raise StreakConcurrencyConflictError("streak row changed concurrently") from exc


async def run_streak_unit_of_work(
    operation: Callable[[AsyncSession], Awaitable[T]],
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    max_attempts: int | None = None,
) -> T:
    """Runs ``operation`` in its own transaction, retrying lost optimistic races.

    Each attempt opens a fresh session so nothing from a rolled back attempt
    leaks into the next one. Exhaustion re-raises StreakConcurrencyConflictError.
    """
    factory = session_factory or SessionLocal
    attempts = max_attempts or get_settings().streak_conflict_max_attempts

    result: T | None = None
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_random(min=0, max=CONFLICT_RETRY_MAX_WAIT_SEC),
        retry=retry_if_exception_type(StreakConcurrencyConflictError),
        reraise=True,
        before_sleep=_before_sleep_log,
    ):
        with attempt:
            result = await _run_once(operation, factory)
    return result  # type: ignore[return-value]
